import sys
import unittest
from pathlib import Path
from unittest import mock

import requests

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from drive_organizer.errors import NoModelAvailable, TransportError  # noqa: E402
from drive_organizer.gemini import (  # noqa: E402
    GeminiClient,
    parse_ai_response,
    pick_text_model,
    select_model,
)
from drive_organizer.results import Fatal, Proposal, Skip  # noqa: E402
from fakes import StubAI  # noqa: E402


def _response(payload, status: int = 200) -> mock.Mock:
    resp = mock.Mock()
    resp.status_code = status
    resp.text = str(payload)
    resp.json.return_value = payload
    return resp


def _reply(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class ParseResponseTests(unittest.TestCase):
    def test_two_lines(self) -> None:
        self.assertEqual(
            parse_ai_response("FILENAME: Budget Report\nCATEGORY: Finance"),
            Proposal("Budget Report", "Finance"),
        )

    def test_reversed_order_and_noise(self) -> None:
        text = "Sure! Here you go.\n  category:   Finance  \n\nfilename: Budget Report \nThanks"
        self.assertEqual(parse_ai_response(text), Proposal("Budget Report", "Finance"))

    def test_markdown_emphasis_stripped(self) -> None:
        text = "**FILENAME:** Budget Report\n**CATEGORY:** Finance"
        self.assertEqual(parse_ai_response(text), Proposal("Budget Report", "Finance"))

    def test_underscores_in_values_are_kept(self) -> None:
        text = "FILENAME: __init__ module notes\nCATEGORY: _Drafts_"
        self.assertEqual(parse_ai_response(text), Proposal("__init__ module notes", "_Drafts_"))

    def test_emphasis_closed_before_colon(self) -> None:
        text = "__Filename__: Budget Report\n**Category**: *Finance*"
        self.assertEqual(parse_ai_response(text), Proposal("Budget Report", "*Finance*"))

    def test_missing_line(self) -> None:
        self.assertIsNone(parse_ai_response("FILENAME: Budget Report"))
        self.assertIsNone(parse_ai_response("CATEGORY: Finance"))
        self.assertIsNone(parse_ai_response(""))

    def test_empty_value_does_not_borrow_next_line(self) -> None:
        self.assertIsNone(parse_ai_response("FILENAME:\nCATEGORY: Finance"))


class ModelSelectionTests(unittest.TestCase):
    def test_skips_embedding_and_non_generating_models(self) -> None:
        models = [
            {"name": "models/embedding-gecko", "supportedGenerationMethods": ["embedText"]},
            {"name": "models/gemini-embedding-001", "supportedGenerationMethods": ["generateContent"]},
            {"name": "models/gemini-2.5-flash", "supportedGenerationMethods": ["generateContent", "countTokens"]},
            {"name": "models/gemini-2.5-pro", "supportedGenerationMethods": ["generateContent"]},
        ]
        self.assertEqual(pick_text_model(models), "models/gemini-2.5-flash")

    def test_no_match(self) -> None:
        self.assertIsNone(pick_text_model([{"name": "models/aqa", "supportedGenerationMethods": []}]))

    def test_select_model_fatal_on_transport_error(self) -> None:
        result = select_model(StubAI(models=TransportError("boom")))
        self.assertIsInstance(result, Fatal)
        self.assertIsInstance(result.error, NoModelAvailable)

    def test_select_model_fatal_when_catalog_empty(self) -> None:
        self.assertIsInstance(select_model(StubAI(models=[])), Fatal)

    def test_pinned_model_skips_catalog(self) -> None:
        ai = StubAI()
        self.assertEqual(select_model(ai, pinned="gemini-2.5-flash"), "models/gemini-2.5-flash")
        self.assertEqual(ai.list_calls, 0)


class GeminiClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = mock.Mock()
        self.client = GeminiClient("k3y", "PROMPT", session=self.session)

    def test_list_models_follows_pages(self) -> None:
        self.session.request.side_effect = [
            _response({"models": [{"name": "models/a"}], "nextPageToken": "p2"}),
            _response({"models": [{"name": "models/b"}]}),
        ]
        names = [m["name"] for m in self.client.list_models()]
        self.assertEqual(names, ["models/a", "models/b"])
        second = self.session.request.call_args_list[1]
        self.assertEqual(second.kwargs["params"], {"key": "k3y", "pageSize": 1000, "pageToken": "p2"})

    def test_analyze_sends_prompt_and_parses(self) -> None:
        self.session.request.return_value = _response(_reply("FILENAME: Grocery List\nCATEGORY: Personal"))
        result = self.client.analyze("milk, eggs", "models/gemini-test")
        self.assertEqual(result, Proposal("Grocery List", "Personal"))
        args, kwargs = self.session.request.call_args
        self.assertEqual(args[0], "POST")
        self.assertEqual(
            args[1], "https://generativelanguage.googleapis.com/v1/models/gemini-test:generateContent"
        )
        self.assertEqual(kwargs["params"], {"key": "k3y"})
        parts = kwargs["json"]["contents"][0]["parts"]
        self.assertEqual(parts[0]["text"], "PROMPT")
        self.assertIn("milk, eggs", parts[1]["text"])
        self.assertEqual(kwargs["json"]["generationConfig"], {"temperature": 0.2, "maxOutputTokens": 1024})

    def test_error_payload_skips(self) -> None:
        self.session.request.return_value = _response({"error": {"message": "quota"}}, status=429)
        result = self.client.analyze("text", "models/gemini-test")
        self.assertIsInstance(result, Skip)
        self.assertIn("quota", result.reason)

    def test_no_candidates_skips(self) -> None:
        self.session.request.return_value = _response({"promptFeedback": {"blockReason": "SAFETY"}})
        self.assertIsInstance(self.client.analyze("text", "models/gemini-test"), Skip)

    def test_unparseable_reply_skips(self) -> None:
        self.session.request.return_value = _response(_reply("I cannot help with that."))
        self.assertIsInstance(self.client.analyze("text", "models/gemini-test"), Skip)

    def test_transport_error_skips(self) -> None:
        self.session.request.side_effect = requests.exceptions.ConnectionError("down")
        result = self.client.analyze("text", "models/gemini-test")
        self.assertIsInstance(result, Skip)
        self.assertIn("down", result.reason)

    def test_invalid_json_raises_transport_error(self) -> None:
        resp = _response(None, status=502)
        resp.json.side_effect = ValueError("no json")
        self.session.request.return_value = resp
        with self.assertRaises(TransportError):
            self.client.list_models()


if __name__ == "__main__":
    unittest.main()
