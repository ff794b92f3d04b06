import json
import logging
import re
from typing import Any, Dict, List, Optional

import requests

from .errors import NoModelAvailable, TransportError
from .results import Fatal, Proposal, Skip

log = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1"
GENERATE_METHOD = "generateContent"

# optional markdown emphasis may wrap the label, never the value
_FILENAME_RE = re.compile(r"(\*\*|__)?FILENAME(?(1)(?::\1|\1:)|:)[ \t]*(.*)", re.IGNORECASE)
_CATEGORY_RE = re.compile(r"(\*\*|__)?CATEGORY(?(1)(?::\1|\1:)|:)[ \t]*(.*)", re.IGNORECASE)


def parse_ai_response(text: str) -> Optional[Proposal]:
    """Pull the FILENAME/CATEGORY lines out of a reply, in either order."""
    filename_match = _FILENAME_RE.search(text or "")
    category_match = _CATEGORY_RE.search(text or "")
    if not filename_match or not category_match:
        return None
    filename = filename_match.group(2).strip()
    category = category_match.group(2).strip()
    if not filename or not category:
        return None
    return Proposal(filename=filename, category=category)


def pick_text_model(models: List[Dict[str, Any]], family: str = "gemini") -> Optional[str]:
    for model in models:
        name = model.get("name", "")
        methods = model.get("supportedGenerationMethods") or []
        if GENERATE_METHOD in methods and family in name and "embed" not in name:
            return name
    return None


def qualify_model(name: str) -> str:
    return name if name.startswith("models/") else f"models/{name}"


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        prompt: str,
        *,
        base_url: str = API_BASE,
        temperature: float = 0.2,
        max_output_tokens: int = 1024,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.prompt = prompt
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, url: str, params: Optional[dict] = None, **kwargs) -> dict:
        query = {"key": self.api_key}
        if params:
            query.update(params)
        try:
            resp = self.session.request(method, url, params=query, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Gemini request failed: {e}") from e
        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(f"Gemini returned invalid JSON (HTTP {resp.status_code})") from e
        if not isinstance(data, dict):
            raise TransportError(f"Gemini returned unexpected payload (HTTP {resp.status_code})")
        if resp.status_code >= 400 or "error" in data:
            err = data.get("error") or {}
            message = err.get("message") if isinstance(err, dict) else str(err)
            raise TransportError(f"Gemini API error (HTTP {resp.status_code}): {message or resp.text}")
        return data

    def list_models(self) -> List[Dict[str, Any]]:
        models: List[Dict[str, Any]] = []
        page_token = None
        while True:
            params = {"pageSize": 1000}
            if page_token:
                params["pageToken"] = page_token
            data = self._request("GET", f"{self.base_url}/models", params=params)
            models.extend(data.get("models", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return models

    def build_payload(self, text: str) -> dict:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": self.prompt},
                        {"text": "\n\n--- FILE CONTENT START --- \n" + text + "\n--- FILE CONTENT END ---"},
                    ]
                }
            ],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    def generate(self, text: str, model: str) -> str:
        data = self._request(
            "POST",
            f"{self.base_url}/{qualify_model(model)}:{GENERATE_METHOD}",
            json=self.build_payload(text),
        )
        candidates = data.get("candidates") or []
        parts = ((candidates[0].get("content") or {}).get("parts") or []) if candidates else []
        reply = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        if not reply.strip():
            raise TransportError(f"Gemini returned no text: {json.dumps(data)[:500]}")
        return reply

    def analyze(self, text: str, model: str) -> Proposal | Skip:
        try:
            reply = self.generate(text, model)
        except TransportError as e:
            return Skip(str(e))
        proposal = parse_ai_response(reply)
        if proposal is None:
            log.info(f"Could not parse AI response: {reply}")
            return Skip("could not parse AI response")
        return proposal


def select_model(client: GeminiClient, pinned: Optional[str] = None, family: str = "gemini") -> str | Fatal:
    """Resolve the model used for the whole run; never re-queried afterwards."""
    if pinned:
        return qualify_model(pinned)
    try:
        models = client.list_models()
    except TransportError as e:
        return Fatal(NoModelAvailable(f"Failed to call listModels API: {e}"))
    name = pick_text_model(models, family)
    if name:
        return name
    log.info("Could not find a suitable text model in the list.")
    if models:
        log.info(f"Available models: {json.dumps([m.get('name') for m in models])}")
    return Fatal(NoModelAvailable("no model supports generateContent"))
