import logging
from enum import Enum

import chardet

from .drive import DOCX_MIME, GOOGLE_DOC_MIME, PDF_MIME, TEXT_MIME, FileHandle
from .errors import TransportError
from .results import Skip

log = logging.getLogger(__name__)

TEXT_MAX_CHARS = 15_000
DOC_MAX_CHARS = 30_000  # structure already stripped by the export
TEMP_PREFIX = "[TEMP OCR] "

# worst case for utf-8/utf-32 text before truncation
_BYTES_PER_CHAR = 4


class MediaKind(Enum):
    PLAIN_TEXT = "plain_text"
    RICH_DOCUMENT = "rich_document"
    CONVERTIBLE = "convertible"
    UNSUPPORTED = "unsupported"


def classify(mime_type: str) -> MediaKind:
    if mime_type == TEXT_MIME:
        return MediaKind.PLAIN_TEXT
    if mime_type == GOOGLE_DOC_MIME:
        return MediaKind.RICH_DOCUMENT
    if mime_type.startswith("image/") or mime_type in (PDF_MIME, DOCX_MIME):
        return MediaKind.CONVERTIBLE
    return MediaKind.UNSUPPORTED


def is_temp_copy(name: str) -> bool:
    return name.startswith(TEMP_PREFIX)


def decode_text(raw: bytes) -> str:
    enc = chardet.detect(raw).get("encoding") or "utf-8"
    try:
        return raw.decode(enc, errors="ignore")
    except LookupError:
        return raw.decode("utf-8", errors="ignore")


def extract_plain_text(store, file: FileHandle) -> str:
    raw = store.read_bytes(file.id, limit=TEXT_MAX_CHARS * _BYTES_PER_CHAR)
    return decode_text(raw)[:TEXT_MAX_CHARS]


def extract_document(store, file: FileHandle) -> str:
    return store.read_document_text(file.id)[:DOC_MAX_CHARS]


def extract_via_conversion(store, file: FileHandle) -> str:
    """Import a temporary Google Doc copy (server-side OCR) and read it back."""
    log.info(f'Converting "{file.name}" to Google Doc for OCR...')
    temp = store.copy_as(file.id, f"{TEMP_PREFIX}{file.name}", GOOGLE_DOC_MIME)
    try:
        return extract_document(store, temp)
    finally:
        try:
            store.trash(temp.id)
            log.info(f"Removed temp file: {temp.name}")
        except TransportError as e:
            log.warning(f"Could not remove temp file {temp.name} ({temp.id}): {e}")


_HANDLERS = {
    MediaKind.PLAIN_TEXT: extract_plain_text,
    MediaKind.RICH_DOCUMENT: extract_document,
    MediaKind.CONVERTIBLE: extract_via_conversion,
}


def extract(store, file: FileHandle) -> str | Skip:
    kind = classify(file.mime_type)
    handler = _HANDLERS.get(kind)
    if handler is None:
        return Skip(f"unsupported type: {file.mime_type}")
    try:
        text = handler(store, file)
    except Exception as e:
        return Skip(f"extraction failed ({kind.value}): {e}")
    if not text.strip():
        return Skip("no readable text")
    return text
