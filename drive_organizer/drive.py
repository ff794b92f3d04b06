from dataclasses import dataclass, field
from typing import List, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .errors import TransportError

SCOPES = ["https://www.googleapis.com/auth/drive"]

FOLDER_MIME = "application/vnd.google-apps.folder"
GOOGLE_DOC_MIME = "application/vnd.google-apps.document"
PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MIME = "text/plain"

FILE_FIELDS = "id, name, mimeType, parents"


@dataclass
class FileHandle:
    id: str
    name: str
    mime_type: str
    parents: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "FileHandle":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            mime_type=data.get("mimeType", ""),
            parents=list(data.get("parents") or []),
        )


@dataclass
class FolderHandle:
    id: str
    name: str
    parent_id: str


def escape_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def connect(credentials_file: str):
    creds = service_account.Credentials.from_service_account_file(credentials_file, scopes=SCOPES)
    return build("drive", "v3", credentials=creds, cache_discovery=False)


class DriveStore:
    """Thin wrapper over the Drive v3 files resource.

    Every call is a blocking round-trip; API and socket failures surface as
    TransportError so callers never see googleapiclient types.
    """

    def __init__(self, service) -> None:
        self.service = service

    @classmethod
    def from_service_account(cls, credentials_file: str) -> "DriveStore":
        return cls(connect(credentials_file))

    def _execute(self, request, what: str):
        try:
            return request.execute()
        except (HttpError, OSError) as e:
            raise TransportError(f"Drive {what} failed: {e}") from e

    def _list(self, query: str) -> List[dict]:
        items: List[dict] = []
        page_token = None
        while True:
            resp = self._execute(
                self.service.files().list(
                    q=query,
                    fields=f"nextPageToken, files({FILE_FIELDS})",
                    pageSize=1000,
                    pageToken=page_token,
                    supportsAllDrives=True,
                    includeItemsFromAllDrives=True,
                ),
                "list",
            )
            items.extend(resp.get("files", []))
            page_token = resp.get("nextPageToken")
            if not page_token:
                return items

    def list_files(self, folder_id: str) -> List[FileHandle]:
        query = (
            f"'{escape_query_value(folder_id)}' in parents"
            f" and mimeType != '{FOLDER_MIME}' and trashed = false"
        )
        return [FileHandle.from_api(item) for item in self._list(query)]

    def get_file(self, file_id: str) -> FileHandle:
        data = self._execute(
            self.service.files().get(fileId=file_id, fields=FILE_FIELDS, supportsAllDrives=True),
            "get",
        )
        return FileHandle.from_api(data)

    def read_bytes(self, file_id: str, limit: Optional[int] = None) -> bytes:
        request = self.service.files().get_media(fileId=file_id, supportsAllDrives=True)
        if limit:
            request.headers["Range"] = f"bytes=0-{limit - 1}"
        return self._execute(request, "download")

    def read_document_text(self, file_id: str) -> str:
        data = self._execute(
            self.service.files().export(fileId=file_id, mimeType=TEXT_MIME),
            "export",
        )
        if isinstance(data, bytes):
            return data.decode("utf-8-sig", errors="replace")
        return data or ""

    def find_folder(self, parent_id: str, name: str) -> Optional[FolderHandle]:
        query = (
            f"'{escape_query_value(parent_id)}' in parents"
            f" and name = '{escape_query_value(name)}'"
            f" and mimeType = '{FOLDER_MIME}' and trashed = false"
        )
        for item in self._list(query):
            # Drive name matching is case-insensitive for some locales
            if item.get("name") == name:
                return FolderHandle(id=item["id"], name=name, parent_id=parent_id)
        return None

    def create_folder(self, parent_id: str, name: str) -> FolderHandle:
        body = {"name": name, "mimeType": FOLDER_MIME, "parents": [parent_id]}
        data = self._execute(
            self.service.files().create(body=body, fields="id, name", supportsAllDrives=True),
            "create folder",
        )
        return FolderHandle(id=data["id"], name=data.get("name", name), parent_id=parent_id)

    def rename(self, file_id: str, new_name: str) -> None:
        self._execute(
            self.service.files().update(
                fileId=file_id, body={"name": new_name}, fields="id", supportsAllDrives=True
            ),
            "rename",
        )

    def move(self, file_id: str, folder_id: str, current_parents: Optional[List[str]] = None) -> None:
        if current_parents is None:
            current_parents = self.get_file(file_id).parents
        self._execute(
            self.service.files().update(
                fileId=file_id,
                addParents=folder_id,
                removeParents=",".join(p for p in current_parents if p != folder_id),
                fields="id, parents",
                supportsAllDrives=True,
            ),
            "move",
        )

    def copy_as(self, file_id: str, name: str, mime_type: str) -> FileHandle:
        """Copy into a new file of mime_type; Google Doc targets trigger import/OCR."""
        data = self._execute(
            self.service.files().copy(
                fileId=file_id,
                body={"name": name, "mimeType": mime_type},
                fields=FILE_FIELDS,
                supportsAllDrives=True,
            ),
            "copy",
        )
        return FileHandle.from_api(data)

    def trash(self, file_id: str) -> None:
        self._execute(
            self.service.files().update(
                fileId=file_id, body={"trashed": True}, fields="id", supportsAllDrives=True
            ),
            "trash",
        )
