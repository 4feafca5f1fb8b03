from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from google.auth.exceptions import RefreshError, TransportError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaInMemoryUpload

from ..infrastructure.error_handling import DriveApiError, RetryConfig, RetryHandler, is_retryable
from .drive_errors import REQUEST_TIMEOUT_CODE, classify_error, log_drive_error

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_FIELDS = "id,name,mimeType,size,parents,webViewLink,webContentLink,createdTime,modifiedTime"


@dataclass
class DriveFile:
    id: str
    name: str
    mime_type: str = ""
    parents: List[str] = field(default_factory=list)
    size: Optional[str] = None
    web_view_link: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @classmethod
    def from_api(cls, payload: Dict[str, Any], fallback_name: str = "", fallback_mime: str = "") -> "DriveFile":
        return cls(
            id=payload.get("id") or "",
            name=payload.get("name") or fallback_name,
            mime_type=payload.get("mimeType") or fallback_mime,
            parents=list(payload.get("parents") or []),
            size=payload.get("size"),
            web_view_link=payload.get("webViewLink"),
        )


def to_drive_error(error: Exception) -> DriveApiError:
    """Wrap a transport, auth or API failure in a classified ``DriveApiError``."""
    if isinstance(error, DriveApiError):
        return error
    status_code = None
    if isinstance(error, HttpError):
        status_code = error.resp.status
        details = getattr(error, "error_details", None) or []
        reasons = [d.get("reason") for d in details if isinstance(d, dict) and d.get("reason")] if isinstance(details, list) else []
        message = f"API request failed: {status_code} - {error.reason} {' '.join(reasons)}".strip()
    elif isinstance(error, RefreshError):
        message = f"Token refresh failed: {error}"
    elif isinstance(error, ValueError):
        message = f"Invalid response from Google Drive: {error}"
    else:
        message = f"API request failed: {error}"

    info = classify_error(DriveApiError(message, status_code=status_code))
    return DriveApiError(message, status_code=status_code, code=info.code, retryable=info.retryable, action=info.action)


def _safe_to_repeat_upload(error: Exception) -> bool:
    # A timed-out create may already have stored the file.
    return is_retryable(error) and getattr(error, "code", None) != REQUEST_TIMEOUT_CODE


def upload_retry_config(max_retries: int = 3, initial_delay: float = 1.0) -> RetryConfig:
    return RetryConfig(
        max_retries=max_retries,
        initial_delay=initial_delay,
        retryable_exceptions=(DriveApiError,),
        should_retry=_safe_to_repeat_upload,
    )


class GoogleDriveClient:
    """Google Drive v3 client authenticated with an OAuth refresh token."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        service: Any = None,
        upload_retry: Optional[RetryConfig] = None,
    ) -> None:
        if not (client_id and client_secret and refresh_token):
            raise ValueError("Google Drive client_id, client_secret and refresh_token are required")
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.upload_retry = upload_retry or upload_retry_config()
        self._service = service

    @classmethod
    def from_config(cls, config: Any) -> "GoogleDriveClient":
        return cls(config.client_id, config.client_secret, config.refresh_token)

    @property
    def service(self) -> Any:
        if self._service is None:
            credentials = Credentials(
                None,
                refresh_token=self.refresh_token,
                client_id=self.client_id,
                client_secret=self.client_secret,
                token_uri=GOOGLE_TOKEN_URI,
                scopes=DRIVE_SCOPES,
            )
            self._service = build("drive", "v3", credentials=credentials, cache_discovery=False)
        return self._service

    def _execute(self, request: Any, context: str) -> Dict[str, Any]:
        try:
            return request.execute() or {}
        except (HttpError, RefreshError, TransportError, OSError, ValueError) as e:
            error = to_drive_error(e)
            log_drive_error(error, context)
            raise error from e

    # ------------------------------------------------------------ operations

    def test_connection(self) -> Dict[str, Any]:
        try:
            self.service.files().list(pageSize=1, fields="nextPageToken,files(id,name)").execute()
            return {"success": True, "message": "Google Drive connection successful!"}
        except Exception as e:
            info = log_drive_error(to_drive_error(e), "Google Drive Connection Test")
            return {"success": False, "message": info.message}

    def list_files(self, folder_id: Optional[str] = None, page_size: int = 100) -> List[DriveFile]:
        params: Dict[str, Any] = {
            "pageSize": page_size,
            "fields": f"nextPageToken,files({FILE_FIELDS})",
        }
        if folder_id:
            params["q"] = f"'{folder_id}' in parents and trashed = false"
        payload = self._execute(self.service.files().list(**params), "File Listing")
        return [DriveFile.from_api(item) for item in payload.get("files") or []]

    def get_file(self, file_id: str) -> DriveFile:
        payload = self._execute(self.service.files().get(fileId=file_id, fields=FILE_FIELDS), f"File Get: {file_id}")
        return DriveFile.from_api(payload)

    def create_folder(self, name: str, parent_id: Optional[str] = None) -> DriveFile:
        body: Dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            body["parents"] = [parent_id]
        payload = self._execute(self.service.files().create(body=body, fields=FILE_FIELDS), f"Folder Creation: {name}")
        if not payload.get("id"):
            raise DriveApiError("Failed to create folder: No ID returned", retryable=False)
        return DriveFile.from_api(payload, fallback_name=name, fallback_mime=FOLDER_MIME_TYPE)

    def ensure_folder(self, name: str, parent_id: Optional[str] = None, page_size: int = 200) -> DriveFile:
        children = self.list_files(parent_id or "root", page_size)
        for child in children:
            if child.name == name and child.is_folder:
                return child
        logger.info(f"Creating Drive folder '{name}' under {parent_id or 'root'}")
        return self.create_folder(name, parent_id)

    def upload_file(
        self,
        data: bytes,
        file_name: str,
        mime_type: str,
        parent_id: Optional[str] = None,
    ) -> DriveFile:
        handler = RetryHandler(self.upload_retry)
        return handler.execute(self._upload_once, data, file_name, mime_type, parent_id)

    def _upload_once(self, data: bytes, file_name: str, mime_type: str, parent_id: Optional[str]) -> DriveFile:
        metadata: Dict[str, Any] = {"name": file_name}
        if parent_id:
            metadata["parents"] = [parent_id]
        media = MediaInMemoryUpload(data, mimetype=mime_type, resumable=False)
        payload = self._execute(
            self.service.files().create(body=metadata, media_body=media, fields=FILE_FIELDS),
            f"File Upload: {file_name}",
        )
        if not payload.get("id"):
            raise DriveApiError("Failed to upload file: No ID returned", retryable=False)
        return DriveFile.from_api(payload, fallback_name=file_name, fallback_mime=mime_type)

    def move_file(self, file_id: str, from_folder_id: str, to_folder_id: str) -> None:
        """Reparent ``file_id``. Setting the same parent twice leaves the file in place."""
        self._execute(
            self.service.files().update(
                fileId=file_id,
                addParents=to_folder_id,
                removeParents=from_folder_id,
                fields="id,parents",
            ),
            f"File Move: {file_id}",
        )
