"""
Google Drive Remote Storage

DESIGN DECISION: The remote copy lives in the user's own Google Drive:
1. The user owns their data and can see the file
2. No server of ours stores personal data
3. Google handles durability and per-user isolation
4. The same account on another device finds the same folder

The adapter speaks Drive v3 REST directly over httpx. It knows folders,
names and multipart uploads; it knows nothing about envelopes or sync.

Errors are mapped onto the storage taxonomy:
- 401 -> RemoteAuthError (credential expired or revoked)
- 429, 5xx, rate-limit 403s, network failures -> RemoteTransientError
- anything else non-2xx -> RemoteError
"""

import json
from typing import Any, Optional

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from lifesync.config import DriveSettings, get_settings
from lifesync.models.sync import RemoteFile
from lifesync.services.session import CredentialProvider
from lifesync.services.storage.interface import (
    RemoteAuthError,
    RemoteError,
    RemoteStoreInterface,
    RemoteTransientError,
)


FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_FIELDS = "id,name,modifiedTime,createdTime,size"
MULTIPART_BOUNDARY = "-------lifesync_boundary"

RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded"}


logger = structlog.get_logger(__name__)


def _quote(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class GoogleDriveRemoteStore(RemoteStoreInterface):
    """
    Drive v3 implementation of the remote store.

    Folder ids are cached per credential; a different credential
    (another user signing in) starts with an empty cache.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        settings: Optional[DriveSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._credentials = credentials
        self._settings = settings or get_settings().drive
        self._transport = transport
        self._folder_cache: dict[tuple[Optional[str], str], str] = {}
        self._cache_owner: Optional[str] = None

    # =========================================================================
    # HTTP plumbing
    # =========================================================================

    def _bearer_token(self) -> str:
        token = self._credentials.credential
        if not token:
            raise RemoteAuthError("Not authenticated. Please sign in with Google.")
        if token != self._cache_owner:
            self._folder_cache.clear()
            self._cache_owner = token
        return token

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.request_timeout_seconds,
            transport=self._transport,
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self._bearer_token()}",
            **kwargs.pop("headers", {}),
        }
        try:
            async with self._client() as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise RemoteTransientError(f"Drive request failed: {e}") from e

        self._raise_for_status(response)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return

        message = f"Drive API error: {response.status_code}"
        reasons: set[str] = set()
        try:
            error = response.json().get("error", {})
            message = error.get("message") or message
            reasons = {item.get("reason", "") for item in error.get("errors", [])}
        except (ValueError, AttributeError):
            pass

        if response.status_code == 401:
            raise RemoteAuthError("Session expired. Please sign in again.")
        if response.status_code == 429 or response.status_code >= 500:
            raise RemoteTransientError(message)
        if response.status_code == 403 and reasons & RATE_LIMIT_REASONS:
            raise RemoteTransientError(message)
        raise RemoteError(message)

    # =========================================================================
    # Folders
    # =========================================================================

    @retry(
        retry=retry_if_exception_type(RemoteTransientError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _find_or_create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        key = (parent_id, name)
        cached = self._folder_cache.get(key)
        if cached:
            return cached

        query = f"name='{_quote(name)}' and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        if parent_id:
            query += f" and '{_quote(parent_id)}' in parents"

        response = await self._request(
            "GET",
            f"{self._settings.api_base}/files",
            params={"q": query, "fields": "files(id,name)"},
        )
        files = response.json().get("files") or []

        if files:
            folder_id = files[0]["id"]
            logger.info("drive_folder_found", name=name, folder_id=folder_id)
        else:
            metadata: dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
            if parent_id:
                metadata["parents"] = [parent_id]
            response = await self._request(
                "POST",
                f"{self._settings.api_base}/files",
                json=metadata,
            )
            folder_id = response.json()["id"]
            logger.info("drive_folder_created", name=name, folder_id=folder_id)

        self._folder_cache[key] = folder_id
        return folder_id

    async def find_or_create_app_folder(self) -> str:
        return await self._find_or_create_folder(self._settings.folder_name)

    async def find_or_create_subfolder(self, parent_id: str, name: str) -> str:
        return await self._find_or_create_folder(name, parent_id=parent_id)

    # =========================================================================
    # Files
    # =========================================================================

    async def _find_file(self, folder_id: str, name: str) -> Optional[dict]:
        query = (
            f"name='{_quote(name)}' and '{_quote(folder_id)}' in parents and trashed=false"
        )
        response = await self._request(
            "GET",
            f"{self._settings.api_base}/files",
            params={"q": query, "fields": f"files({FILE_FIELDS})"},
        )
        files = response.json().get("files") or []
        return files[0] if files else None

    async def read_named_file(self, folder_id: str, name: str) -> Optional[bytes]:
        existing = await self._find_file(folder_id, name)
        if existing is None:
            logger.debug("drive_file_not_found", name=name)
            return None

        response = await self._request(
            "GET",
            f"{self._settings.api_base}/files/{existing['id']}",
            params={"alt": "media"},
        )
        return response.content

    async def write_named_file(self, folder_id: str, name: str, data: bytes) -> RemoteFile:
        existing = await self._find_file(folder_id, name)

        metadata: dict[str, Any] = {"name": name, "mimeType": "application/json"}
        if existing is None:
            metadata["parents"] = [folder_id]

        body = self._multipart_body(metadata, data)
        params = {"uploadType": "multipart", "fields": FILE_FIELDS}
        headers = {"Content-Type": f"multipart/related; boundary={MULTIPART_BOUNDARY}"}

        if existing is None:
            method, url = "POST", f"{self._settings.upload_api_base}/files"
        else:
            method, url = "PATCH", f"{self._settings.upload_api_base}/files/{existing['id']}"

        response = await self._request(method, url, params=params, headers=headers, content=body)
        stored = self._to_remote_file(response.json())
        logger.info("drive_file_saved", name=name, file_id=stored.id, size_bytes=len(data))
        return stored

    async def delete_named_file(self, folder_id: str, name: str) -> bool:
        existing = await self._find_file(folder_id, name)
        if existing is None:
            return False

        await self._request("DELETE", f"{self._settings.api_base}/files/{existing['id']}")
        logger.info("drive_file_deleted", name=name, file_id=existing["id"])
        return True

    async def list_files(self, folder_id: str, name_prefix: str = "") -> list[RemoteFile]:
        query = (
            f"'{_quote(folder_id)}' in parents and trashed=false"
            f" and mimeType!='{FOLDER_MIME_TYPE}'"
        )
        if name_prefix:
            query += f" and name contains '{_quote(name_prefix)}'"

        files: list[RemoteFile] = []
        page_token: Optional[str] = None
        while True:
            params = {
                "q": query,
                "fields": f"nextPageToken,files({FILE_FIELDS})",
                "orderBy": "modifiedTime desc",
            }
            if page_token:
                params["pageToken"] = page_token

            response = await self._request("GET", f"{self._settings.api_base}/files", params=params)
            result = response.json()
            files.extend(
                self._to_remote_file(item)
                for item in result.get("files") or []
                if item.get("name", "").startswith(name_prefix)
            )
            page_token = result.get("nextPageToken")
            if not page_token:
                return files

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _multipart_body(metadata: dict, data: bytes) -> bytes:
        """Build a multipart/related body: JSON metadata part, then the content part."""
        delimiter = f"\r\n--{MULTIPART_BOUNDARY}\r\n".encode()
        close_delimiter = f"\r\n--{MULTIPART_BOUNDARY}--".encode()
        return b"".join([
            delimiter,
            b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
            json.dumps(metadata).encode("utf-8"),
            delimiter,
            b"Content-Type: application/json\r\n\r\n",
            data,
            close_delimiter,
        ])

    @staticmethod
    def _to_remote_file(item: dict) -> RemoteFile:
        return RemoteFile(
            id=item["id"],
            name=item.get("name", ""),
            modified_time=item.get("modifiedTime"),
            size=int(item.get("size") or 0),
        )
