"""
In-Memory Storage

Both interfaces backed by plain dicts. Used in tests and as the local
slot for short-lived processes that must not touch the disk.

Failures can be injected through `fail_with` so callers can exercise the
engine's error paths without a network.
"""

from datetime import datetime
from itertools import count
from typing import Optional

from lifesync.models.envelope import utc_now
from lifesync.models.sync import RemoteFile
from lifesync.services.storage.interface import (
    LocalStoreInterface,
    LocalWriteError,
    RemoteStoreInterface,
)


class InMemoryLocalStore(LocalStoreInterface):
    """Local slot kept in a dict, with an optional quota."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self._data: dict[str, str] = {}
        self._quota_bytes = quota_bytes
        self.fail_with: Optional[Exception] = None

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        if self._quota_bytes is not None and len(value.encode("utf-8")) > self._quota_bytes:
            raise LocalWriteError("Local storage quota exceeded")
        self._data[key] = value

    def remove(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


class _StoredFile:
    def __init__(self, file_id: str, data: bytes, modified_time: datetime, seq: int):
        self.id = file_id
        self.data = data
        self.modified_time = modified_time
        self.seq = seq


class InMemoryRemoteStore(RemoteStoreInterface):
    """
    Remote store kept in memory.

    Every successful write is recorded in `writes` as (folder_id, name, data)
    so tests can count outbound calls.
    """

    APP_FOLDER_ID = "app-folder"

    def __init__(self):
        self._ids = count(1)
        self._seq = count(1)
        # folder_id -> name -> file
        self._files: dict[str, dict[str, _StoredFile]] = {self.APP_FOLDER_ID: {}}
        # (parent_id, name) -> folder_id
        self._subfolders: dict[tuple[str, str], str] = {}
        self.writes: list[tuple[str, str, bytes]] = []
        self.fail_with: Optional[Exception] = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def find_or_create_app_folder(self) -> str:
        self._check()
        return self.APP_FOLDER_ID

    async def find_or_create_subfolder(self, parent_id: str, name: str) -> str:
        self._check()
        key = (parent_id, name)
        if key not in self._subfolders:
            folder_id = f"folder-{next(self._ids)}"
            self._subfolders[key] = folder_id
            self._files[folder_id] = {}
        return self._subfolders[key]

    async def read_named_file(self, folder_id: str, name: str) -> Optional[bytes]:
        self._check()
        stored = self._files.get(folder_id, {}).get(name)
        return stored.data if stored else None

    async def write_named_file(self, folder_id: str, name: str, data: bytes) -> RemoteFile:
        self._check()
        folder = self._files.setdefault(folder_id, {})
        existing = folder.get(name)
        file_id = existing.id if existing else f"file-{next(self._ids)}"
        stored = _StoredFile(file_id, bytes(data), utc_now(), next(self._seq))
        folder[name] = stored
        self.writes.append((folder_id, name, stored.data))
        return self._describe(name, stored)

    async def delete_named_file(self, folder_id: str, name: str) -> bool:
        self._check()
        return self._files.get(folder_id, {}).pop(name, None) is not None

    async def list_files(self, folder_id: str, name_prefix: str = "") -> list[RemoteFile]:
        self._check()
        folder = self._files.get(folder_id, {})
        matching = [
            (name, stored) for name, stored in folder.items()
            if name.startswith(name_prefix)
        ]
        matching.sort(key=lambda item: item[1].seq, reverse=True)
        return [self._describe(name, stored) for name, stored in matching]

    def _describe(self, name: str, stored: _StoredFile) -> RemoteFile:
        return RemoteFile(
            id=stored.id,
            name=name,
            modified_time=stored.modified_time,
            size=len(stored.data),
        )

    # Test helpers

    def get(self, folder_id: str, name: str) -> Optional[bytes]:
        stored = self._files.get(folder_id, {}).get(name)
        return stored.data if stored else None

    def put(self, folder_id: str, name: str, data: bytes) -> None:
        """Place a file without recording it as an engine write."""
        folder = self._files.setdefault(folder_id, {})
        folder[name] = _StoredFile(f"file-{next(self._ids)}", data, utc_now(), next(self._seq))
