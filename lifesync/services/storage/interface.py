"""
Abstract Storage Interface

DESIGN DECISION: The sync engine only talks to these two interfaces.
This allows us to:
1. Swap Google Drive for another object store later
2. Use in-memory storage for testing
3. Keep sync logic decoupled from any remote API's request shapes

The interfaces are intentionally small - one local slot, one folder of
named files. Adapters carry no business logic.
"""

from abc import ABC, abstractmethod
from typing import Optional

from lifesync.models.sync import RemoteFile


class LocalStoreInterface(ABC):
    """
    Synchronous on-device key-value slot.

    Writes are capacity-bounded and may fail with LocalWriteError;
    such failures must reach the caller.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """
        Read the record stored under key.

        Returns:
            The stored text, or None if the slot is empty
        """
        pass

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """
        Replace the record stored under key.

        Raises:
            LocalWriteError: If the device refuses the write (quota, IO)
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> bool:
        """
        Clear the slot.

        Returns:
            True if something was removed
        """
        pass

    def size(self, key: str) -> int:
        """Size in bytes of the stored record (0 if empty)."""
        value = self.read(key)
        return len(value.encode("utf-8")) if value else 0


class RemoteStoreInterface(ABC):
    """
    Async access to named files inside a per-user private app folder.

    Every method may raise RemoteTransientError or RemoteAuthError.
    """

    @abstractmethod
    async def find_or_create_app_folder(self) -> str:
        """
        Locate the app folder, creating it on first use.

        Returns:
            Folder handle
        """
        pass

    @abstractmethod
    async def find_or_create_subfolder(self, parent_id: str, name: str) -> str:
        """
        Locate a named subfolder of parent_id, creating it if missing.

        Returns:
            Folder handle
        """
        pass

    @abstractmethod
    async def read_named_file(self, folder_id: str, name: str) -> Optional[bytes]:
        """
        Download a file's content.

        Returns:
            The bytes, or None if no such file exists
        """
        pass

    @abstractmethod
    async def write_named_file(self, folder_id: str, name: str, data: bytes) -> RemoteFile:
        """
        Create the file, or replace its content if it exists.

        Returns:
            The stored file's metadata
        """
        pass

    @abstractmethod
    async def delete_named_file(self, folder_id: str, name: str) -> bool:
        """
        Delete a file.

        Returns:
            True if deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def list_files(self, folder_id: str, name_prefix: str = "") -> list[RemoteFile]:
        """
        List files in a folder whose name starts with name_prefix.

        Returns:
            Files, newest first
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class LocalWriteError(StorageError):
    """The local slot refused a write (quota exceeded, IO failure)."""
    pass


class RemoteError(StorageError):
    """The remote store returned an error that retrying will not fix."""
    pass


class RemoteTransientError(RemoteError):
    """Network failure, rate limit or server error. The next save may succeed."""
    pass


class RemoteAuthError(RemoteError):
    """The credential is missing, expired or revoked."""
    pass
