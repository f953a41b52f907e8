"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the local
slot and the remote object store. Google Drive is the remote backend, but
the engine only depends on the interfaces.
"""

from lifesync.services.storage.interface import (
    LocalStoreInterface,
    LocalWriteError,
    NotFoundError,
    RemoteAuthError,
    RemoteError,
    RemoteStoreInterface,
    RemoteTransientError,
    StorageError,
)
from lifesync.services.storage.google_drive import GoogleDriveRemoteStore
from lifesync.services.storage.local_file import FileLocalStore
from lifesync.services.storage.memory import InMemoryLocalStore, InMemoryRemoteStore

__all__ = [
    # Interfaces
    "LocalStoreInterface",
    "RemoteStoreInterface",
    # Exceptions
    "LocalWriteError",
    "NotFoundError",
    "RemoteAuthError",
    "RemoteError",
    "RemoteTransientError",
    "StorageError",
    # Implementations
    "FileLocalStore",
    "GoogleDriveRemoteStore",
    "InMemoryLocalStore",
    "InMemoryRemoteStore",
]
