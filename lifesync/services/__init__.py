"""Services package."""

from lifesync.services.session import (
    CredentialProvider,
    GoogleCredentialProvider,
    StaticCredentialProvider,
)
from lifesync.services.storage import (
    FileLocalStore,
    GoogleDriveRemoteStore,
    InMemoryLocalStore,
    InMemoryRemoteStore,
    LocalStoreInterface,
    LocalWriteError,
    NotFoundError,
    RemoteAuthError,
    RemoteError,
    RemoteStoreInterface,
    RemoteTransientError,
    StorageError,
)

__all__ = [
    # Session
    "CredentialProvider",
    "GoogleCredentialProvider",
    "StaticCredentialProvider",
    # Storage
    "FileLocalStore",
    "GoogleDriveRemoteStore",
    "InMemoryLocalStore",
    "InMemoryRemoteStore",
    "LocalStoreInterface",
    "LocalWriteError",
    "NotFoundError",
    "RemoteAuthError",
    "RemoteError",
    "RemoteStoreInterface",
    "RemoteTransientError",
    "StorageError",
]
