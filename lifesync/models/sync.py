"""
Sync State Models

Enums and small records shared by the engine, the conflict detector and
the remote adapters.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from lifesync.models.envelope import StorageMetadata


class StorageMode(str, Enum):
    """Whether only the local slot is authoritative or remote is mirrored too."""
    LOCAL = "local"
    CLOUD = "cloud"


class ConflictResolution(str, Enum):
    """
    The caller's choice once a real conflict is surfaced.

    Values match what the existing conflict dialog sends.
    """
    ADOPT_LOCAL = "local"
    ADOPT_REMOTE = "cloud"
    MERGE = "merge"


class SyncOutcome(str, Enum):
    """What comparing the two sides concluded, and so what to do next."""
    NO_REMOTE = "no_remote"            # push local
    NO_LOCAL = "no_local"              # pull remote
    LOCAL_EMPTY = "local_empty"        # pull remote
    IN_SYNC = "in_sync"                # nothing to do
    REMOTE_NEWER = "remote_newer"      # pull remote
    TIMESTAMP_ONLY = "timestamp_only"  # push local to re-stamp remote
    CONFLICT = "conflict"              # ask the caller


class ConflictReport(BaseModel):
    """Result of conflict detection."""

    has_conflict: bool
    outcome: SyncOutcome
    local_meta: Optional[StorageMetadata] = None
    remote_meta: Optional[StorageMetadata] = None

    @property
    def should_pull(self) -> bool:
        return self.outcome in (
            SyncOutcome.NO_LOCAL,
            SyncOutcome.LOCAL_EMPTY,
            SyncOutcome.REMOTE_NEWER,
        )

    @property
    def should_push(self) -> bool:
        return self.outcome in (SyncOutcome.NO_REMOTE, SyncOutcome.TIMESTAMP_ONLY)


class RemoteFile(BaseModel):
    """A file inside the remote app folder."""

    id: str
    name: str
    modified_time: Optional[datetime] = None
    size: int = Field(default=0, ge=0)


class BackupInfo(BaseModel):
    """A timestamped backup in the Backups subfolder."""

    id: str
    name: str = Field(..., description="Display name derived from the file name")
    file_name: str
    modified_time: Optional[datetime] = None
    size: int = Field(default=0, ge=0)
