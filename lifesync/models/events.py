"""
Sync Event Models for LifeSync

Every observable step of the sync engine produces a SyncEvent.
Consumers subscribe to these to show sync status, surface errors and
refresh their views when the local copy changes underneath them.

DESIGN DECISION: Events are plain records. They carry enough context to be
logged as-is, so the same object feeds both the status UI and the log.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from lifesync.models.envelope import utc_now
from lifesync.models.sync import ConflictReport, ConflictResolution, StorageMode, SyncOutcome


class SyncEventType(str, Enum):
    """Types of events the engine emits."""
    # Remote writes
    SAVE_START = "save_start"
    SAVE_SUCCESS = "save_success"
    SAVE_ERROR = "save_error"

    # Remote reads
    LOAD_START = "load_start"
    LOAD_SUCCESS = "load_success"
    LOAD_ERROR = "load_error"

    # Engine state
    MODE_CHANGE = "mode_change"
    DATA_CHANGED = "data_changed"
    SYNC_COMPLETED = "sync_completed"

    # Conflicts
    CONFLICT_DETECTED = "conflict_detected"
    CONFLICT_RESOLVED = "conflict_resolved"

    # Backups
    BACKUP_CREATED = "backup_created"


class SyncSeverity(str, Enum):
    """Severity level for sync events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class SyncEvent(BaseModel):
    """A single notification from the sync engine."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=utc_now)

    event_type: SyncEventType
    severity: SyncSeverity = SyncSeverity.INFO

    mode: Optional[StorageMode] = Field(
        default=None,
        description="Engine mode when the event was emitted"
    )
    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    # Only set on DATA_CHANGED: the payload consumers should refresh from
    data: Optional[dict[str, Any]] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.

        The payload itself is left out; it can be large and is personal data.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "mode": self.mode.value if self.mode else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class SyncEventBuilder:
    """
    Helper class to build sync events with common patterns.

    Usage:
        event = SyncEventBuilder.save_error(error, mode)
        event = SyncEventBuilder.mode_change(StorageMode.CLOUD)
    """

    @staticmethod
    def save_start(mode: StorageMode, immediate: bool) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SAVE_START,
            severity=SyncSeverity.DEBUG,
            mode=mode,
            description="Remote save started",
            details={"immediate": immediate},
        )

    @staticmethod
    def save_success(mode: StorageMode, size: int) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SAVE_SUCCESS,
            mode=mode,
            description="Saved to remote storage",
            details={"size_bytes": size},
        )

    @staticmethod
    def save_error(error: Exception, mode: StorageMode) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SAVE_ERROR,
            severity=SyncSeverity.ERROR,
            mode=mode,
            description="Remote save failed",
            error_message=str(error),
            details={"error_type": type(error).__name__},
        )

    @staticmethod
    def load_start(mode: StorageMode) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.LOAD_START,
            severity=SyncSeverity.DEBUG,
            mode=mode,
            description="Remote load started",
        )

    @staticmethod
    def load_success(mode: StorageMode, found: bool) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.LOAD_SUCCESS,
            mode=mode,
            description="Loaded from remote storage" if found else "No remote record",
            details={"found": found},
        )

    @staticmethod
    def load_error(error: Exception, mode: StorageMode) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.LOAD_ERROR,
            severity=SyncSeverity.WARNING,
            mode=mode,
            description="Remote load failed, using local copy",
            error_message=str(error),
            details={"error_type": type(error).__name__},
        )

    @staticmethod
    def mode_change(mode: StorageMode, reason: str = "session") -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.MODE_CHANGE,
            mode=mode,
            description=f"Storage mode changed to {mode.value}",
            details={"reason": reason},
        )

    @staticmethod
    def data_changed(mode: StorageMode, payload: dict[str, Any], source: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.DATA_CHANGED,
            mode=mode,
            description=f"Local data replaced from {source}",
            details={"source": source},
            data=payload,
        )

    @staticmethod
    def sync_completed(mode: StorageMode, outcome: SyncOutcome) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SYNC_COMPLETED,
            mode=mode,
            description=f"Sync completed: {outcome.value}",
            details={"outcome": outcome.value},
        )

    @staticmethod
    def conflict_detected(mode: StorageMode, report: ConflictReport) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.CONFLICT_DETECTED,
            severity=SyncSeverity.WARNING,
            mode=mode,
            description="Local copy has unsynced edits that differ from remote",
            details=report.model_dump(mode="json"),
        )

    @staticmethod
    def conflict_resolved(mode: StorageMode, resolution: ConflictResolution) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.CONFLICT_RESOLVED,
            mode=mode,
            description=f"Conflict resolved using: {resolution.value}",
            details={"resolution": resolution.value},
        )

    @staticmethod
    def backup_created(mode: StorageMode, file_name: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.BACKUP_CREATED,
            mode=mode,
            description=f"Backup created: {file_name}",
            details={"file_name": file_name},
        )
