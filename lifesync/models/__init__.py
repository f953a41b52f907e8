"""
Data Models Package

This package contains all Pydantic models used by LifeSync.
Every record that crosses a storage boundary conforms to these schemas.
"""

from lifesync.models.app_data import (
    create_default_app_data,
    has_meaningful_data,
    is_entity_list,
    is_identifier_list,
    iter_collections,
    merge_with_defaults,
)
from lifesync.models.envelope import (
    Envelope,
    StorageMetadata,
    ValidationIssue,
    ValidationResult,
    canonical_json,
    utc_now,
)
from lifesync.models.events import (
    SyncEvent,
    SyncEventBuilder,
    SyncEventType,
    SyncSeverity,
)
from lifesync.models.sync import (
    BackupInfo,
    ConflictReport,
    ConflictResolution,
    RemoteFile,
    StorageMode,
    SyncOutcome,
)

__all__ = [
    # Payload defaults
    "create_default_app_data",
    "has_meaningful_data",
    "is_entity_list",
    "is_identifier_list",
    "iter_collections",
    "merge_with_defaults",
    # Envelope models
    "Envelope",
    "StorageMetadata",
    "ValidationIssue",
    "ValidationResult",
    "canonical_json",
    "utc_now",
    # Event models
    "SyncEvent",
    "SyncEventBuilder",
    "SyncEventType",
    "SyncSeverity",
    # Sync state
    "BackupInfo",
    "ConflictReport",
    "ConflictResolution",
    "RemoteFile",
    "StorageMode",
    "SyncOutcome",
]
