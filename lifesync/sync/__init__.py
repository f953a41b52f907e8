"""
Sync Package

The engine and the pure pieces it is built from: conflict detection,
merge, the debounced writer, backups and import/export.
"""

from lifesync.sync.backup import BACKUP_INTERVALS, BackupManager, backup_file_name, is_backup_due
from lifesync.sync.conflict import detect_conflict
from lifesync.sync.debounce import DebouncedWriter
from lifesync.sync.engine import (
    ConflictResolutionInProgressError,
    NotInCloudModeError,
    SyncEngine,
)
from lifesync.sync.merge import (
    MergeError,
    merge_entities,
    merge_envelopes,
    merge_identifiers,
    merge_objects,
    merge_payloads,
)
from lifesync.sync.transfer import (
    ImportFormatError,
    detect_export_format,
    export_envelope,
    import_payload,
)

__all__ = [
    # Engine
    "ConflictResolutionInProgressError",
    "NotInCloudModeError",
    "SyncEngine",
    # Building blocks
    "DebouncedWriter",
    "detect_conflict",
    "MergeError",
    "merge_entities",
    "merge_envelopes",
    "merge_identifiers",
    "merge_objects",
    "merge_payloads",
    # Backups
    "BACKUP_INTERVALS",
    "BackupManager",
    "backup_file_name",
    "is_backup_due",
    # Import / export
    "ImportFormatError",
    "detect_export_format",
    "export_envelope",
    "import_payload",
]
