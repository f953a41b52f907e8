"""
Cloud Backups

Timestamped copies of the current envelope, kept in a "Backups" subfolder
next to the main data file. The sync path never reads these files; they
exist only for the user to restore from.

Auto-backup is driven by the payload's own settings.backup section:

    {
        "autoBackupEnabled": true,
        "frequency": "weekly",
        "lastBackupTime": 1705312200000,   # epoch milliseconds
        "maxBackups": 5
    }
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import structlog

from lifesync.config import DriveSettings, get_settings
from lifesync.models.envelope import Envelope, utc_now
from lifesync.models.sync import BackupInfo, RemoteFile
from lifesync.services.storage.interface import NotFoundError, RemoteStoreInterface
from lifesync.validation import EnvelopeValidator


logger = structlog.get_logger(__name__)

BACKUP_INTERVALS: dict[str, timedelta] = {
    "daily": timedelta(days=1),
    "every2days": timedelta(days=2),
    "weekly": timedelta(days=7),
    "monthly": timedelta(days=30),
}


def is_backup_due(backup_settings: Optional[dict[str, Any]], now: Optional[datetime] = None) -> bool:
    """
    Decide whether an automatic backup should run now.

    "disabled" and unknown frequencies never run. A missing lastBackupTime
    means no backup was ever taken, so one is due.
    """
    if not backup_settings or not backup_settings.get("autoBackupEnabled"):
        return False

    interval = BACKUP_INTERVALS.get(backup_settings.get("frequency", ""))
    if interval is None:
        return False

    last_backup_ms = backup_settings.get("lastBackupTime")
    if not last_backup_ms:
        return True

    now = now or utc_now()
    last_backup = datetime.fromtimestamp(last_backup_ms / 1000, tz=timezone.utc)
    return now - last_backup > interval


def backup_file_name(prefix: str, now: datetime) -> str:
    """backup_2024-01-15T10-30-00-000Z.json"""
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    stamp = stamp.replace("+00:00", "Z").replace(":", "-").replace(".", "-")
    return f"{prefix}_{stamp}.json"


class BackupManager:
    """Creates, lists, restores and prunes backups in the remote store."""

    def __init__(
        self,
        remote_store: RemoteStoreInterface,
        settings: Optional[DriveSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._remote = remote_store
        self._settings = settings or get_settings().drive
        self._clock = clock or utc_now

    async def _folder(self) -> str:
        app_folder = await self._remote.find_or_create_app_folder()
        return await self._remote.find_or_create_subfolder(
            app_folder, self._settings.backups_folder_name
        )

    @staticmethod
    def _to_info(remote_file: RemoteFile) -> BackupInfo:
        name = remote_file.name
        if name.endswith(".json"):
            name = name[:-len(".json")]
        return BackupInfo(
            id=remote_file.id,
            name=name,
            file_name=remote_file.name,
            modified_time=remote_file.modified_time,
            size=remote_file.size,
        )

    async def create_backup(self, envelope: Envelope, prefix: Optional[str] = None) -> BackupInfo:
        """Write a copy of envelope under a fresh timestamped name."""
        file_name = backup_file_name(prefix or self._settings.backup_prefix, self._clock())
        folder = await self._folder()
        stored = await self._remote.write_named_file(folder, file_name, envelope.to_bytes())

        logger.info("backup_created", file_name=file_name, size=stored.size)
        return self._to_info(stored)

    async def list_backups(self) -> list[BackupInfo]:
        """All backups, newest first."""
        folder = await self._folder()
        files = await self._remote.list_files(folder)
        return [self._to_info(f) for f in files if f.name.endswith(".json")]

    async def restore_backup(self, file_name: str) -> Envelope:
        """
        Read a backup back into an Envelope.

        Does not touch the main data file; the caller decides what to save.

        Raises:
            NotFoundError: If no backup has that name
            EnvelopeValidationError: If the backup is malformed
        """
        folder = await self._folder()
        raw = await self._remote.read_named_file(folder, file_name)
        if raw is None:
            raise NotFoundError(f"Backup not found: {file_name}")
        return EnvelopeValidator().validate_or_raise(raw, side="backup")

    async def delete_backup(self, file_name: str) -> bool:
        folder = await self._folder()
        deleted = await self._remote.delete_named_file(folder, file_name)
        if deleted:
            logger.info("backup_deleted", file_name=file_name)
        return deleted

    async def cleanup_old_backups(self, max_backups: int) -> int:
        """
        Delete all but the newest max_backups backups.

        Returns:
            Number of backups deleted
        """
        backups = await self.list_backups()
        deleted = 0
        for backup in backups[max(max_backups, 0):]:
            if await self.delete_backup(backup.file_name):
                deleted += 1

        if deleted:
            logger.info("backups_pruned", deleted=deleted, kept=max_backups)
        return deleted
