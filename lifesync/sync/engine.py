"""
Synchronization Engine

Keeps one local slot and one remote file consistent for a single user.

FLOW:
1. Session -> mode. Signed in with a credential means "cloud", otherwise
   "local". The first time cloud mode is entered, one initial sync runs.
2. Save -> local slot immediately, remote after a debounce window (or
   at once when immediate=True).
3. Load -> in cloud mode, flush pending writes, then prefer remote.
4. Conflict -> surfaced as a ConflictReport, never resolved silently.
   While a conflict is held, nothing is pushed to remote.
5. Resolution -> adopt local, adopt remote, or merge (local wins).

CRITICAL RULES:
- The local slot is always written first and its failures always reach
  the caller. Remote failures are logged and reported as events.
- Remote writes are serialized, so an older write never lands after a
  newer one.
- The engine never clears local data when falling back to local mode.
"""

import asyncio
from copy import deepcopy
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Union

import structlog
from pydantic import ValidationError

from lifesync.config import DriveSettings, SyncSettings, get_settings
from lifesync.events import SyncEventBus, SyncEventListener
from lifesync.models.envelope import Envelope, utc_now
from lifesync.models.events import SyncEvent, SyncEventBuilder
from lifesync.models.sync import (
    BackupInfo,
    ConflictReport,
    ConflictResolution,
    StorageMode,
)
from lifesync.services.session import CredentialProvider
from lifesync.services.storage.interface import (
    LocalStoreInterface,
    NotFoundError,
    RemoteAuthError,
    RemoteError,
    RemoteStoreInterface,
)
from lifesync.sync.backup import BackupManager, is_backup_due
from lifesync.sync.conflict import detect_conflict
from lifesync.sync.debounce import DebouncedWriter
from lifesync.sync.merge import MergeError, merge_envelopes
from lifesync.validation import EnvelopeValidationError, EnvelopeValidator


class ConflictResolutionInProgressError(Exception):
    """A second resolution was requested while one is still running."""
    pass


class NotInCloudModeError(Exception):
    """The operation needs a signed-in session."""
    pass


class SyncEngine:
    """
    Dual-write sync between a local slot and a remote app folder.

    All methods run on one asyncio loop. The engine holds no threads.
    """

    def __init__(
        self,
        local_store: LocalStoreInterface,
        remote_store: RemoteStoreInterface,
        credentials: CredentialProvider,
        sync_settings: Optional[SyncSettings] = None,
        drive_settings: Optional[DriveSettings] = None,
        event_bus: Optional[SyncEventBus] = None,
        validator: Optional[EnvelopeValidator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._settings = sync_settings or get_settings().sync
        self._drive_settings = drive_settings or get_settings().drive
        self._local = local_store
        self._remote = remote_store
        self._credentials = credentials
        self._bus = event_bus or SyncEventBus()
        self._validator = validator or EnvelopeValidator(self._settings.schema_version)
        self._clock = clock or utc_now
        self._backups = BackupManager(remote_store, self._drive_settings, self._clock)
        self._logger = structlog.get_logger(__name__)

        self._mode = StorageMode.LOCAL
        self._initial_sync_done = False
        self._held_conflict: Optional[ConflictReport] = None
        self._resolving = False
        self._remote_lock = asyncio.Lock()
        self._writer: DebouncedWriter[Envelope] = DebouncedWriter(
            self._settings.debounce_seconds, self._push
        )

    # =========================================================================
    # State
    # =========================================================================

    @property
    def mode(self) -> StorageMode:
        return self._mode

    @property
    def is_cloud_mode(self) -> bool:
        return self._mode == StorageMode.CLOUD

    @property
    def initial_sync_done(self) -> bool:
        return self._initial_sync_done

    @property
    def held_conflict(self) -> Optional[ConflictReport]:
        """The unresolved conflict, if one was detected."""
        return self._held_conflict

    @property
    def is_resolving(self) -> bool:
        return self._resolving

    @property
    def has_pending_write(self) -> bool:
        return self._writer.has_pending

    @property
    def backups(self) -> BackupManager:
        return self._backups

    def subscribe(self, listener: SyncEventListener) -> Callable[[], None]:
        """Register for sync events. Returns an unsubscribe callable."""
        return self._bus.subscribe(listener)

    def _emit(self, event: SyncEvent) -> None:
        self._bus.emit(event)

    # =========================================================================
    # Mode management
    # =========================================================================

    async def refresh_session(self) -> StorageMode:
        """
        Re-read the session and switch mode if it changed.

        Runs the initial sync when cloud mode is active and no initial sync
        has completed yet in this session.
        """
        signed_in = self._credentials.is_authenticated and bool(self._credentials.credential)

        if signed_in and self._mode == StorageMode.LOCAL:
            self._mode = StorageMode.CLOUD
            self._emit(SyncEventBuilder.mode_change(self._mode, reason="signed_in"))
        elif not signed_in and self._mode == StorageMode.CLOUD:
            self._fall_back_to_local(reason="signed_out")

        if self.is_cloud_mode and not self._initial_sync_done:
            await self.initial_sync()

        return self._mode

    def _fall_back_to_local(self, reason: str) -> None:
        """Leave cloud mode. The local slot already holds every save."""
        dropped = self._writer.cancel()
        was_cloud = self.is_cloud_mode

        self._mode = StorageMode.LOCAL
        self._initial_sync_done = False
        self._held_conflict = None

        self._logger.warning(
            "fell_back_to_local",
            reason=reason,
            dropped_pending_write=dropped is not None,
        )
        if was_cloud:
            self._emit(SyncEventBuilder.mode_change(self._mode, reason=reason))

    async def initial_sync(self) -> Optional[ConflictReport]:
        """
        Reconcile both sides after entering cloud mode.

        Returns:
            The conflict report, or None if the remote side could not be
            reached (the next refresh_session() tries again)
        """
        if not self.is_cloud_mode:
            raise NotInCloudModeError("Initial sync needs a signed-in session")

        self._emit(SyncEventBuilder.load_start(self._mode))
        try:
            local = self._read_local()
            remote = await self._read_remote()
            self._emit(SyncEventBuilder.load_success(self._mode, found=remote is not None))

            report = detect_conflict(local, remote)
            await self._reconcile(report, local, remote)
        except RemoteAuthError as e:
            self._emit(SyncEventBuilder.load_error(e, self._mode))
            self._fall_back_to_local(reason="auth_error")
            return None
        except RemoteError as e:
            self._emit(SyncEventBuilder.load_error(e, self._mode))
            return None

        self._initial_sync_done = True
        return report

    async def _reconcile(
        self,
        report: ConflictReport,
        local: Optional[Envelope],
        remote: Optional[Envelope],
    ) -> None:
        if report.has_conflict:
            self._held_conflict = report
            self._emit(SyncEventBuilder.conflict_detected(self._mode, report))
            return

        if report.should_pull and remote is not None:
            self._adopt(remote, source="remote")
        elif report.should_push and local is not None:
            await self._send(local, immediate=True)

        self._emit(SyncEventBuilder.sync_completed(self._mode, report.outcome))

    # =========================================================================
    # Local and remote access
    # =========================================================================

    def _read_local(self) -> Optional[Envelope]:
        raw = self._local.read(self._settings.storage_key)
        if raw is None:
            return None
        try:
            return Envelope.from_json(raw)
        except ValidationError as e:
            self._logger.error(
                "local_record_malformed",
                storage_key=self._settings.storage_key,
                error_count=e.error_count(),
            )
            return None

    def _write_local(self, envelope: Envelope) -> None:
        self._local.write(self._settings.storage_key, envelope.to_json())

    def _adopt(self, envelope: Envelope, source: str) -> None:
        """Replace the local slot and tell listeners to refresh."""
        self._write_local(envelope)
        self._emit(SyncEventBuilder.data_changed(self._mode, envelope.payload, source))

    async def _read_remote_raw(self) -> Optional[bytes]:
        folder = await self._remote.find_or_create_app_folder()
        return await self._remote.read_named_file(folder, self._drive_settings.file_name)

    async def _read_remote(self) -> Optional[Envelope]:
        raw = await self._read_remote_raw()
        if raw is None:
            return None
        try:
            return Envelope.from_json(raw)
        except ValidationError as e:
            raise RemoteError(f"Remote record is malformed: {e.error_count()} error(s)") from e

    async def _send(self, envelope: Envelope, immediate: bool) -> None:
        """Write envelope to remote. Errors propagate."""
        self._emit(SyncEventBuilder.save_start(self._mode, immediate))
        data = envelope.to_bytes()
        async with self._remote_lock:
            folder = await self._remote.find_or_create_app_folder()
            await self._remote.write_named_file(folder, self._drive_settings.file_name, data)
        self._emit(SyncEventBuilder.save_success(self._mode, len(data)))

    async def _push(self, envelope: Envelope, immediate: bool = False) -> bool:
        """
        Write envelope to remote, reporting failures as events.

        Returns:
            True if the remote now holds envelope
        """
        if not self.is_cloud_mode:
            return False
        if self._held_conflict is not None:
            self._logger.info("remote_push_withheld", reason="unresolved_conflict")
            return False

        try:
            await self._send(envelope, immediate)
        except RemoteAuthError as e:
            self._emit(SyncEventBuilder.save_error(e, self._mode))
            self._fall_back_to_local(reason="auth_error")
            return False
        except RemoteError as e:
            self._emit(SyncEventBuilder.save_error(e, self._mode))
            return False
        return True

    def _next_timestamp(self, previous: Optional[datetime]) -> datetime:
        """Current time, but always later than previous."""
        now = self._clock()
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)
        return now

    # =========================================================================
    # Save / load
    # =========================================================================

    async def save(self, payload: dict[str, Any], immediate: bool = False) -> Envelope:
        """
        Persist a new payload.

        Raises:
            LocalWriteError: If the local slot refuses the write
        """
        current = self._read_local()
        now = self._next_timestamp(current.last_modified if current else None)
        envelope = Envelope(
            schema_version=self._settings.schema_version,
            last_modified=now,
            created=current.created if current else now,
            payload=payload,
        )
        await self.save_envelope(envelope, immediate=immediate)
        return envelope

    async def save_envelope(self, envelope: Envelope, immediate: bool = False) -> None:
        """Write envelope locally, then push or schedule it for remote."""
        self._write_local(envelope)

        if not self.is_cloud_mode:
            return

        if immediate:
            self._writer.cancel()
            await self._push(envelope, immediate=True)
        else:
            self._writer.schedule(envelope)

    async def flush(self) -> bool:
        """
        Push the pending debounced write now.

        Returns:
            True if a write was pending
        """
        flushed = await self._writer.flush()
        await self._writer.drain()
        return flushed

    async def load(self) -> Optional[Envelope]:
        """
        Current envelope, preferring remote in cloud mode.

        A remote failure falls back to the local copy. While a conflict is
        held the local copy is returned and left untouched.
        """
        if not self.is_cloud_mode:
            return self._read_local()

        await self.flush()

        self._emit(SyncEventBuilder.load_start(self._mode))
        try:
            remote = await self._read_remote()
        except RemoteAuthError as e:
            self._emit(SyncEventBuilder.load_error(e, self._mode))
            self._fall_back_to_local(reason="auth_error")
            return self._read_local()
        except RemoteError as e:
            self._emit(SyncEventBuilder.load_error(e, self._mode))
            return self._read_local()

        self._emit(SyncEventBuilder.load_success(self._mode, found=remote is not None))

        if remote is None or self._held_conflict is not None:
            return self._read_local()

        self._write_local(remote)
        return remote

    def load_local(self) -> Optional[Envelope]:
        """The local slot only. Malformed records read as None."""
        return self._read_local()

    async def sync_now(self) -> None:
        """Re-stamp the local envelope and push it at once."""
        if not self.is_cloud_mode:
            self._logger.info("sync_now_skipped", reason="local_mode")
            return

        self._writer.cancel()
        current = self._read_local()
        if current is None:
            self._logger.info("sync_now_skipped", reason="no_local_record")
            return

        restamped = current.model_copy(
            update={"last_modified": self._next_timestamp(current.last_modified)}
        )
        self._write_local(restamped)
        await self._push(restamped, immediate=True)

    async def reset(self) -> None:
        """
        Clear the local slot and, in cloud mode, delete the remote file.

        Raises:
            RemoteError: If the remote delete fails (local is already cleared)
        """
        self._writer.cancel()
        self._held_conflict = None
        self._local.remove(self._settings.storage_key)
        self._logger.warning("local_record_cleared", storage_key=self._settings.storage_key)

        if self.is_cloud_mode:
            async with self._remote_lock:
                folder = await self._remote.find_or_create_app_folder()
                await self._remote.delete_named_file(folder, self._drive_settings.file_name)
            self._logger.warning("remote_record_deleted", file_name=self._drive_settings.file_name)

    def get_storage_info(self) -> dict[str, Any]:
        current = self._read_local()
        return {
            "mode": self._mode.value,
            "storage_key": self._settings.storage_key,
            "local_size_bytes": self._local.size(self._settings.storage_key),
            "local_last_modified": current.last_modified.isoformat() if current else None,
            "initial_sync_done": self._initial_sync_done,
            "has_pending_write": self._writer.has_pending,
            "has_conflict": self._held_conflict is not None,
        }

    # =========================================================================
    # Conflicts
    # =========================================================================

    async def detect_conflict(self) -> ConflictReport:
        """
        Compare both sides now.

        A real conflict is remembered so that remote pushes stay withheld
        until it is resolved. Remote read errors propagate.
        """
        if not self.is_cloud_mode:
            raise NotInCloudModeError("Conflict detection needs a signed-in session")

        local = self._read_local()
        remote = await self._read_remote()
        report = detect_conflict(local, remote)
        self._held_conflict = report if report.has_conflict else None
        return report

    async def resolve_conflict(
        self,
        strategy: Union[ConflictResolution, str],
    ) -> Envelope:
        """
        Apply the caller's choice.

        Returns:
            The envelope both sides now hold

        Raises:
            ConflictResolutionInProgressError: If a resolution is running
            NotInCloudModeError: If not signed in
            MergeError: If either side is malformed (both sides untouched)
            RemoteError: If the remote side fails (local restored on merge)
        """
        strategy = ConflictResolution(strategy)
        if self._resolving:
            raise ConflictResolutionInProgressError("A conflict resolution is already running")
        if not self.is_cloud_mode:
            raise NotInCloudModeError("Conflict resolution needs a signed-in session")

        self._resolving = True
        try:
            dropped = self._writer.cancel()
            if dropped is not None:
                self._logger.info("pending_write_dropped", reason="conflict_resolution")

            if strategy == ConflictResolution.ADOPT_REMOTE:
                envelope = await self._resolve_adopt_remote()
            elif strategy == ConflictResolution.ADOPT_LOCAL:
                envelope = await self._resolve_adopt_local()
            else:
                envelope = await self._resolve_merge()
        except RemoteAuthError:
            self._fall_back_to_local(reason="auth_error")
            raise
        finally:
            self._resolving = False

        self._held_conflict = None
        self._emit(SyncEventBuilder.conflict_resolved(self._mode, strategy))
        self._emit(SyncEventBuilder.data_changed(self._mode, envelope.payload, strategy.value))
        return envelope

    async def _resolve_adopt_remote(self) -> Envelope:
        remote = await self._read_remote()
        if remote is None:
            raise NotFoundError("No remote record to adopt")
        self._write_local(remote)
        return remote

    async def _resolve_adopt_local(self) -> Envelope:
        local = self._read_local()
        if local is None:
            raise NotFoundError("No local record to adopt")
        await self._send(local, immediate=True)
        return local

    async def _resolve_merge(self) -> Envelope:
        local_raw = self._local.read(self._settings.storage_key)
        remote_raw = await self._read_remote_raw()
        if local_raw is None or remote_raw is None:
            raise MergeError("Both sides must hold a record to merge")

        try:
            local = self._validator.validate_or_raise(local_raw, side="local")
            remote = self._validator.validate_or_raise(remote_raw, side="remote")
        except EnvelopeValidationError as e:
            raise MergeError(str(e)) from e

        merged = merge_envelopes(
            local,
            remote,
            now=self._next_timestamp(max(local.last_modified, remote.last_modified)),
        )

        self._write_local(merged)
        try:
            await self._send(merged, immediate=True)
        except RemoteError:
            self._local.write(self._settings.storage_key, local_raw)
            self._logger.error("merge_rolled_back", reason="remote_write_failed")
            raise
        return merged

    async def check_for_remote_updates(self) -> bool:
        """
        Pull remote if another device saved since our last sync.

        One-shot; consumers call it on their own schedule.

        Returns:
            True if the local copy was replaced
        """
        if not self.is_cloud_mode or self._resolving or self._held_conflict is not None:
            return False
        if self._writer.has_pending:
            return False

        try:
            remote = await self._read_remote()
        except RemoteAuthError:
            self._fall_back_to_local(reason="auth_error")
            return False
        except RemoteError as e:
            self._logger.warning("remote_update_check_failed", error=str(e))
            return False

        if remote is None:
            return False

        local = self._read_local()
        if local is not None:
            if remote.last_modified <= local.last_modified or local.same_payload(remote):
                return False

        self._adopt(remote, source="remote")
        return True

    # =========================================================================
    # Backups
    # =========================================================================

    async def create_cloud_backup(self, prefix: Optional[str] = None) -> BackupInfo:
        """
        Copy the local envelope into the Backups folder.

        Raises:
            NotInCloudModeError: If not signed in
            NotFoundError: If there is nothing to back up
        """
        if not self.is_cloud_mode:
            raise NotInCloudModeError("Backups need a signed-in session")

        local = self._read_local()
        if local is None:
            raise NotFoundError("No local record to back up")

        info = await self._backups.create_backup(local, prefix)
        self._emit(SyncEventBuilder.backup_created(self._mode, info.file_name))
        return info

    async def run_auto_backup(self) -> Optional[BackupInfo]:
        """
        Create a backup if the payload's backup settings say one is due.

        Old backups are pruned to maxBackups and lastBackupTime is saved.
        Returns the new backup, or None if none was due or it failed.
        """
        if not self.is_cloud_mode or not self._initial_sync_done:
            return None

        local = self._read_local()
        if local is None:
            return None

        backup_settings = (local.payload.get("settings") or {}).get("backup") or {}
        now = self._clock()
        if not is_backup_due(backup_settings, now):
            return None

        try:
            info = await self.create_cloud_backup()
            await self._backups.cleanup_old_backups(
                backup_settings.get("maxBackups") or self._settings.default_max_backups
            )
        except RemoteError as e:
            self._logger.error("auto_backup_failed", error=str(e))
            return None

        payload = deepcopy(local.payload)
        payload.setdefault("settings", {}).setdefault("backup", {})
        payload["settings"]["backup"] = {
            **payload["settings"]["backup"],
            "lastBackupTime": int(now.timestamp() * 1000),
        }
        await self.save(payload)
        return info

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def shutdown(self) -> None:
        """Push anything pending and stop all timers."""
        await self.flush()
        self._writer.cancel()
        self._logger.info("sync_engine_shutdown", mode=self._mode.value)

    async def __aenter__(self) -> "SyncEngine":
        await self.refresh_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()
