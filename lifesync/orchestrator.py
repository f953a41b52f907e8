"""
Main Orchestrator for LifeSync

Wires the local store, the Drive adapter, the credential provider and the
event bus into one SyncEngine, and installs the exit hook that pushes any
pending write before the process ends.

DESIGN DECISION: Components are created here and nowhere else. Tests and
scripts pass their own stores in; the defaults are the on-disk slot and
Google Drive.
"""

import asyncio
import atexit
from typing import Callable, Optional

import structlog

from lifesync.config import get_settings
from lifesync.events import SyncEventBus
from lifesync.services.session import CredentialProvider, StaticCredentialProvider
from lifesync.services.storage import (
    FileLocalStore,
    GoogleDriveRemoteStore,
    LocalStoreInterface,
    RemoteStoreInterface,
)
from lifesync.sync.engine import SyncEngine


logger = structlog.get_logger(__name__)


def create_app_components(
    credentials: Optional[CredentialProvider] = None,
    local_store: Optional[LocalStoreInterface] = None,
    remote_store: Optional[RemoteStoreInterface] = None,
    event_bus: Optional[SyncEventBus] = None,
) -> SyncEngine:
    """
    Factory function to create a ready-to-use engine.

    Args:
        credentials: Session source. Defaults to a signed-out provider, so
            the engine starts in local mode.
        local_store: Defaults to the on-disk slot under settings.sync.data_dir.
        remote_store: Defaults to Google Drive using credentials.

    Returns:
        The engine. Call refresh_session() (or use it as an async context
        manager) to pick up the current session.
    """
    settings = get_settings()
    credentials = credentials or StaticCredentialProvider()

    engine = SyncEngine(
        local_store=local_store or FileLocalStore(
            settings.sync.data_path, settings.sync.local_quota_bytes
        ),
        remote_store=remote_store or GoogleDriveRemoteStore(credentials, settings.drive),
        credentials=credentials,
        sync_settings=settings.sync,
        drive_settings=settings.drive,
        event_bus=event_bus,
    )

    logger.info(
        "sync_engine_created",
        storage_key=settings.sync.storage_key,
        debounce_ms=settings.sync.debounce_ms,
    )
    return engine


def _flush_on_exit(engine: SyncEngine) -> None:
    if not engine.has_pending_write:
        return
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(engine.flush())
        return
    # A loop is still running; it owns the engine and must flush it itself
    logger.warning("exit_flush_skipped", reason="event_loop_running")


def register_exit_flush(engine: SyncEngine) -> Callable[[], None]:
    """
    Push the pending write when the interpreter exits.

    Returns:
        A callable that removes the hook again
    """
    def hook() -> None:
        _flush_on_exit(engine)

    atexit.register(hook)

    def unregister() -> None:
        atexit.unregister(hook)

    return unregister
