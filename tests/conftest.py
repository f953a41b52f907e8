"""
Shared fixtures for LifeSync tests.

Everything runs against the in-memory stores and a controllable clock.
No test talks to the network.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from lifesync.config import DriveSettings, SyncSettings
from lifesync.events import SyncEventBus
from lifesync.models import Envelope, SyncEvent
from lifesync.services import InMemoryLocalStore, InMemoryRemoteStore, StaticCredentialProvider
from lifesync.sync import SyncEngine


T0 = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)

STORAGE_KEY = "lifeos"
REMOTE_FILE = "lifeos.json"


class FakeClock:
    """Clock the tests move by hand."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def tasks_payload(*tasks: dict[str, Any]) -> dict[str, Any]:
    """Payload with the given entities in home.tasks."""
    return {"home": {"tasks": list(tasks)}}


def make_envelope(
    payload: dict[str, Any],
    last_modified: datetime = T0,
    created: Optional[datetime] = None,
) -> Envelope:
    return Envelope(
        schema_version="2.0.0",
        last_modified=last_modified,
        created=created or last_modified,
        payload=payload,
    )


def read_local(store: InMemoryLocalStore) -> Optional[Envelope]:
    raw = store.read(STORAGE_KEY)
    return Envelope.from_json(raw) if raw else None


def read_remote(store: InMemoryRemoteStore) -> Optional[Envelope]:
    raw = store.get(InMemoryRemoteStore.APP_FOLDER_ID, REMOTE_FILE)
    return Envelope.from_json(raw) if raw else None


def put_local(store: InMemoryLocalStore, envelope: Envelope) -> None:
    store.write(STORAGE_KEY, envelope.to_json())


def put_remote(store: InMemoryRemoteStore, envelope: Envelope) -> None:
    store.put(InMemoryRemoteStore.APP_FOLDER_ID, REMOTE_FILE, envelope.to_bytes())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sync_settings():
    return SyncSettings(debounce_ms=50)


@pytest.fixture
def drive_settings():
    return DriveSettings()


@pytest.fixture
def local_store():
    return InMemoryLocalStore()


@pytest.fixture
def remote_store():
    return InMemoryRemoteStore()


@pytest.fixture
def credentials():
    return StaticCredentialProvider("test-token")


@pytest.fixture
def event_bus():
    return SyncEventBus()


@pytest.fixture
def events(event_bus) -> list[SyncEvent]:
    """Every event emitted on event_bus, in order."""
    received: list[SyncEvent] = []
    event_bus.subscribe(received.append)
    return received


@pytest.fixture
def engine(local_store, remote_store, credentials, sync_settings, drive_settings, event_bus, clock):
    return SyncEngine(
        local_store=local_store,
        remote_store=remote_store,
        credentials=credentials,
        sync_settings=sync_settings,
        drive_settings=drive_settings,
        event_bus=event_bus,
        clock=clock,
    )
