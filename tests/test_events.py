"""
Tests for the sync event bus.
"""

from lifesync.events import SyncEventBus
from lifesync.models import StorageMode, SyncEventBuilder


class TestSyncEventBus:
    """Tests for fan-out and listener isolation."""

    def test_listeners_receive_in_order(self):
        bus = SyncEventBus()
        calls = []
        bus.subscribe(lambda e: calls.append(("first", e.event_type)))
        bus.subscribe(lambda e: calls.append(("second", e.event_type)))

        event = SyncEventBuilder.mode_change(StorageMode.CLOUD)
        bus.emit(event)

        assert calls == [("first", event.event_type), ("second", event.event_type)]

    def test_failing_listener_does_not_stop_others(self):
        bus = SyncEventBus()
        received = []

        def broken(event):
            raise RuntimeError("listener bug")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        bus.emit(SyncEventBuilder.save_error(RuntimeError("x"), StorageMode.CLOUD))

        assert len(received) == 1

    def test_unsubscribe_is_idempotent(self):
        bus = SyncEventBus()
        unsubscribe = bus.subscribe(lambda e: None)

        unsubscribe()
        unsubscribe()

        assert bus.listener_count == 0

    def test_listener_may_unsubscribe_during_delivery(self):
        bus = SyncEventBus()
        received = []
        holder = {}

        def once(event):
            received.append(event)
            holder["unsubscribe"]()

        holder["unsubscribe"] = bus.subscribe(once)
        bus.emit(SyncEventBuilder.load_start(StorageMode.CLOUD))
        bus.emit(SyncEventBuilder.load_start(StorageMode.CLOUD))

        assert len(received) == 1
