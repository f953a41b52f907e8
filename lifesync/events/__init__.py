from lifesync.events.bus import SyncEventBus, SyncEventListener

__all__ = ["SyncEventBus", "SyncEventListener"]
