"""
Sync Event Bus

DESIGN DECISION: Every sync event goes to two places:
1. The structured local log (for debugging)
2. Every subscribed listener (status indicators, views that must refresh)

The bus:
- Is synchronous; listeners are called in subscription order
- Isolates listeners - one failing listener does not stop the others
- Returns an unsubscribe callable from subscribe()
"""

from typing import Callable

import structlog

from lifesync.models.events import SyncEvent, SyncSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


SyncEventListener = Callable[[SyncEvent], None]


class SyncEventBus:
    """Fan-out of sync events to the log and to subscribers."""

    def __init__(self):
        self._listeners: list[SyncEventListener] = []
        self._logger = structlog.get_logger("lifesync.events")

    def subscribe(self, listener: SyncEventListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A callable that removes the listener again. Calling it twice is harmless.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, event: SyncEvent) -> None:
        """Log the event, then deliver it to every listener."""
        log_dict = event.to_log_dict()

        if event.severity == SyncSeverity.ERROR:
            self._logger.error("sync_event", **log_dict)
        elif event.severity == SyncSeverity.WARNING:
            self._logger.warning("sync_event", **log_dict)
        elif event.severity == SyncSeverity.DEBUG:
            self._logger.debug("sync_event", **log_dict)
        else:
            self._logger.info("sync_event", **log_dict)

        # Copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                self._logger.error(
                    "sync_listener_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                    event_type=event.event_type.value,
                    exc_info=True,
                )
