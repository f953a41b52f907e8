"""
Single-Slot Debounced Writer

Rapid saves (typing, dragging a slider) would otherwise each become a
remote API call. The writer keeps ONE pending item and one timer:

- schedule(item) replaces the pending item and restarts the timer
- when the timer fires, the pending item is written once
- flush() cancels the timer and writes the pending item now
- cancel() drops the pending item without writing it

Newer items overwrite older ones; nothing is queued. The last item
scheduled is always the one written.
"""

import asyncio
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import structlog


T = TypeVar("T")

logger = structlog.get_logger(__name__)


class DebouncedWriter(Generic[T]):
    """Coalesces scheduled items into one delayed write."""

    def __init__(self, delay_seconds: float, write: Callable[[T], Awaitable[Any]]):
        self._delay = delay_seconds
        self._write = write
        self._pending: Optional[T] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> Optional[T]:
        return self._pending

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def schedule(self, item: T) -> None:
        """Make item the pending write and restart the timer. Needs a running loop."""
        loop = asyncio.get_running_loop()
        self._pending = item
        self._cancel_timer()
        self._handle = loop.call_later(self._delay, self._fire)

    async def flush(self) -> bool:
        """
        Write the pending item now.

        Returns:
            True if there was something to write
        """
        self._cancel_timer()
        if self._pending is None:
            return False
        item, self._pending = self._pending, None
        await self._write(item)
        return True

    def cancel(self) -> Optional[T]:
        """Drop the pending item. Returns what was dropped."""
        self._cancel_timer()
        item, self._pending = self._pending, None
        return item

    async def drain(self) -> None:
        """Wait for writes the timer already started."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.ensure_future(self.flush())
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("debounced_write_failed", error=str(task.exception()))
