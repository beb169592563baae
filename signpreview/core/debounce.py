"""
Debounced update queue.

Holds at most one pending item. Every ``submit`` overwrites the pending item
and restarts the quiescence timer; when the timer fires the latest item is
handed to the async callback. Must be used from within a running event loop.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CoalescingUpdateQueue(Generic[T]):
    """Single-slot, last-write-wins debounce queue."""

    def __init__(self, delay: float, callback: Callable[[T], Awaitable[Any]]):
        """
        Initialize the queue.

        Args:
            delay: Quiescence window in seconds
            callback: Coroutine function receiving the coalesced item
        """
        self.delay = delay
        self.callback = callback
        self._pending: Optional[T] = None
        self._has_pending = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """Whether an item is waiting for the timer."""
        return self._has_pending

    def submit(self, item: T) -> None:
        """Replace the pending item and restart the timer."""
        loop = asyncio.get_running_loop()
        self._pending = item
        self._has_pending = True
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.delay, self._fire)

    def discard(self) -> None:
        """Drop the pending item and its timer; deliveries already running continue."""
        self._take()

    def _take(self) -> Optional[T]:
        item = self._pending
        self._pending = None
        self._has_pending = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return item

    def _fire(self) -> None:
        self._timer = None
        if not self._has_pending:
            return
        item = self._take()
        task = asyncio.get_running_loop().create_task(self._deliver(item))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, item: T) -> None:
        try:
            await self.callback(item)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Debounced update failed: {e}")

    async def flush(self) -> None:
        """Deliver the pending item now, if any."""
        if not self._has_pending:
            return
        await self._deliver(self._take())

    def cancel(self) -> None:
        """Drop the pending item and cancel deliveries still in flight."""
        self._take()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
