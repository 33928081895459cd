"""
Rate Limiter - FIFO dispatch queue for calls to the AI provider.
"""
from collections import deque
from typing import Awaitable, Callable, Deque, Optional, TypeVar
import asyncio
import logging
import time

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """
    Queues coroutines and dispatches them in arrival order.

    At most `max_concurrent` calls run at once and consecutive dispatches are
    at least `min_interval` seconds apart. Callers wait instead of being
    rejected.
    """

    def __init__(self, min_interval: float = 1.0, max_concurrent: int = 1):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.min_interval = min_interval
        self.max_concurrent = max_concurrent
        self._queue: Deque[asyncio.Future] = deque()
        self._running = 0
        self._last_dispatch: Optional[float] = None
        self._dispatching = False

    @property
    def queued(self) -> int:
        return len(self._queue)

    @property
    def running(self) -> int:
        return self._running

    async def schedule(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Wait for a dispatch slot, then run `func(*args, **kwargs)`."""
        loop = asyncio.get_running_loop()
        ticket = loop.create_future()
        self._queue.append(ticket)
        self._kick()

        try:
            await ticket
        except asyncio.CancelledError:
            if ticket in self._queue:
                self._queue.remove(ticket)
            elif ticket.done() and not ticket.cancelled():
                # Slot was granted but never used
                self._release()
            raise

        try:
            return await func(*args, **kwargs)
        finally:
            self._release()

    def _release(self) -> None:
        self._running -= 1
        self._kick()

    def _kick(self) -> None:
        if not self._dispatching and self._queue and self._running < self.max_concurrent:
            self._dispatching = True
            asyncio.get_running_loop().create_task(self._dispatch())

    async def _dispatch(self) -> None:
        try:
            while self._queue and self._running < self.max_concurrent:
                if self._last_dispatch is not None:
                    wait = self._last_dispatch + self.min_interval - time.monotonic()
                    if wait > 0:
                        await asyncio.sleep(wait)

                if not self._queue:
                    break
                ticket = self._queue.popleft()
                if ticket.done():
                    continue

                self._running += 1
                self._last_dispatch = time.monotonic()
                ticket.set_result(None)
                logger.debug(f"Dispatched AI call ({self.queued} still queued)")
        finally:
            self._dispatching = False
