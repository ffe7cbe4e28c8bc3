"""Real-time scheduler backed by an asyncio event loop.

This is the production counterpart of `rxlabs.scheduler.VirtualScheduler`:
the same `Scheduler` protocol, but work runs when the event loop gets to it.
Use the virtual scheduler for determinism; use this one to run the very same
stream code in an application.

A tick is `tick_seconds` of loop time (one millisecond unless configured
otherwise through ``RXLABS_TICK_SECONDS``).
"""

import asyncio
from typing import Callable, Optional

from rxlabs.config import Configuration
from rxlabs.errors import InvalidSchedule
from rxlabs.logs import get_logger

logger = get_logger(__name__)


class LoopHandle:
    """Cancellation handle wrapping an `asyncio.Handle`."""

    def __init__(self, handle: asyncio.Handle, due: int) -> None:
        self._handle = handle
        self._cancelled = False
        self.due = due

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._handle.cancel()

    def __call__(self) -> None:
        self.cancel()


class AsyncioScheduler:
    """Adapter exposing `now` and `schedule` atop an asyncio loop.

    Must be created from inside a running loop unless `loop` is passed
    explicitly. Tick 0 is the loop time at construction.
    """

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        *,
        tick_seconds: Optional[float] = None,
    ) -> None:
        self.loop = loop if loop is not None else asyncio.get_running_loop()
        self.tick_seconds = tick_seconds if tick_seconds is not None else Configuration.tick_seconds()
        if self.tick_seconds <= 0:
            raise ValueError(f"tick_seconds must be > 0, got {self.tick_seconds}")
        self._origin = self.loop.time()

    def now(self) -> int:
        """Whole ticks elapsed on the loop clock since construction."""
        return int((self.loop.time() - self._origin) / self.tick_seconds)

    def schedule(self, work: Callable[[], None], delay: int = 0) -> LoopHandle:
        if delay < 0:
            raise InvalidSchedule(f"Delay must be non-negative, got {delay}")
        due = self.now() + delay
        if delay == 0:
            handle = self.loop.call_soon(work)
        else:
            handle = self.loop.call_later(delay * self.tick_seconds, work)
        logger.debug("Scheduled %r in %d tick(s) on the event loop", work, delay)
        return LoopHandle(handle, due)

    def schedule_at(self, work: Callable[[], None], due: int) -> LoopHandle:
        now = self.now()
        if due < now:
            raise InvalidSchedule(f"Cannot schedule in the past: {due} < {now}")
        handle = self.loop.call_at(self._origin + due * self.tick_seconds, work)
        return LoopHandle(handle, due)

    def cancel(self, handle: LoopHandle) -> None:
        handle.cancel()
