"""Interfaces (Protocols) that decouple stream code from timers and streams.

Why this matters:
- Producer code depends only on `Scheduler`, so the deterministic
  `VirtualScheduler` and the asyncio-backed runtime are interchangeable.
- Observers depend only on `Producer`, so a hand-rolled event source, a
  `reactivex` observable or anything else that can call two callbacks can be
  captured and inspected the same way.
"""

from typing import Any, Callable, Optional, Protocol


class CancellationHandle(Protocol):
    """Opaque handle returned by `Scheduler.schedule` and `schedule_at`."""

    @property
    def cancelled(self) -> bool:
        """True once the handle has been cancelled."""
        raise NotImplementedError

    def cancel(self) -> None:
        """Cancel the pending work. Calling it more than once is harmless."""
        raise NotImplementedError


class Scheduler(Protocol):
    """Scheduler abstraction; used by producers to move work through time."""

    def now(self) -> int:
        """Return the current time in ticks for this scheduler domain."""
        raise NotImplementedError

    def schedule(self, work: Callable[[], None], delay: int = 0) -> CancellationHandle:
        """Schedule `work` to run no earlier than `now() + delay` ticks.

        A zero delay still defers the work to the next time the scheduler
        processes its queue; it never runs inline.
        """
        raise NotImplementedError

    def schedule_at(self, work: Callable[[], None], due: int) -> CancellationHandle:
        """Schedule `work` at the absolute tick `due` (must not be in the past)."""
        raise NotImplementedError

    def cancel(self, handle: CancellationHandle) -> None:
        """Cancel the work behind `handle`. Idempotent."""
        raise NotImplementedError


class Subscription(Protocol):
    """Releases a producer registration."""

    def dispose(self) -> None:
        raise NotImplementedError


ValueCallback = Callable[[Any], None]
TerminalCallback = Callable[[Optional[Exception]], None]


class Producer(Protocol):
    """Anything that can be observed: emits values, then at most one terminal.

    `on_terminal(None)` signals successful completion; `on_terminal(err)`
    signals failure with `err`.
    """

    def observe(
        self, on_value: ValueCallback, on_terminal: TerminalCallback
    ) -> Subscription:
        """Register the two callbacks and return a disposable subscription."""
        raise NotImplementedError
