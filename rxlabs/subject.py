"""Test-owned input producers.

- `ManualSubject`: a hot source the test pushes into by hand with `send`,
  `complete` and `fail`, or schedules with `send_at` and friends so inputs
  land at specific ticks.
- `TimelineProducer`: a cold source that replays a fixed timeline of
  `(offset, value)` pairs relative to the moment each observer subscribes.

Both implement the `Producer` capability and are handed to the code under
test through the same injection seam as any production stream.
"""

from typing import Any, Iterable, List, Optional, Tuple

from rxlabs.logs import get_logger
from rxlabs.protocols import CancellationHandle, Scheduler, TerminalCallback, ValueCallback

logger = get_logger(__name__)


class _Registration:
    """Subscription returned by `ManualSubject.observe`."""

    def __init__(self, subject: "ManualSubject", on_value: ValueCallback, on_terminal: TerminalCallback) -> None:
        self.subject = subject
        self.on_value = on_value
        self.on_terminal = on_terminal

    def dispose(self) -> None:
        self.subject._detach(self)


class ManualSubject:
    """Manually triggered event source.

    Every call is forwarded verbatim to the current observers. The subject
    does not police the terminal protocol, so a test can also use it to play
    a misbehaving producer that keeps emitting after completing.
    """

    def __init__(self, name: str = "subject") -> None:
        self.name = name
        self._registrations: List[_Registration] = []

    @property
    def observer_count(self) -> int:
        return len(self._registrations)

    def observe(self, on_value: ValueCallback, on_terminal: TerminalCallback) -> _Registration:
        registration = _Registration(self, on_value, on_terminal)
        self._registrations.append(registration)
        return registration

    def send(self, value: Any) -> None:
        logger.debug("%s send %r to %d observer(s)", self.name, value, len(self._registrations))
        for registration in list(self._registrations):
            registration.on_value(value)

    def complete(self) -> None:
        logger.debug("%s complete", self.name)
        for registration in list(self._registrations):
            registration.on_terminal(None)

    def fail(self, error: Exception) -> None:
        logger.debug("%s fail %r", self.name, error)
        for registration in list(self._registrations):
            registration.on_terminal(error)

    # Scheduled triggers
    def send_at(self, scheduler: Scheduler, due: int, value: Any) -> CancellationHandle:
        """Schedule `send(value)` at the absolute tick `due`."""

        def trigger(value=value):
            self.send(value)

        return scheduler.schedule_at(trigger, due)

    def complete_at(self, scheduler: Scheduler, due: int) -> CancellationHandle:
        return scheduler.schedule_at(self.complete, due)

    def fail_at(self, scheduler: Scheduler, due: int, error: Exception) -> CancellationHandle:
        def trigger(error=error):
            self.fail(error)

        return scheduler.schedule_at(trigger, due)

    def send_after(self, scheduler: Scheduler, delay: int, value: Any) -> CancellationHandle:
        """Schedule `send(value)` `delay` ticks after the scheduler's current tick.

        Prefer this over `send_at` on a real-time scheduler, where the current
        tick keeps moving while the test is still wiring things up.
        """

        def trigger(value=value):
            self.send(value)

        return scheduler.schedule(trigger, delay)

    def complete_after(self, scheduler: Scheduler, delay: int) -> CancellationHandle:
        return scheduler.schedule(self.complete, delay)

    def fail_after(self, scheduler: Scheduler, delay: int, error: Exception) -> CancellationHandle:
        def trigger(error=error):
            self.fail(error)

        return scheduler.schedule(trigger, delay)

    def _detach(self, registration: _Registration) -> None:
        if registration in self._registrations:
            self._registrations.remove(registration)


class _TimelineSubscription:
    def __init__(self, handles: List[CancellationHandle]) -> None:
        self.handles = handles

    def dispose(self) -> None:
        for handle in self.handles:
            handle.cancel()


class TimelineProducer:
    """Cold producer that emits a fixed timeline on a scheduler.

    Parameters:
    - scheduler: where emissions are scheduled.
    - timeline: `(offset, value)` pairs; offsets are ticks after subscription.
    - complete_after: offset of the terminal event, or None to stay open.
    - error: if set, the terminal event is this error instead of completion.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        timeline: Iterable[Tuple[int, Any]],
        complete_after: Optional[int] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.scheduler = scheduler
        self.timeline = list(timeline)
        for offset, _ in self.timeline:
            if offset < 0:
                raise ValueError(f"Timeline offsets must be non-negative, got {offset}")
        if complete_after is not None and complete_after < 0:
            raise ValueError(f"complete_after must be non-negative, got {complete_after}")
        if error is not None and complete_after is None:
            raise ValueError("An error timeline needs complete_after")
        self.complete_after = complete_after
        self.error = error

    def observe(self, on_value: ValueCallback, on_terminal: TerminalCallback) -> _TimelineSubscription:
        handles = []
        for offset, value in self.timeline:

            def emit(value=value):
                on_value(value)

            handles.append(self.scheduler.schedule(emit, offset))
        if self.complete_after is not None:

            def finish():
                on_terminal(self.error)

            handles.append(self.scheduler.schedule(finish, self.complete_after))
        return _TimelineSubscription(handles)
