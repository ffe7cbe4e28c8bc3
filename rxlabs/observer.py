"""Capture the complete output of one producer for later assertions.

A `StreamObserver` records every value in arrival order and the single
terminal outcome. Tests drive time with a `VirtualScheduler` and then read
the log back:

    observer = subscribe(view_model.email_valid, clock=scheduler)
    scheduler.advance(3)
    assert observer.values() == [False, True, False, True]
    assert not observer.is_complete()

The observer never asserts anything itself. A producer that keeps emitting
after its terminal event is recorded as a `ProtocolViolation` instead of
being raised mid-emission, so the rest of the log stays inspectable.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Protocol, Union

from rxlabs.errors import AlreadySubscribed, ProtocolViolation
from rxlabs.logs import get_logger
from rxlabs.protocols import Producer, Subscription

logger = get_logger(__name__)


class Outcome(str, Enum):
    """How a stream finished."""

    COMPLETED = "completed"
    ERRORED = "errored"


@dataclass(frozen=True)
class ValueEvent:
    """A value emitted by the producer, with the tick it arrived at."""

    payload: Any
    at: Optional[int] = None


@dataclass(frozen=True)
class TerminalEvent:
    """The producer's single terminal outcome."""

    outcome: Outcome
    error: Optional[Exception] = None
    at: Optional[int] = None


ObservedEvent = Union[ValueEvent, TerminalEvent]


class Clock(Protocol):
    def now(self) -> int:
        raise NotImplementedError


class StreamObserver:
    """Subscribes to exactly one producer and records its complete output.

    Parameters:
    - clock: optional object with `now()` (a scheduler or a `SimClock`); when
      given, every recorded event carries the tick at which it arrived.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock = clock
        self._events: List[ObservedEvent] = []
        self._terminal: Optional[TerminalEvent] = None
        self._violations: List[ProtocolViolation] = []
        self._subscription: Optional[Subscription] = None
        self._subscribed = False
        self._active = False

    # Subscription lifecycle
    def subscribe(self, producer: Producer) -> "StreamObserver":
        """Attach to `producer`. An observer can only ever attach once."""
        if self._subscribed:
            raise AlreadySubscribed("StreamObserver is already bound to a producer")
        self._subscribed = True
        self._active = True
        try:
            subscription = producer.observe(self.on_value, self.on_terminal)
        except Exception:
            self._subscribed = False
            self._active = False
            raise
        if self._active:
            self._subscription = subscription
        else:
            # unsubscribe() ran while the producer was still registering us
            subscription.dispose()
        return self

    def unsubscribe(self) -> None:
        """Release the producer subscription. Safe to call repeatedly."""
        self._active = False
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.dispose()

    @property
    def is_subscribed(self) -> bool:
        return self._active

    def __enter__(self) -> "StreamObserver":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()

    # Producer callbacks
    def on_value(self, payload: Any) -> None:
        if not self._active:
            return
        at = self._now()
        if self._terminal is not None:
            self._violate("value", payload, at)
            return
        self._events.append(ValueEvent(payload, at))

    def on_terminal(self, error: Optional[Exception] = None) -> None:
        if not self._active:
            return
        at = self._now()
        if self._terminal is not None:
            self._violate("terminal", error, at)
            return
        if error is None:
            self._terminal = TerminalEvent(Outcome.COMPLETED, None, at)
        else:
            self._terminal = TerminalEvent(Outcome.ERRORED, error, at)
        self._events.append(self._terminal)

    def on_completed(self) -> None:
        self.on_terminal(None)

    def on_error(self, error: Exception) -> None:
        self.on_terminal(error)

    # Inspection
    def events(self) -> List[ObservedEvent]:
        """The full ordered log: values followed by at most one terminal."""
        return list(self._events)

    def values(self) -> List[Any]:
        return [e.payload for e in self._events if isinstance(e, ValueEvent)]

    def is_complete(self) -> bool:
        return self._terminal is not None

    def outcome(self) -> Optional[Outcome]:
        return self._terminal.outcome if self._terminal is not None else None

    def error(self) -> Optional[Exception]:
        return self._terminal.error if self._terminal is not None else None

    def violations(self) -> List[ProtocolViolation]:
        """Emissions received after the terminal event, in arrival order."""
        return list(self._violations)

    def __repr__(self) -> str:
        return (
            f"StreamObserver(values={self.values()!r}, outcome={self.outcome()!r}, "
            f"violations={len(self._violations)})"
        )

    def _now(self) -> Optional[int]:
        return self.clock.now() if self.clock is not None else None

    def _violate(self, kind: str, payload: Any, at: Optional[int]) -> None:
        violation = ProtocolViolation(
            f"Producer emitted a {kind} after its terminal event", kind, payload, at
        )
        self._violations.append(violation)
        logger.warning("%s: %r at tick %s", violation, payload, at)


def subscribe(producer: Producer, clock: Optional[Clock] = None) -> StreamObserver:
    """Create a `StreamObserver`, attach it to `producer` and return it."""
    return StreamObserver(clock).subscribe(producer)
