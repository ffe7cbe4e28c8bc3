"""Bridge between rxlabs and the `reactivex` library.

- `ObservableProducer` / `observe_stream`: capture a `reactivex.Observable`
  with a `StreamObserver`.
- `to_observable`: expose any rxlabs `Producer` (for example a
  `ManualSubject`) as an Observable, so test inputs can be piped through
  reactivex operators.
- `RxSchedulerAdapter`: a reactivex `PeriodicScheduler` on top of any rxlabs
  `Scheduler`. Pass it to `ops.observe_on`, `ops.subscribe_on`, `ops.delay`,
  `reactivex.interval` and the like; under a `VirtualScheduler` those hops
  then run inside `advance()` in deterministic order instead of on real
  threads or timers.
"""

import math
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, TypeVar

import reactivex
from reactivex import abc, typing
from reactivex.disposable import CompositeDisposable, Disposable, SingleAssignmentDisposable
from reactivex.scheduler.periodicscheduler import PeriodicScheduler

from rxlabs.config import Configuration
from rxlabs.observer import Clock, StreamObserver
from rxlabs.protocols import Producer, Scheduler, TerminalCallback, ValueCallback

_TState = TypeVar("_TState")
RxAction = Callable[[abc.SchedulerBase, Any], Optional[abc.DisposableBase]]
_TICK_EPSILON = 1e-6


class ObservableProducer:
    """`Producer` capability for a reactivex Observable."""

    def __init__(self, observable: reactivex.Observable) -> None:
        self.observable = observable

    def observe(self, on_value: ValueCallback, on_terminal: TerminalCallback) -> abc.DisposableBase:
        def _on_completed() -> None:
            on_terminal(None)

        return self.observable.subscribe(
            on_next=on_value,
            on_error=on_terminal,
            on_completed=_on_completed,
        )


def observe_stream(observable: reactivex.Observable, clock: Optional[Clock] = None) -> StreamObserver:
    """Subscribe a fresh `StreamObserver` to `observable` and return it."""
    return StreamObserver(clock).subscribe(ObservableProducer(observable))


def to_observable(producer: Producer) -> reactivex.Observable:
    """Wrap an rxlabs producer as a reactivex Observable."""

    def _subscribe(observer: abc.ObserverBase, scheduler: Optional[abc.SchedulerBase] = None) -> abc.DisposableBase:
        def _on_terminal(error: Optional[Exception]) -> None:
            if error is None:
                observer.on_completed()
            else:
                observer.on_error(error)

        subscription = producer.observe(observer.on_next, _on_terminal)
        return Disposable(subscription.dispose)

    return reactivex.create(_subscribe)


class RxSchedulerAdapter(PeriodicScheduler):
    """Runs reactivex scheduled actions on an rxlabs `Scheduler`.

    Reactivex speaks seconds and datetimes; rxlabs speaks ticks. One tick is
    `tick_seconds` long and tick 0 maps to reactivex's UTC epoch, so the
    inherited `to_seconds` / `to_datetime` conversions line up with `now`.
    Relative and absolute due times are rounded up to whole ticks so work
    never runs early; absolute times already in the past run at the current
    tick. Being a `PeriodicScheduler`, it also drives `reactivex.interval`
    and periodic `reactivex.timer`.
    """

    def __init__(self, scheduler: Scheduler, tick_seconds: Optional[float] = None) -> None:
        super().__init__()
        self.scheduler = scheduler
        self.tick_seconds = tick_seconds if tick_seconds is not None else Configuration.tick_seconds()
        if self.tick_seconds <= 0:
            raise ValueError(f"tick_seconds must be > 0, got {self.tick_seconds}")

    @property
    def now(self) -> datetime:
        return self.to_datetime(timedelta(seconds=self.scheduler.now() * self.tick_seconds))

    def schedule(self, action: RxAction, state: Optional[_TState] = None) -> abc.DisposableBase:
        return self._schedule_ticks(0, action, state)

    def schedule_relative(
        self, duetime: typing.RelativeTime, action: RxAction, state: Optional[_TState] = None
    ) -> abc.DisposableBase:
        ticks = max(0, self.seconds_to_ticks(self.to_seconds(duetime)))
        return self._schedule_ticks(ticks, action, state)

    def schedule_absolute(
        self, duetime: typing.AbsoluteTime, action: RxAction, state: Optional[_TState] = None
    ) -> abc.DisposableBase:
        due = self.seconds_to_ticks(self.to_seconds(self.to_datetime(duetime)))
        return self._schedule_ticks(max(0, due - self.scheduler.now()), action, state)

    def seconds_to_ticks(self, seconds: float) -> int:
        ticks = seconds / self.tick_seconds
        nearest = round(ticks)
        if abs(ticks - nearest) < _TICK_EPSILON:
            return int(nearest)
        return math.ceil(ticks)

    def _schedule_ticks(self, ticks: int, action: RxAction, state: Optional[_TState]) -> abc.DisposableBase:
        sad = SingleAssignmentDisposable()

        def run_action() -> None:
            sad.disposable = self.invoke_action(action, state)

        handle = self.scheduler.schedule(run_action, ticks)

        def dispose() -> None:
            self.scheduler.cancel(handle)

        return CompositeDisposable(sad, Disposable(dispose))
