"""Deterministic clock and virtual-time scheduler for stream tests.

Time in a test moves only when the test says so.

- `SimClock`: monotonically increasing logical time in ticks. Only the
  scheduler moves it.
- `VirtualScheduler`: schedules callbacks relative to the logical time and
  executes them, in `(due, seq)` order, when `advance(ticks)` is called.

Typical test:

    scheduler = VirtualScheduler()
    scheduler.schedule(lambda: subject.send("a"), delay=1)
    scheduler.advance(3)
    assert observer.values() == ["a"]

Nothing here waits on a real clock: `advance` returns once every action due
up to the target tick has run, including actions scheduled while draining.
"""

import heapq
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from rxlabs.config import SchedulerConfig
from rxlabs.errors import InvalidAdvance, InvalidSchedule, ReentrantAdvance
from rxlabs.logs import get_logger

logger = get_logger(__name__)


class SimClock:
    """Integer tick counter that only ever moves forward."""

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError(f"Clock cannot start before tick 0, got {start}")
        self.t = start

    def now(self) -> int:
        """The tick the clock currently reads."""
        return self.t

    def advance_to(self, tick: int) -> None:
        """Move the clock forward to `tick`; it never moves backwards."""
        if tick < self.t:
            raise InvalidAdvance(f"Clock cannot move backwards: {tick} < {self.t}")
        self.t = tick


@dataclass(order=True)
class ScheduledAction:
    due: int
    seq: int  # tie-breaker for FIFO ordering
    work: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)
    done: bool = field(default=False, compare=False)


class ScheduledHandle:
    """Cancellation handle for one action queued on a `VirtualScheduler`.

    Calling the handle is the same as calling `cancel()`.
    """

    __slots__ = ("_scheduler", "_action")

    def __init__(self, scheduler: "VirtualScheduler", action: ScheduledAction) -> None:
        self._scheduler = scheduler
        self._action = action

    @property
    def due(self) -> int:
        return self._action.due

    @property
    def cancelled(self) -> bool:
        return self._action.cancelled

    def cancel(self) -> None:
        self._scheduler.cancel(self)

    def __call__(self) -> None:
        self.cancel()

    def __repr__(self) -> str:
        return f"ScheduledHandle(due={self._action.due}, seq={self._action.seq}, cancelled={self._action.cancelled})"


class VirtualScheduler:
    """Virtual-time `Scheduler` whose queue is ordered by due tick, then sequence.

    Work queued with `schedule` or `schedule_at` sits in the heap until an
    `advance` call reaches its tick. Each entry gets a sequence number when it
    is queued, so two actions due at the same tick run in the order they were
    queued.
    """

    def __init__(
        self,
        clock: Optional[SimClock] = None,
        *,
        config: Optional[SchedulerConfig] = None,
    ) -> None:
        self.config = config if config is not None else SchedulerConfig.from_env()
        self.clock = clock if clock is not None else SimClock(self.config.start_tick)
        self.heap: List[ScheduledAction] = []
        self._counter = 0
        self._live = 0
        self._draining = False

    def now(self) -> int:
        """The tick the clock currently reads."""
        return self.clock.now()

    def schedule(self, work: Callable[[], None], delay: int = 0) -> ScheduledHandle:
        """Schedule `work` to run `delay` ticks from now.

        `delay == 0` queues the work at the current tick; it runs during the
        next drain (the enclosing one when called from running work), never
        inline.
        """
        if delay < 0:
            raise InvalidSchedule(f"Delay must be non-negative, got {delay}")
        return self._push(self.clock.now() + delay, work)

    def schedule_at(self, work: Callable[[], None], due: int) -> ScheduledHandle:
        """Schedule `work` at the absolute tick `due`."""
        now = self.clock.now()
        if due < now:
            raise InvalidSchedule(f"Cannot schedule in the past: {due} < {now}")
        return self._push(due, work)

    def cancel(self, handle: ScheduledHandle) -> None:
        """Mark the action behind `handle` cancelled.

        A cancelled action is skipped when it becomes due. Cancelling an action
        that already ran (or is running) only flips the flag.
        """
        if handle._scheduler is not self:
            raise ValueError("Handle belongs to a different scheduler")
        action = handle._action
        if action.cancelled:
            return
        action.cancelled = True
        if not action.done:
            self._live -= 1
        logger.debug("Cancelled action seq=%d due=%d", action.seq, action.due)

    def advance(self, by: int) -> None:
        """Advance logical time by `by` ticks, running everything that falls due.

        After the call `now()` equals the previous `now()` plus `by`, no matter
        how much work ran.
        """
        if by < 0:
            raise InvalidAdvance(f"Cannot advance by a negative amount: {by}")
        self._drain(self.clock.now() + by)

    def advance_to(self, tick: int) -> None:
        """Advance logical time to the absolute tick `tick`."""
        now = self.clock.now()
        if tick < now:
            raise InvalidAdvance(f"Cannot advance backwards: {tick} < {now}")
        self._drain(tick)

    def run_until_idle(self, max_ticks: Optional[int] = None) -> int:
        """Advance until no live work remains, or `max_ticks` have elapsed.

        The clock jumps straight to each next due tick, so the cost depends on
        the amount of work, not on the number of ticks skipped. When work is
        still queued past the limit the clock stops exactly at the limit.

        Returns the number of ticks advanced.
        """
        limit = max_ticks if max_ticks is not None else self.config.idle_tick_limit
        if limit < 0:
            raise ValueError(f"max_ticks must be non-negative, got {limit}")
        start = self.clock.now()
        deadline = start + limit
        while True:
            due = self.next_due()
            if due is None:
                break
            if due > deadline:
                self.advance_to(deadline)
                break
            self.advance_to(due)
        return self.clock.now() - start

    def pending_count(self) -> int:
        """Number of queued actions that are neither run nor cancelled."""
        return self._live

    def next_due(self) -> Optional[int]:
        """Due tick of the earliest live action, or None if the queue is idle."""
        self._discard_cancelled()
        if not self.heap:
            return None
        return self.heap[0].due

    def dump_state(self, n: int = 5) -> str:
        """Describe the pending queue for debugging a failing test.

        The first line gives the current tick and the second the number of
        live actions. Then come up to `n` lines, one per action, in the order
        `advance` would run them. Cancelled entries are left out and the heap
        itself is not touched.
        """
        now = self.clock.now()
        events = sorted(a for a in self.heap if not a.cancelled)
        shown = events[:n]
        lines = [
            f"VirtualScheduler @ t = {now}",
            f"queued = {len(events)} (showing first {len(shown)})",
        ]
        for i, action in enumerate(shown):
            cb_name = getattr(action.work, "__name__", None)
            cb_desc = cb_name if isinstance(cb_name, str) else repr(action.work)
            lines.append(
                f"#{i:02d} due @ {action.due} (in {action.due - now}) seq={action.seq} cb={cb_desc}"
            )
        return "\n".join(lines)

    def _push(self, due: int, work: Callable[[], None]) -> ScheduledHandle:
        self._counter += 1
        action = ScheduledAction(due, self._counter, work)
        heapq.heappush(self.heap, action)
        self._live += 1
        logger.debug("Scheduled action seq=%d due=%d now=%d", action.seq, due, self.clock.now())
        return ScheduledHandle(self, action)

    def _discard_cancelled(self) -> None:
        while self.heap and self.heap[0].cancelled:
            heapq.heappop(self.heap)

    def _drain(self, target: int) -> None:
        if self._draining:
            raise ReentrantAdvance("advance() called from inside scheduled work")
        self._draining = True
        executed = 0
        try:
            while True:
                self._discard_cancelled()
                if not self.heap or self.heap[0].due > target:
                    break
                action = heapq.heappop(self.heap)
                action.done = True
                self._live -= 1
                self.clock.advance_to(action.due)
                executed += 1
                action.work()
            self.clock.advance_to(target)
        finally:
            self._draining = False
        logger.debug("Drained %d action(s), now=%d", executed, target)
