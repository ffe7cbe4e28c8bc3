"""Tests for the virtual-time scheduler's advance/drain algorithm."""

from typing import List

import pytest

from rxlabs.config import SchedulerConfig
from rxlabs.errors import InvalidAdvance, InvalidSchedule, ReentrantAdvance
from rxlabs.scheduler import SimClock, VirtualScheduler


@pytest.fixture
def scheduler() -> VirtualScheduler:
    return VirtualScheduler(config=SchedulerConfig())


def _recorder(log: List[str], name: str):
    def work():
        log.append(name)

    work.__name__ = name
    return work


def test_same_due_time_runs_in_scheduling_order(scheduler: VirtualScheduler) -> None:
    """W1 and W2 both due at tick 1 run as [W1, W2]."""
    log: List[str] = []
    scheduler.schedule(_recorder(log, "W1"), 1)
    scheduler.schedule(_recorder(log, "W2"), 1)

    scheduler.advance(1)

    assert log == ["W1", "W2"]


def test_fifo_survives_cancellations_and_interleaving(scheduler: VirtualScheduler) -> None:
    log: List[str] = []
    scheduler.schedule(_recorder(log, "late"), 5)
    a = scheduler.schedule(_recorder(log, "a"), 2)
    scheduler.schedule(_recorder(log, "b"), 2)
    scheduler.schedule_at(_recorder(log, "early"), 1)
    scheduler.schedule(_recorder(log, "c"), 2)
    a.cancel()
    scheduler.schedule(_recorder(log, "d"), 2)

    scheduler.advance(10)

    assert log == ["early", "b", "c", "d", "late"]


def test_work_runs_once_in_the_advance_that_reaches_it(scheduler: VirtualScheduler) -> None:
    """Delay 5, then advance(3) and advance(2): runs during the second call at tick 5."""
    seen: List[int] = []
    scheduler.schedule(lambda: seen.append(scheduler.now()), 5)

    scheduler.advance(3)
    assert seen == []
    assert scheduler.now() == 3

    scheduler.advance(2)
    assert seen == [5]

    scheduler.advance(100)
    assert seen == [5]


def test_clock_reads_due_time_while_work_runs(scheduler: VirtualScheduler) -> None:
    seen: List[int] = []
    for delay in (7, 2, 4):
        scheduler.schedule(lambda: seen.append(scheduler.now()), delay)

    scheduler.advance(10)

    assert seen == [2, 4, 7]
    assert scheduler.now() == 10


def test_advance_lands_exactly_on_target(scheduler: VirtualScheduler) -> None:
    scheduler.schedule(lambda: None, 1)
    scheduler.schedule(lambda: None, 1)
    scheduler.advance(4)
    assert scheduler.now() == 4
    scheduler.advance(0)
    assert scheduler.now() == 4


def test_negative_advance_is_rejected_and_clock_unchanged(scheduler: VirtualScheduler) -> None:
    scheduler.advance(2)
    with pytest.raises(InvalidAdvance):
        scheduler.advance(-1)
    assert scheduler.now() == 2


def test_advance_to_rejects_the_past(scheduler: VirtualScheduler) -> None:
    scheduler.advance_to(6)
    assert scheduler.now() == 6
    with pytest.raises(InvalidAdvance):
        scheduler.advance_to(5)
    assert scheduler.now() == 6


def test_schedule_at_in_the_past_is_rejected(scheduler: VirtualScheduler) -> None:
    scheduler.advance(3)
    with pytest.raises(InvalidSchedule):
        scheduler.schedule_at(lambda: None, 2)
    assert scheduler.pending_count() == 0


def test_negative_delay_is_rejected(scheduler: VirtualScheduler) -> None:
    with pytest.raises(InvalidSchedule):
        scheduler.schedule(lambda: None, -1)


def test_zero_delay_is_never_inline(scheduler: VirtualScheduler) -> None:
    ran: List[str] = []
    scheduler.schedule(lambda: ran.append("now"), 0)
    assert ran == []
    scheduler.advance(0)
    assert ran == ["now"]


def test_same_tick_chain_drains_within_one_advance(scheduler: VirtualScheduler) -> None:
    """Work that reschedules itself at the same tick runs in the same advance call."""
    log: List[str] = []

    def first():
        log.append("first")
        scheduler.schedule_at(second, scheduler.now())

    def second():
        log.append("second")
        scheduler.schedule(third, 0)

    def third():
        log.append("third")

    scheduler.schedule(first, 2)
    scheduler.schedule(_recorder(log, "sibling"), 2)

    scheduler.advance(2)

    assert log == ["first", "sibling", "second", "third"]
    assert scheduler.pending_count() == 0


def test_reschedule_within_target_drains_but_beyond_target_waits(scheduler: VirtualScheduler) -> None:
    log: List[int] = []

    def hop():
        log.append(scheduler.now())
        scheduler.schedule(hop, 2)

    scheduler.schedule(hop, 1)
    scheduler.advance(5)

    assert log == [1, 3, 5]
    assert scheduler.next_due() == 7


def test_nested_advance_is_rejected_without_breaking_outer(scheduler: VirtualScheduler) -> None:
    errors: List[Exception] = []
    log: List[str] = []

    def nested():
        try:
            scheduler.advance(1)
        except ReentrantAdvance as exc:
            errors.append(exc)

    scheduler.schedule(nested, 1)
    scheduler.schedule(_recorder(log, "after"), 2)

    scheduler.advance(3)

    assert len(errors) == 1
    assert log == ["after"]
    assert scheduler.now() == 3


def test_cancel_is_idempotent_and_skips_work(scheduler: VirtualScheduler) -> None:
    ran: List[str] = []
    handle = scheduler.schedule(lambda: ran.append("x"), 1)
    assert scheduler.pending_count() == 1

    scheduler.cancel(handle)
    scheduler.cancel(handle)
    handle()

    assert handle.cancelled
    assert scheduler.pending_count() == 0
    scheduler.advance(5)
    assert ran == []


def test_cancel_during_execution_does_not_interrupt(scheduler: VirtualScheduler) -> None:
    ran: List[str] = []
    handles = {}

    def work():
        handles["self"].cancel()
        ran.append("finished")

    handles["self"] = scheduler.schedule(work, 1)
    scheduler.advance(1)

    assert ran == ["finished"]
    assert scheduler.pending_count() == 0


def test_work_can_cancel_a_later_sibling(scheduler: VirtualScheduler) -> None:
    ran: List[str] = []
    victim = scheduler.schedule(lambda: ran.append("victim"), 1)
    scheduler.schedule_at(lambda: ran.append("killer") or victim.cancel(), 1)
    # killer was scheduled after victim, so victim already ran
    scheduler.advance(1)
    assert ran == ["victim", "killer"]

    ran.clear()
    killer = scheduler.schedule(lambda: later.cancel(), 1)
    later = scheduler.schedule(lambda: ran.append("later"), 1)
    scheduler.advance(1)
    assert ran == []
    assert not killer.cancelled


def test_handle_from_another_scheduler_is_rejected(scheduler: VirtualScheduler) -> None:
    other = VirtualScheduler(config=SchedulerConfig())
    handle = other.schedule(lambda: None, 1)
    with pytest.raises(ValueError):
        scheduler.cancel(handle)


def test_failing_work_propagates_and_scheduler_recovers(scheduler: VirtualScheduler) -> None:
    log: List[str] = []

    def boom():
        raise RuntimeError("boom")

    scheduler.schedule(boom, 2)
    scheduler.schedule(_recorder(log, "next"), 3)

    with pytest.raises(RuntimeError, match="boom"):
        scheduler.advance(5)

    assert scheduler.now() == 2
    assert scheduler.pending_count() == 1
    scheduler.advance(3)
    assert log == ["next"]
    assert scheduler.now() == 5


def test_large_advance_is_proportional_to_work(scheduler: VirtualScheduler) -> None:
    """Asserting "nothing else ever happens" is a huge advance, not a wait."""
    ran: List[int] = []
    scheduler.schedule(lambda: ran.append(scheduler.now()), 10)
    scheduler.advance(10**12)
    assert ran == [10]
    assert scheduler.now() == 10**12


def test_run_until_idle_jumps_between_due_times(scheduler: VirtualScheduler) -> None:
    seen: List[int] = []
    scheduler.schedule(lambda: seen.append(scheduler.now()), 40)
    scheduler.schedule(lambda: seen.append(scheduler.now()), 3)

    advanced = scheduler.run_until_idle()

    assert seen == [3, 40]
    assert advanced == 40
    assert scheduler.now() == 40
    assert scheduler.run_until_idle() == 0


def test_run_until_idle_respects_limit(scheduler: VirtualScheduler) -> None:
    def tick():
        scheduler.schedule(tick, 10)

    scheduler.schedule(tick, 10)
    advanced = scheduler.run_until_idle(max_ticks=35)

    assert advanced == 35
    assert scheduler.now() == 35
    assert scheduler.next_due() == 40


def test_start_tick_comes_from_config() -> None:
    scheduler = VirtualScheduler(config=SchedulerConfig(start_tick=100))
    assert scheduler.now() == 100
    scheduler.advance(1)
    assert scheduler.now() == 101


def test_explicit_clock_is_shared() -> None:
    clock = SimClock(7)
    scheduler = VirtualScheduler(clock, config=SchedulerConfig())
    scheduler.advance(3)
    assert clock.now() == 10


def test_clock_never_moves_backwards() -> None:
    clock = SimClock()
    clock.advance_to(4)
    with pytest.raises(InvalidAdvance):
        clock.advance_to(3)
    with pytest.raises(ValueError):
        SimClock(-1)


def test_dump_state_lists_live_actions_without_mutation(scheduler: VirtualScheduler) -> None:
    def ping():
        pass

    def pong():
        pass

    scheduler.schedule(pong, 9)
    cancelled = scheduler.schedule(ping, 1)
    scheduler.schedule(ping, 4)
    cancelled.cancel()
    scheduler.advance(2)

    snapshot = scheduler.dump_state(n=1)

    lines = snapshot.splitlines()
    assert lines[0] == "VirtualScheduler @ t = 2"
    assert lines[1] == "queued = 2 (showing first 1)"
    assert "due @ 4 (in 2)" in lines[2]
    assert "cb=ping" in lines[2]
    assert len(lines) == 3
    assert scheduler.pending_count() == 2


def test_run_until_idle_rejects_negative_limit(scheduler: VirtualScheduler) -> None:
    scheduler.schedule(lambda: None, 1)

    with pytest.raises(ValueError, match="max_ticks") as excinfo:
        scheduler.run_until_idle(max_ticks=-1)

    assert not isinstance(excinfo.value, InvalidAdvance)
    assert scheduler.now() == 0
    assert scheduler.pending_count() == 1
