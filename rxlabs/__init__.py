"""Deterministic virtual-time testing for reactive streams."""

from rxlabs.errors import (
    AlreadySubscribed,
    InvalidAdvance,
    InvalidSchedule,
    ProtocolViolation,
    ReentrantAdvance,
    RxLabsError,
)
from rxlabs.observer import Outcome, StreamObserver, TerminalEvent, ValueEvent, subscribe
from rxlabs.protocols import CancellationHandle, Producer, Scheduler, Subscription
from rxlabs.scheduler import ScheduledHandle, SimClock, VirtualScheduler
from rxlabs.subject import ManualSubject, TimelineProducer

__all__ = [
    "AlreadySubscribed",
    "CancellationHandle",
    "InvalidAdvance",
    "InvalidSchedule",
    "ManualSubject",
    "Outcome",
    "Producer",
    "ProtocolViolation",
    "ReentrantAdvance",
    "RxLabsError",
    "ScheduledHandle",
    "Scheduler",
    "SimClock",
    "StreamObserver",
    "Subscription",
    "TerminalEvent",
    "TimelineProducer",
    "ValueEvent",
    "VirtualScheduler",
    "subscribe",
]
