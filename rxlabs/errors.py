"""Error conditions raised (or recorded) by the scheduler and observer."""


class RxLabsError(Exception):
    """Base class for every condition detected by rxlabs."""


class InvalidAdvance(RxLabsError, ValueError):
    """Advance request that would move the clock backwards."""


class InvalidSchedule(RxLabsError, ValueError):
    """Work scheduled in the past (negative delay or past due tick)."""


class ReentrantAdvance(RxLabsError, RuntimeError):
    """`advance` called from inside work the scheduler is executing."""


class AlreadySubscribed(RxLabsError, RuntimeError):
    """Second subscription attempt on a single `StreamObserver`."""


class ProtocolViolation(RxLabsError):
    """A producer emitted after its own terminal event.

    Never raised into the producer; the observer records it so the test can
    still inspect everything captured so far.
    """

    def __init__(self, message: str, kind: str, payload=None, at=None) -> None:
        super().__init__(message)
        self.kind = kind
        self.payload = payload
        self.at = at

    def __repr__(self) -> str:
        return f"ProtocolViolation(kind={self.kind!r}, payload={self.payload!r}, at={self.at!r})"
