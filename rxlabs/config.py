"""Environment-driven configuration.

Variables:

- ``RXLABS_START_TICK``: tick a new `VirtualScheduler` starts at (default 0).
- ``RXLABS_TICK_SECONDS``: wall-clock length of one tick for the asyncio
  runtime and the reactivex bridge (default 0.001, one millisecond).
- ``RXLABS_IDLE_TICK_LIMIT``: ceiling for `VirtualScheduler.run_until_idle`
  (default 10000 ticks).
"""

import os
from dataclasses import dataclass
from typing import Optional

START_TICK_ENV_VAR = "RXLABS_START_TICK"
TICK_SECONDS_ENV_VAR = "RXLABS_TICK_SECONDS"
IDLE_TICK_LIMIT_ENV_VAR = "RXLABS_IDLE_TICK_LIMIT"


def _env_int(name: str, *, default: int, minimum: Optional[int] = None) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if minimum is not None and value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, *, default: float, positive: bool = False) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if positive and value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return value


class Configuration:
    """Typed accessors for the environment variables above."""

    @classmethod
    def start_tick(cls) -> int:
        return _env_int(START_TICK_ENV_VAR, default=0, minimum=0)

    @classmethod
    def tick_seconds(cls) -> float:
        return _env_float(TICK_SECONDS_ENV_VAR, default=0.001, positive=True)

    @classmethod
    def idle_tick_limit(cls) -> int:
        return _env_int(IDLE_TICK_LIMIT_ENV_VAR, default=10_000, minimum=1)


@dataclass(frozen=True)
class SchedulerConfig:
    """Snapshot of the scheduler settings."""

    start_tick: int = 0
    tick_seconds: float = 0.001
    idle_tick_limit: int = 10_000

    def __post_init__(self) -> None:
        if self.start_tick < 0:
            raise ValueError(f"start_tick must be >= 0, got {self.start_tick}")
        if self.tick_seconds <= 0:
            raise ValueError(f"tick_seconds must be > 0, got {self.tick_seconds}")
        if self.idle_tick_limit < 1:
            raise ValueError(f"idle_tick_limit must be >= 1, got {self.idle_tick_limit}")

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        return cls(
            start_tick=Configuration.start_tick(),
            tick_seconds=Configuration.tick_seconds(),
            idle_tick_limit=Configuration.idle_tick_limit(),
        )
