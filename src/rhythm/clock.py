"""Monotonic clock abstraction.

The scheduler only ever reads time through a ``Clock``. Time points are
integer nanoseconds on a monotonic timeline, so they never regress when the
wall clock is adjusted and interval arithmetic stays exact.

┌──────────────────────────────────────────────────────────────────────────────┐
│  CLOCKS                                                                       │
│                                                                               │
│   MonotonicClock   time.monotonic_ns() + time.sleep()      (production)      │
│   ManualClock      explicit set()/advance(); sleeping advances virtual time  │
│                                                                               │
│   Durations at the public API are ``datetime.timedelta``; ``to_nanos()``     │
│   converts them exactly (timedelta resolution is one microsecond).           │
└──────────────────────────────────────────────────────────────────────────────┘

Tags:
    rhythm, clock, monotonic, virtual-time

Doc-Types:
    api-reference
"""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Protocol, runtime_checkable

# Sentinel "never" time point, the largest signed 64-bit tick count.
TIME_POINT_MAX = 2**63 - 1

NANOS_PER_MICRO = 1_000
NANOS_PER_MILLI = 1_000_000
NANOS_PER_SECOND = 1_000_000_000

_ONE_MICROSECOND = timedelta(microseconds=1)

# Longest single time.sleep() call; longer waits return early and the caller
# re-checks its deadline; time.sleep() rejects timeouts past the platform limit.
MAX_SLEEP_CHUNK = 86_400 * NANOS_PER_SECOND


def to_nanos(duration: timedelta) -> int:
    """Convert a timedelta to integer nanoseconds without float rounding."""
    return (duration // _ONE_MICROSECOND) * NANOS_PER_MICRO


def from_nanos(nanos: int) -> timedelta:
    """Convert integer nanoseconds to a timedelta, truncated to microseconds."""
    return timedelta(microseconds=nanos // NANOS_PER_MICRO)


@runtime_checkable
class Clock(Protocol):
    """Protocol for monotonic time sources.

    Implementations:
        - MonotonicClock: process monotonic clock (default)
        - ManualClock: virtual time for tests and simulations
    """

    def now(self) -> int:
        """Current time point in nanoseconds."""
        ...

    def sleep(self, duration: int) -> None:
        """Block for ``duration`` nanoseconds."""
        ...

    def sleep_until(self, deadline: int) -> None:
        """Block until the clock reaches ``deadline``."""
        ...


class MonotonicClock:
    """Process-wide monotonic clock backed by ``time.monotonic_ns``."""

    name = "monotonic"

    def now(self) -> int:
        return time.monotonic_ns()

    def sleep(self, duration: int) -> None:
        if duration > 0:
            time.sleep(min(duration, MAX_SLEEP_CHUNK) / NANOS_PER_SECOND)

    def sleep_until(self, deadline: int) -> None:
        self.sleep(deadline - self.now())


class ManualClock:
    """Clock whose time only moves when told to.

    Sleeping advances the virtual time instead of blocking, so a scheduler
    ``loop()`` driven by a ManualClock runs through its whole timeline
    instantly.

    Example:
        >>> clock = ManualClock()
        >>> clock.advance(timedelta(milliseconds=25))
        >>> clock.now()
        25000000
    """

    name = "manual"

    def __init__(self, start: int = 0) -> None:
        self._now = start
        self.sleeps: list[int] = []

    def now(self) -> int:
        return self._now

    def set(self, time_point: int) -> None:
        """Jump to an absolute time point. Monotonic: never moves backwards."""
        if time_point < self._now:
            raise ValueError(
                f"ManualClock cannot move backwards ({time_point} < {self._now})"
            )
        self._now = time_point

    def advance(self, delta: timedelta) -> None:
        """Move time forward by ``delta``."""
        self.set(self._now + to_nanos(delta))

    def sleep(self, duration: int) -> None:
        self.sleeps.append(max(duration, 0))
        if duration > 0:
            self._now += duration

    def sleep_until(self, deadline: int) -> None:
        self.sleep(deadline - self._now)


__all__ = [
    "TIME_POINT_MAX",
    "NANOS_PER_MICRO",
    "NANOS_PER_MILLI",
    "NANOS_PER_SECOND",
    "Clock",
    "MonotonicClock",
    "ManualClock",
    "to_nanos",
    "from_nanos",
    "MAX_SLEEP_CHUNK",
]
