"""
Wall-clock ↔ monotonic time conversion (stdlib-only).

The scheduler never sees wall-clock values. Hosts that speak in epoch
seconds (``os.time()``-style integers) translate at
the adapter boundary by sampling the wall clock and the scheduler clock at
the same instant and applying the offset.

Manifesto:
    A monotonic clock cannot be adjusted, a wall clock can. Keeping the two
    apart means NTP steps or manual clock changes only ever affect the single
    translation performed when a task is submitted, never the timeline the
    scheduler runs on.

Features:
    - **epoch_to_time_point():** epoch seconds → scheduler time point
    - **time_point_to_epoch():** scheduler time point → epoch seconds (floored)

Tags:
    timestamps, monotonic, epoch, rhythm, stdlib-only

Doc-Types:
    - API Reference
    - Utility Documentation

STDLIB ONLY - NO PYDANTIC.
"""

import time
from collections.abc import Callable

from .clock import NANOS_PER_SECOND, Clock

WallClock = Callable[[], int]
"""Callable returning wall-clock time as integer nanoseconds since the epoch."""


def epoch_to_time_point(
    epoch_seconds: int,
    clock: Clock,
    wall_clock: WallClock = time.time_ns,
) -> int:
    """Translate whole epoch seconds into a time point on ``clock``.

    Both clocks are sampled back to back and the difference between the
    target and "now" on the wall clock is applied to "now" on ``clock``.
    """
    now_wall = wall_clock()
    now_mono = clock.now()
    return now_mono + (epoch_seconds * NANOS_PER_SECOND - now_wall)


def time_point_to_epoch(
    time_point: int,
    clock: Clock,
    wall_clock: WallClock = time.time_ns,
) -> int:
    """Translate a time point on ``clock`` into whole epoch seconds (floored)."""
    now_wall = wall_clock()
    now_mono = clock.now()
    return (now_wall + (time_point - now_mono)) // NANOS_PER_SECOND

