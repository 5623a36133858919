"""Run-time utilization metrics for the scheduler.

When metrics are enabled, every user-callback invocation is sampled: the
recorder counts runs, counts runs that started late, and accumulates the
time spent inside callbacks. Dividing that time by the measurement window
gives the fraction of wall time the host spent running tasks.

Counters saturate instead of wrapping, so a long-running host never reads a
spurious zero.

Example:
    >>> from rhythm.clock import ManualClock
    >>> recorder = MetricsRecorder(ManualClock())
    >>> recorder.note_run(start=0, end=3_000_000, due=0)
    >>> recorder.snapshot().total_run_time_ms
    3

Export:
    ``collect()`` returns Prometheus-style samples and ``export_prometheus()``
    renders them in the text exposition format.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any

from .clock import NANOS_PER_MILLI, Clock, from_nanos, to_nanos

# Counter ceilings: 32-bit unsigned run counts, 64-bit signed millisecond totals.
RUN_COUNT_MAX = 2**32 - 1
RUN_TIME_MS_MAX = 2**63 - 1

DEFAULT_LATE_THRESHOLD = timedelta(milliseconds=10)


@dataclass(frozen=True)
class SchedulerMetrics:
    """Point-in-time snapshot of scheduler metrics."""

    total_runs: int = 0
    late_runs: int = 0
    total_run_time_ms: int = 0
    measurement_window_ms: int = 0

    @property
    def run_time_fraction(self) -> float:
        """Fraction of the measurement window spent running tasks."""
        if self.measurement_window_ms == 0:
            return 0.0
        return self.total_run_time_ms / self.measurement_window_ms

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict, including the derived fraction."""
        result = asdict(self)
        result["run_time_fraction"] = self.run_time_fraction
        return result


class MetricsRecorder:
    """Accumulates per-invocation samples between resets."""

    def __init__(
        self,
        clock: Clock,
        late_threshold: timedelta = DEFAULT_LATE_THRESHOLD,
    ) -> None:
        self._clock = clock
        self._late_threshold = to_nanos(late_threshold)
        self._total_runs = 0
        self._late_runs = 0
        self._total_run_time_ms = 0
        self._window_start = clock.now()

    @property
    def late_threshold(self) -> timedelta:
        return from_nanos(self._late_threshold)

    def is_late(self, start: int, due: int) -> bool:
        """A run is late when it starts more than the threshold after it was due."""
        return start > due + self._late_threshold

    def note_run(self, start: int, end: int, due: int) -> None:
        """Record one invocation that ran from ``start`` to ``end``."""
        run_time_ms = max(end - start, 0) // NANOS_PER_MILLI

        if self._total_runs < RUN_COUNT_MAX:
            self._total_runs += 1

        if self.is_late(start, due) and self._late_runs < RUN_COUNT_MAX:
            self._late_runs += 1

        if RUN_TIME_MS_MAX - self._total_run_time_ms > run_time_ms:
            self._total_run_time_ms += run_time_ms
        else:
            self._total_run_time_ms = RUN_TIME_MS_MAX

    def snapshot(self) -> SchedulerMetrics:
        """Current totals, with the window measured up to now."""
        window = self._clock.now() - self._window_start
        return SchedulerMetrics(
            total_runs=self._total_runs,
            late_runs=self._late_runs,
            total_run_time_ms=self._total_run_time_ms,
            measurement_window_ms=max(window, 0) // NANOS_PER_MILLI,
        )

    def reset(self) -> None:
        """Zero the counters and restart the measurement window."""
        self._total_runs = 0
        self._late_runs = 0
        self._total_run_time_ms = 0
        self._window_start = self._clock.now()

    def collect(self) -> list[dict[str, Any]]:
        """Collect metric samples for export."""
        snap = self.snapshot()
        return [
            {"name": "rhythm_task_runs_total", "type": "counter", "labels": {}, "value": snap.total_runs},
            {"name": "rhythm_task_late_runs_total", "type": "counter", "labels": {}, "value": snap.late_runs},
            {"name": "rhythm_task_run_time_ms_total", "type": "counter", "labels": {}, "value": snap.total_run_time_ms},
            {"name": "rhythm_measurement_window_ms", "type": "gauge", "labels": {}, "value": snap.measurement_window_ms},
        ]

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = []
        for data in self.collect():
            lines.append(f"# TYPE {data['name']} {data['type']}")
            lines.append(f"{data['name']} {data['value']}")
        return "\n".join(lines)


__all__ = [
    "RUN_COUNT_MAX",
    "RUN_TIME_MS_MAX",
    "DEFAULT_LATE_THRESHOLD",
    "SchedulerMetrics",
    "MetricsRecorder",
]
