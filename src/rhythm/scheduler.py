"""Scheduler - the dispatch engine.

Manifesto:
    The host owns the thread. The scheduler never starts one; it only runs
    callbacks when the host calls ``tick()`` (or ``loop()``, which calls
    ``tick()`` and sleeps in between). Everything it does is synchronous,
    so cancellation is exact: once ``cancel_task()`` returns True the
    callback will not run again, even if the cancel came from another
    callback in the same tick.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULER ARCHITECTURE                                                       │
│                                                                               │
│  ┌────────────────────────────────────────────────────────────────────┐      │
│  │                         Scheduler                                  │      │
│  │                                                                    │      │
│  │   ┌─────────────────┐  ┌─────────────────┐  ┌─────────────────┐   │      │
│  │   │  Clock          │  │  TaskRegistry   │  │ MetricsRecorder │   │      │
│  │   │  (time)         │  │  (data)         │  │  (optional)     │   │      │
│  │   └────────┬────────┘  └────────┬────────┘  └────────┬────────┘   │      │
│  │            ▼                    ▼                    ▼            │      │
│  │   ┌────────────────────────────────────────────────────────────┐  │      │
│  │   │                        tick()                              │  │      │
│  │   │                                                            │  │      │
│  │   │   1. now = clock.now()  (sampled once)                     │  │      │
│  │   │   2. boundary = len(registry)                              │  │      │
│  │   │   3. for each task before boundary, in insertion order:    │  │      │
│  │   │      ├── skip if inactive or next_run > now                │  │      │
│  │   │      ├── run func(id)   ── fault ──► diagnostic sink       │  │      │
│  │   │      ├── recurring: advance next_run                       │  │      │
│  │   │      └── one-shot: deactivate, cleanup(id)                 │  │      │
│  │   │   4. sweep inactive tasks, recompute next-run hint         │  │      │
│  │   └────────────────────────────────────────────────────────────┘  │      │
│  │                                                                    │      │
│  │   loop():  tick ► sleep until next_task_time ► tick ...           │      │
│  │            exits on stop_loop() or when no tasks remain            │      │
│  └────────────────────────────────────────────────────────────────────┘      │
└──────────────────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ Calling the scheduler from another thread
    ✅ All calls, and all callbacks, happen on the host's thread
    ❌ Calling tick() from inside a task callback
    ✅ Schedule follow-up work instead; it runs on a later tick

Tags:
    rhythm, scheduling, dispatch, cooperative, single-threaded

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum

from .clock import TIME_POINT_MAX, Clock, MonotonicClock, from_nanos, to_nanos
from .diagnostics import DiagnosticSink, StderrDiagnosticSink, create_diagnostic_sink
from .errors import CallbackFault, InvalidArgumentError, SchedulerStateError
from .metrics import DEFAULT_LATE_THRESHOLD, MetricsRecorder, SchedulerMetrics
from .settings import RhythmSettings, get_settings
from .tasks import Task, TaskFn, TaskId, TaskRegistry

logger = logging.getLogger(__name__)

DEFAULT_IDLE_SLEEP = timedelta(milliseconds=100)


class LoopExit(str, Enum):
    """Why the last ``loop()`` call returned."""

    STOPPED = "stopped"  # stop_loop() was called
    IDLE = "idle"        # the registry ran empty


class Scheduler:
    """Cooperative single-threaded task scheduler.

    Example:
        >>> scheduler = Scheduler()
        >>> scheduler.schedule_every(timedelta(seconds=2), lambda tid: print("tick", tid))
        1
        >>> scheduler.schedule_after(timedelta(seconds=10), lambda tid: scheduler.stop_loop())
        2
        >>> while scheduler.loop():
        ...     pass
    """

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        diagnostic_sink: DiagnosticSink | None = None,
        metrics_enabled: bool = True,
        late_threshold: timedelta = DEFAULT_LATE_THRESHOLD,
        idle_sleep: timedelta = DEFAULT_IDLE_SLEEP,
    ) -> None:
        """Initialize the scheduler.

        Args:
            clock: Monotonic time source (default: MonotonicClock)
            diagnostic_sink: Receives CallbackFaults (default: one line on stderr)
            metrics_enabled: Sample every callback invocation
            late_threshold: Start delay after which a run counts as late
            idle_sleep: Sleep performed by loop() before exiting on an empty registry
        """
        _check_duration("late_threshold", late_threshold)
        _check_duration("idle_sleep", idle_sleep)

        self.clock = clock or MonotonicClock()
        self._registry = TaskRegistry()
        self._sink = diagnostic_sink if diagnostic_sink is not None else StderrDiagnosticSink()
        self._metrics = MetricsRecorder(self.clock, late_threshold) if metrics_enabled else None
        self._idle_sleep = to_nanos(idle_sleep)

        self._running = False
        self._ticking = False
        self.last_loop_exit: LoopExit | None = None

    @classmethod
    def from_settings(
        cls,
        settings: RhythmSettings | None = None,
        *,
        clock: Clock | None = None,
        diagnostic_sink: DiagnosticSink | None = None,
    ) -> Scheduler:
        """Build a scheduler from :class:`RhythmSettings` (cached env settings by default)."""
        settings = settings or get_settings()
        if diagnostic_sink is None:
            diagnostic_sink = create_diagnostic_sink(settings.diagnostic_sink)
        return cls(
            clock,
            diagnostic_sink=diagnostic_sink,
            metrics_enabled=settings.metrics_enabled,
            late_threshold=settings.late_threshold,
            idle_sleep=settings.idle_sleep,
        )

    # === Submission ===

    def schedule_at(self, time: int, func: TaskFn, cleanup: TaskFn | None = None) -> TaskId:
        """Run ``func`` once at monotonic time point ``time``.

        A time point in the past fires on the next tick.
        """
        if isinstance(time, bool) or not isinstance(time, int):
            raise InvalidArgumentError(
                f"Time must be an integer time point, got {type(time).__name__}"
            ).with_context(operation="schedule_at")
        _check_callbacks("schedule_at", func, cleanup)

        task = self._registry.submit(func, time, cleanup=cleanup)
        logger.debug(f"Scheduled one-shot task {task.id} at {time}")
        return task.id

    def schedule_after(
        self, delay: timedelta, func: TaskFn, cleanup: TaskFn | None = None
    ) -> TaskId:
        """Run ``func`` once after ``delay``. A zero delay fires on the next tick.

        Raises:
            InvalidArgumentError: If ``delay`` is negative
        """
        _check_duration("delay", delay, operation="schedule_after")
        _check_callbacks("schedule_after", func, cleanup)
        return self.schedule_at(self.clock.now() + to_nanos(delay), func, cleanup)

    def schedule_every(
        self,
        interval: timedelta,
        func: TaskFn,
        cleanup: TaskFn | None = None,
        run_immediately: bool = False,
        skip_if_late: bool = False,
    ) -> TaskId:
        """Run ``func`` every ``interval``.

        The first run is at ``now + interval``, or at ``now`` when
        ``run_immediately`` is set. With ``skip_if_late`` a task that fell
        behind fires once and then jumps to the next interval boundary after
        the current time; otherwise it catches up one interval per tick.
        ``cleanup`` runs only when the task is cancelled. A zero interval
        makes a one-shot task.

        Raises:
            InvalidArgumentError: If ``interval`` is negative
        """
        _check_duration("interval", interval, operation="schedule_every")
        _check_callbacks("schedule_every", func, cleanup)

        now = self.clock.now()
        period = to_nanos(interval)
        first_run = now if run_immediately else now + period
        task = self._registry.submit(
            func,
            first_run,
            cleanup=cleanup,
            interval=period,
            skip_if_late=skip_if_late,
        )
        logger.debug(
            f"Scheduled recurring task {task.id} every {interval} "
            f"(first run {first_run}, skip_if_late={skip_if_late})"
        )
        return task.id

    def cancel_task(self, task_id: TaskId) -> bool:
        """Cancel a pending task.

        Returns:
            True if a live task was cancelled (its cleanup has already run),
            False if the id is unknown, retired, or already cancelled
        """
        task = self._registry.deactivate(task_id)
        if task is None:
            return False

        logger.debug(f"Cancelled task {task_id}")
        self._run_cleanup(task)
        return True

    # === Readings ===

    def task_count(self) -> int:
        """Number of task records, including cancelled ones not yet swept."""
        return len(self._registry)

    def next_task_time(self) -> int | None:
        """Earliest next firing time point, or None when nothing is scheduled."""
        hint = self._registry.next_run_hint
        if hint == TIME_POINT_MAX:
            return None
        return hint

    def time_until_next_task(self) -> timedelta | None:
        """Time left until the next firing (never negative), or None."""
        hint = self.next_task_time()
        if hint is None:
            return None
        return from_nanos(max(hint - self.clock.now(), 0))

    @property
    def running(self) -> bool:
        """True while loop() is running and stop_loop() has not been called."""
        return self._running

    @property
    def metrics_enabled(self) -> bool:
        return self._metrics is not None

    # === Dispatch ===

    def tick(self) -> None:
        """Run every task that is due right now.

        Tasks submitted by callbacks during this tick wait for the next one.
        Callback exceptions are reported to the diagnostic sink and never
        propagate.

        Raises:
            SchedulerStateError: If called from inside a task callback
        """
        if self._ticking:
            raise SchedulerStateError(
                "tick() is not reentrant; it was called from inside a task callback"
            ).with_context(operation="tick")

        self._ticking = True
        ran = 0
        try:
            now = self.clock.now()
            self._registry.next_run_hint = TIME_POINT_MAX
            boundary = len(self._registry)

            for index in range(boundary):
                task = self._registry.task_at(index)
                if not task.active or task.next_run > now:
                    continue

                fault = self._run(task)
                ran += 1

                # Advance or retire before reporting; the sink may raise.
                retire = False
                if task.is_recurring:
                    task.advance(now)
                elif task.active:
                    # A one-shot that cancelled itself already ran its cleanup.
                    task.active = False
                    retire = True
                    logger.debug(f"Retired one-shot task {task.id}")

                try:
                    if fault is not None:
                        self._report(fault)
                finally:
                    if retire:
                        self._run_cleanup(task)
        finally:
            self._registry.sweep()
            self._ticking = False

        if ran:
            logger.debug(f"Tick ran {ran} task(s), {len(self._registry)} remaining")

    def loop(self) -> bool:
        """Drive tick() until stopped or out of work, sleeping between firings.

        Returns:
            The running flag: False when stop_loop() ended the loop, True when
            the registry ran empty. ``last_loop_exit`` tells the two apart
            without relying on the flag.

        Example:
            >>> while scheduler.loop():
            ...     pass
        """
        if self._ticking:
            raise SchedulerStateError(
                "loop() cannot be called from inside a task callback"
            ).with_context(operation="loop")

        self._running = True
        logger.info(f"Scheduler loop started with {len(self._registry)} task(s)")

        while True:
            self.tick()

            if not self._running:
                exit_reason = LoopExit.STOPPED
                break

            wake_time = self.next_task_time()
            if wake_time is None:
                self.clock.sleep(self._idle_sleep)
                exit_reason = LoopExit.IDLE
                break

            self.clock.sleep_until(wake_time)

        self.last_loop_exit = exit_reason
        logger.info(f"Scheduler loop exited ({exit_reason.value})")
        return self._running

    def stop_loop(self) -> None:
        """Ask loop() to return after the current tick. Safe from callbacks."""
        self._running = False

    # === Metrics ===

    def get_metrics(self) -> SchedulerMetrics | None:
        """Snapshot of run metrics, or None when metrics are disabled."""
        if self._metrics is None:
            return None
        return self._metrics.snapshot()

    def reset_metrics(self) -> None:
        """Zero the counters and restart the window. No-op when disabled."""
        if self._metrics is not None:
            self._metrics.reset()

    @property
    def metrics_recorder(self) -> MetricsRecorder | None:
        return self._metrics

    # === Internals ===

    def _run(self, task: Task) -> CallbackFault | None:
        fault: CallbackFault | None = None
        start = self.clock.now() if self._metrics is not None else 0

        try:
            task.func(task.id)
        except Exception as e:
            fault = CallbackFault(task.id, e, phase="run")

        if self._metrics is not None:
            self._metrics.note_run(start, self.clock.now(), task.next_run)
        return fault

    def _run_cleanup(self, task: Task) -> None:
        if task.cleanup is None:
            return
        try:
            task.cleanup(task.id)
        except Exception as e:
            self._report(CallbackFault(task.id, e, phase="cleanup"))

    def _report(self, fault: CallbackFault) -> None:
        logger.debug(f"Task {fault.task_id} {fault.phase} callback failed: {fault.reason}")
        self._sink(fault)


def create_scheduler(
    settings: RhythmSettings | None = None,
    *,
    clock: Clock | None = None,
    diagnostic_sink: DiagnosticSink | None = None,
) -> Scheduler:
    """Factory for a settings-driven scheduler."""
    return Scheduler.from_settings(settings, clock=clock, diagnostic_sink=diagnostic_sink)


def _check_duration(name: str, value: timedelta, *, operation: str | None = None) -> None:
    if not isinstance(value, timedelta):
        raise InvalidArgumentError(
            f"{name.capitalize()} must be a timedelta, got {type(value).__name__}"
        ).with_context(operation=operation)
    if value < timedelta(0):
        raise InvalidArgumentError(
            f"{name.capitalize()} must be non-negative"
        ).with_context(operation=operation)


def _check_callbacks(operation: str, func: TaskFn, cleanup: TaskFn | None) -> None:
    if not callable(func):
        raise InvalidArgumentError("Task function must be callable").with_context(
            operation=operation
        )
    if cleanup is not None and not callable(cleanup):
        raise InvalidArgumentError("Cleanup function must be callable").with_context(
            operation=operation
        )


__all__ = [
    "DEFAULT_IDLE_SLEEP",
    "LoopExit",
    "Scheduler",
    "create_scheduler",
]
