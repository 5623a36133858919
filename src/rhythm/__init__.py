"""
rhythm - cooperative, single-threaded task scheduling for embedding hosts.

Manifesto:
    The host owns the thread and the loop. rhythm keeps a registry of
    one-shot and recurring callbacks on a monotonic timeline, runs the due
    ones when the host calls ``tick()``, and reports how much time those
    callbacks took.

    - **Deterministic:** insertion-order dispatch, exact integer time
    - **Contained:** a failing callback is reported, never propagated
    - **Measurable:** run counts, late runs, run-time fraction

Modules:
    - rhythm.scheduler: Scheduler, LoopExit, create_scheduler
    - rhythm.tasks: Task records and the registry
    - rhythm.clock: MonotonicClock, ManualClock, duration helpers
    - rhythm.metrics: SchedulerMetrics, MetricsRecorder
    - rhythm.host: host adapter in epoch seconds / milliseconds
    - rhythm.errors, rhythm.diagnostics, rhythm.settings, rhythm.logging

Example:
    >>> from datetime import timedelta
    >>> from rhythm import Scheduler
    >>> scheduler = Scheduler()
    >>> scheduler.schedule_every(timedelta(seconds=2), lambda task_id: print("tick"))
    1

Tags:
    rhythm, scheduling, timers, embedding
"""

__version__ = "0.1.0"

from .clock import Clock, ManualClock, MonotonicClock
from .diagnostics import (
    LoggingDiagnosticSink,
    MemoryDiagnosticSink,
    StderrDiagnosticSink,
)
from .errors import (
    CallbackFault,
    ConfigError,
    ErrorCategory,
    InvalidArgumentError,
    RhythmError,
    SchedulerStateError,
)
from .metrics import MetricsRecorder, SchedulerMetrics
from .scheduler import LoopExit, Scheduler, create_scheduler
from .settings import RhythmSettings, get_settings
from .tasks import TaskFn, TaskId

__all__ = [
    "__version__",
    # scheduler
    "Scheduler",
    "LoopExit",
    "create_scheduler",
    "TaskId",
    "TaskFn",
    # clock
    "Clock",
    "MonotonicClock",
    "ManualClock",
    # metrics
    "SchedulerMetrics",
    "MetricsRecorder",
    # errors
    "RhythmError",
    "ErrorCategory",
    "InvalidArgumentError",
    "ConfigError",
    "SchedulerStateError",
    "CallbackFault",
    # diagnostics
    "StderrDiagnosticSink",
    "LoggingDiagnosticSink",
    "MemoryDiagnosticSink",
    # settings
    "RhythmSettings",
    "get_settings",
]
