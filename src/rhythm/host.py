"""Host adapter - the embedding surface of rhythm.

Hosts (a scripting runtime, a game loop, a plain Python script) talk to the
scheduler in host units: epoch seconds for absolute times, integer
milliseconds for delays and intervals, plain dicts for metrics. The adapter
converts those values to and from scheduler arguments and owns a reference
to every submitted host function until its task is cancelled or retired.

┌──────────────────────────────────────────────────────────────────────────────┐
│  HOST CALL                    SCHEDULER                    RETURN            │
│  schedule_at(epoch_s, fn)     schedule_at(time point)      task id           │
│  schedule_after(ms, fn)       schedule_after(timedelta)    task id           │
│  schedule_every(ms, fn)       schedule_every(timedelta)    task id           │
│  cancel_task(id)              cancel_task                  bool              │
│  tick() / loop() / stop_loop()                             None / bool / None│
│  ms_until_next_task()         time_until_next_task         int | None        │
│  get_next_task_time()         next_task_time → epoch s     int | None        │
│  get_task_count()             task_count                   int               │
│  get_scheduler_metrics()      get_metrics().to_dict()      dict | None       │
│  reset_scheduler_metrics()    reset_metrics                None              │
└──────────────────────────────────────────────────────────────────────────────┘

Module-level functions delegate to a lazily created process-wide adapter,
so a host can simply ``from rhythm import host`` and call
``host.schedule_after(1000, fn)``.

Tags:
    rhythm, embedding, adapter, host-binding
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from .errors import InvalidArgumentError
from .scheduler import Scheduler
from .tasks import TaskFn, TaskId
from .timestamps import WallClock, epoch_to_time_point, time_point_to_epoch

logger = logging.getLogger(__name__)

HOST_FUNCTIONS = (
    "schedule_at",
    "schedule_after",
    "schedule_every",
    "cancel_task",
    "tick",
    "loop",
    "stop_loop",
    "ms_until_next_task",
    "get_next_task_time",
    "get_task_count",
    "get_scheduler_metrics",
    "reset_scheduler_metrics",
)


def _check_int(name: str, value: Any, operation: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(
            f"{name} must be an integer, got {type(value).__name__}"
        ).with_context(operation=operation)
    return value


def _check_fn(fn: Any, operation: str) -> TaskFn:
    if not callable(fn):
        raise InvalidArgumentError(
            f"Task function must be callable, got {type(fn).__name__}"
        ).with_context(operation=operation)
    return fn


class HostAdapter:
    """Adapts a :class:`Scheduler` to host-level values.

    Each submitted function is held in ``handles`` under its task id. The
    task's cleanup releases that handle, so handles are released exactly
    once: when the task is cancelled or when a one-shot retires.
    """

    def __init__(
        self,
        scheduler: Scheduler | None = None,
        *,
        wall_clock: WallClock = time.time_ns,
    ) -> None:
        self.scheduler = scheduler if scheduler is not None else Scheduler.from_settings()
        self._wall_clock = wall_clock
        self.handles: dict[TaskId, TaskFn] = {}

    # === Submission ===

    def schedule_at(self, epoch_seconds: int, fn: TaskFn) -> TaskId:
        """Run ``fn`` once at a wall-clock time given in whole epoch seconds."""
        epoch_seconds = _check_int("Time", epoch_seconds, "schedule_at")
        fn = _check_fn(fn, "schedule_at")
        time_point = epoch_to_time_point(
            epoch_seconds, self.scheduler.clock, self._wall_clock
        )
        return self._register(
            fn, lambda call, release: self.scheduler.schedule_at(time_point, call, release)
        )

    def schedule_after(self, delay_ms: int, fn: TaskFn) -> TaskId:
        """Run ``fn`` once after ``delay_ms`` milliseconds."""
        delay_ms = _check_int("Delay", delay_ms, "schedule_after")
        if delay_ms < 0:
            raise InvalidArgumentError("Delay must be non-negative").with_context(
                operation="schedule_after"
            )
        fn = _check_fn(fn, "schedule_after")
        delay = timedelta(milliseconds=delay_ms)
        return self._register(
            fn, lambda call, release: self.scheduler.schedule_after(delay, call, release)
        )

    def schedule_every(
        self,
        interval_ms: int,
        fn: TaskFn,
        run_immediately: bool = False,
        skip_if_late: bool = False,
    ) -> TaskId:
        """Run ``fn`` every ``interval_ms`` milliseconds."""
        interval_ms = _check_int("Interval", interval_ms, "schedule_every")
        if interval_ms < 0:
            raise InvalidArgumentError("Interval must be non-negative").with_context(
                operation="schedule_every"
            )
        fn = _check_fn(fn, "schedule_every")
        interval = timedelta(milliseconds=interval_ms)
        return self._register(
            fn,
            lambda call, release: self.scheduler.schedule_every(
                interval,
                call,
                release,
                run_immediately=bool(run_immediately),
                skip_if_late=bool(skip_if_late),
            ),
        )

    def cancel_task(self, task_id: int) -> bool:
        task_id = _check_int("Task id", task_id, "cancel_task")
        return self.scheduler.cancel_task(task_id)

    # === Dispatch ===

    def tick(self) -> None:
        self.scheduler.tick()

    def loop(self) -> bool:
        return self.scheduler.loop()

    def stop_loop(self) -> None:
        self.scheduler.stop_loop()

    # === Readings ===

    def ms_until_next_task(self) -> int | None:
        remaining = self.scheduler.time_until_next_task()
        if remaining is None:
            return None
        return remaining // timedelta(milliseconds=1)

    def get_next_task_time(self) -> int | None:
        """Next firing as whole epoch seconds, or None."""
        time_point = self.scheduler.next_task_time()
        if time_point is None:
            return None
        return time_point_to_epoch(time_point, self.scheduler.clock, self._wall_clock)

    def get_task_count(self) -> int:
        return self.scheduler.task_count()

    def get_scheduler_metrics(self) -> dict[str, Any] | None:
        metrics = self.scheduler.get_metrics()
        if metrics is None:
            return None
        return metrics.to_dict()

    def reset_scheduler_metrics(self) -> None:
        self.scheduler.reset_metrics()

    def exports(self) -> dict[str, Callable[..., Any]]:
        """Name → bound method table of every host call."""
        return {name: getattr(self, name) for name in HOST_FUNCTIONS}

    # === Internals ===

    def _register(
        self,
        fn: TaskFn,
        submit: Callable[[TaskFn, TaskFn], TaskId],
    ) -> TaskId:
        handles = self.handles

        def call(task_id: TaskId) -> None:
            handles[task_id](task_id)

        def release(task_id: TaskId) -> None:
            handles.pop(task_id, None)
            logger.debug(f"Released host handle for task {task_id}")

        task_id = submit(call, release)
        handles[task_id] = fn
        return task_id


# ── Process-wide default adapter ─────────────────────────────────────────

_default_adapter: HostAdapter | None = None


def get_default_adapter() -> HostAdapter:
    """Return the process-wide adapter, creating it on first use."""
    global _default_adapter
    if _default_adapter is None:
        _default_adapter = HostAdapter()
    return _default_adapter


def reset_default_adapter(adapter: HostAdapter | None = None) -> None:
    """Replace (or drop, when None) the process-wide adapter."""
    global _default_adapter
    _default_adapter = adapter


def schedule_at(epoch_seconds: int, fn: TaskFn) -> TaskId:
    return get_default_adapter().schedule_at(epoch_seconds, fn)


def schedule_after(delay_ms: int, fn: TaskFn) -> TaskId:
    return get_default_adapter().schedule_after(delay_ms, fn)


def schedule_every(
    interval_ms: int,
    fn: TaskFn,
    run_immediately: bool = False,
    skip_if_late: bool = False,
) -> TaskId:
    return get_default_adapter().schedule_every(
        interval_ms, fn, run_immediately=run_immediately, skip_if_late=skip_if_late
    )


def cancel_task(task_id: int) -> bool:
    return get_default_adapter().cancel_task(task_id)


def tick() -> None:
    get_default_adapter().tick()


def loop() -> bool:
    return get_default_adapter().loop()


def stop_loop() -> None:
    get_default_adapter().stop_loop()


def ms_until_next_task() -> int | None:
    return get_default_adapter().ms_until_next_task()


def get_next_task_time() -> int | None:
    return get_default_adapter().get_next_task_time()


def get_task_count() -> int:
    return get_default_adapter().get_task_count()


def get_scheduler_metrics() -> dict[str, Any] | None:
    return get_default_adapter().get_scheduler_metrics()


def reset_scheduler_metrics() -> None:
    get_default_adapter().reset_scheduler_metrics()
