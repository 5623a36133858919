"""Task records and the task registry.

The registry is a flat list kept in insertion order. The dispatch scan is
linear anyway, and a list keeps the tie-break rule trivial: tasks due at the
same instant run in the order they were submitted.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TASK LIFECYCLE                                                               │
│                                                                               │
│   submit() ──► active ──tick──► one-shot:  inactive ──► cleanup ──► swept    │
│                  │                                                            │
│                  │        ──tick──► recurring: next_run += interval          │
│                  │                                                            │
│                  └─cancel()──► inactive ──► cleanup ──► swept at next tick    │
└──────────────────────────────────────────────────────────────────────────────┘

Identifiers start at 1, increase by one per submission, and are never
reused within a registry.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .clock import TIME_POINT_MAX

# Latest time point a task can be due at; TIME_POINT_MAX itself means "never".
LATEST_TIME_POINT = TIME_POINT_MAX - 1

TaskId = int
TaskFn = Callable[[TaskId], None]


@dataclass(eq=False)
class Task:
    """One pending task.

    Attributes:
        id: Identifier returned to the submitter
        func: User callback, called with the task id
        cleanup: Optional finalizer, called with the task id at most once
        interval: Recurrence period in nanoseconds, 0 for one-shot tasks
        next_run: Next firing time point
        skip_if_late: Collapse missed firings of a recurring task into one
        active: Cleared on retirement or cancellation
    """

    id: TaskId
    func: TaskFn
    cleanup: TaskFn | None = None
    interval: int = 0
    next_run: int = 0
    skip_if_late: bool = False
    active: bool = True

    @property
    def is_recurring(self) -> bool:
        return self.interval > 0

    def advance(self, now: int) -> None:
        """Move ``next_run`` forward after a firing at ``now``.

        With ``skip_if_late`` the task lands on the first grid point strictly
        after ``now``; otherwise it moves exactly one interval, even if that
        is still in the past.
        """
        if self.skip_if_late:
            if self.next_run <= now:
                missed = (now - self.next_run) // self.interval + 1
                self.next_run += missed * self.interval
        else:
            self.next_run += self.interval
        self.next_run = min(self.next_run, LATEST_TIME_POINT)


class TaskRegistry:
    """Ordered collection of live tasks plus the earliest-firing hint."""

    def __init__(self) -> None:
        self._tasks: list[Task] = []
        self._next_id: TaskId = 1
        self.next_run_hint: int = TIME_POINT_MAX

    def submit(
        self,
        func: TaskFn,
        next_run: int,
        *,
        cleanup: TaskFn | None = None,
        interval: int = 0,
        skip_if_late: bool = False,
    ) -> Task:
        """Append a new active task and fold it into the hint.

        ``next_run`` is clamped to ``LATEST_TIME_POINT`` so a far-future task
        is never confused with the empty-registry sentinel.
        """
        next_run = min(next_run, LATEST_TIME_POINT)
        task = Task(
            id=self._next_id,
            func=func,
            cleanup=cleanup,
            interval=interval,
            next_run=next_run,
            skip_if_late=skip_if_late,
        )
        self._next_id += 1
        self._tasks.append(task)
        if next_run < self.next_run_hint:
            self.next_run_hint = next_run
        return task

    def get(self, task_id: TaskId) -> Task | None:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def deactivate(self, task_id: TaskId) -> Task | None:
        """Clear the active flag of a live task.

        Returns the task if it was found and still active, None otherwise.
        The record stays in place until the next ``sweep()``.
        """
        task = self.get(task_id)
        if task is None or not task.active:
            return None
        task.active = False
        return task

    def task_at(self, index: int) -> Task:
        return self._tasks[index]

    def sweep(self) -> None:
        """Drop inactive records and recompute the hint exactly."""
        self._tasks = [task for task in self._tasks if task.active]
        self.next_run_hint = min(
            (task.next_run for task in self._tasks), default=TIME_POINT_MAX
        )

    def active_count(self) -> int:
        return sum(1 for task in self._tasks if task.active)

    def __len__(self) -> int:
        return len(self._tasks)
