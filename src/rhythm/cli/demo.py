"""
CLI: ``rhythm demo`` - the tick/tock demonstration.

Timeline (default ``--duration-ms 10000``)::

    0 ms      every-5s fires (run immediately)
    1000 ms   tock is registered, recurring every 2000 ms
    2000 ms   tick, then every 2000 ms
    3000 ms   tock, then every 2000 ms
    10000 ms  stop_loop()

``--virtual`` drives the same timeline on a ManualClock, so it completes
instantly with exact timings.
"""

from __future__ import annotations

import sys
from datetime import timedelta
from typing import Any

import typer

from rhythm.cli.utils import console, kv_table, print_json
from rhythm.clock import NANOS_PER_MILLI, Clock, ManualClock, MonotonicClock
from rhythm.logging import configure_from_settings
from rhythm.scheduler import Scheduler
from rhythm.tasks import TaskId

TICK_INTERVAL = timedelta(milliseconds=2000)
TOCK_DELAY = timedelta(milliseconds=1000)
SLOW_INTERVAL = timedelta(milliseconds=5000)


def run_demo(scheduler: Scheduler, duration: timedelta) -> list[dict[str, Any]]:
    """Schedule the demo tasks on ``scheduler`` and loop until stopped.

    Returns one record per firing: elapsed milliseconds, label and task id.
    """
    clock = scheduler.clock
    origin = clock.now()
    firings: list[dict[str, Any]] = []

    def record(label: str):
        def fire(task_id: TaskId) -> None:
            elapsed_ms = (clock.now() - origin) // NANOS_PER_MILLI
            firings.append({"at_ms": elapsed_ms, "task": label, "task_id": task_id})

        return fire

    def register_tock(task_id: TaskId) -> None:
        record("register-tock")(task_id)
        scheduler.schedule_every(TICK_INTERVAL, record("tock"))

    def stop(task_id: TaskId) -> None:
        record("stop")(task_id)
        scheduler.stop_loop()

    scheduler.schedule_every(TICK_INTERVAL, record("tick"))
    scheduler.schedule_after(TOCK_DELAY, register_tock)
    scheduler.schedule_every(SLOW_INTERVAL, record("every-5s"), run_immediately=True)
    scheduler.schedule_after(duration, stop)

    while scheduler.loop():
        pass

    return firings


def demo(
    duration_ms: int = typer.Option(10000, "--duration-ms", "-d", min=0, help="Stop after this many milliseconds"),
    virtual: bool = typer.Option(False, "--virtual", help="Run on a virtual clock (finishes instantly)"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
    log: bool = typer.Option(False, "--log", help="Emit scheduler logs to stderr (RHYTHM_LOG_LEVEL, RHYTHM_LOG_FORMAT)"),
) -> None:
    """Run the tick/tock demonstration and print firings and metrics."""
    if log:
        configure_from_settings(stream=sys.stderr)

    clock: Clock = ManualClock() if virtual else MonotonicClock()
    scheduler = Scheduler.from_settings(clock=clock)

    firings = run_demo(scheduler, timedelta(milliseconds=duration_ms))
    metrics = scheduler.get_metrics()
    metrics_dict = metrics.to_dict() if metrics is not None else None

    if as_json:
        print_json({
            "firings": firings,
            "metrics": metrics_dict,
            "exit": scheduler.last_loop_exit.value if scheduler.last_loop_exit else None,
        })
        return

    for firing in firings:
        console.print(
            f"[dim]{firing['at_ms']:>7} ms[/dim]  {firing['task']} (task {firing['task_id']})"
        )

    if metrics_dict is None:
        console.print("[yellow]Metrics disabled[/yellow]")
    else:
        console.print(kv_table("Scheduler metrics", metrics_dict))
