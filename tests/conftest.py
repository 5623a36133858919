"""
Shared pytest fixtures for rhythm tests.

This module provides:
- A virtual clock so scheduler tests never sleep
- An in-memory diagnostic sink for asserting on callback faults
- Settings isolation (env vars and the settings cache)

Usage:
    def test_something(scheduler, clock, sink):
        scheduler.schedule_after(timedelta(milliseconds=5), fn)
        clock.advance(timedelta(milliseconds=5))
        scheduler.tick()
"""

from __future__ import annotations

import os

import pytest

from rhythm.clock import ManualClock
from rhythm.diagnostics import MemoryDiagnosticSink
from rhythm.scheduler import Scheduler
from rhythm.settings import clear_settings_cache


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Strip RHYTHM_* variables and reset the settings cache around each test."""
    for key in list(os.environ):
        if key.startswith("RHYTHM_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def sink() -> MemoryDiagnosticSink:
    return MemoryDiagnosticSink()


@pytest.fixture
def scheduler(clock, sink) -> Scheduler:
    return Scheduler(clock, diagnostic_sink=sink)


class Recorder:
    """Callable that records (task_id, time point) for each invocation."""

    def __init__(self, clock: ManualClock | None = None) -> None:
        self.clock = clock
        self.calls: list[tuple[int, int | None]] = []

    def __call__(self, task_id: int) -> None:
        self.calls.append((task_id, self.clock.now() if self.clock else None))

    @property
    def count(self) -> int:
        return len(self.calls)

    @property
    def times(self) -> list[int | None]:
        return [t for _, t in self.calls]


@pytest.fixture
def recorder(clock) -> Recorder:
    return Recorder(clock)
