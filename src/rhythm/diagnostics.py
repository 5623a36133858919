"""Diagnostic sinks for callback faults.

When a task callback raises, ``tick()`` wraps the exception in a
:class:`~rhythm.errors.CallbackFault` and hands it to the scheduler's
diagnostic sink. A sink is any callable accepting that fault; the scheduler
swallows the fault afterwards.

Sinks:
    - StderrDiagnosticSink: one key/value line on stderr (default)
    - LoggingDiagnosticSink: ``task.callback_failed`` event with traceback
    - MemoryDiagnosticSink: keeps faults in a list

Tags:
    rhythm, diagnostics, error-reporting, structlog
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from typing import Any, TextIO

import structlog

from .errors import CallbackFault, ConfigError
from .logging import get_logger

DiagnosticSink = Callable[[CallbackFault], None]


class StderrDiagnosticSink:
    """Write each fault as a single line to standard error.

    Output looks like::

        event='task.callback_failed' task_id=3 phase='run' reason='ValueError: boom'

    Values are rendered with ``repr`` so a multi-line exception message still
    produces exactly one line.
    """

    name = "stderr"

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def __call__(self, fault: CallbackFault) -> None:
        # Resolve stderr at call time so redirected streams are honoured.
        stream = self._stream or sys.stderr
        logger = structlog.wrap_logger(
            structlog.PrintLogger(stream),
            processors=[
                structlog.processors.KeyValueRenderer(
                    key_order=["event", "task_id", "phase", "reason"],
                ),
            ],
            wrapper_class=structlog.BoundLogger,
            context_class=dict,
        )
        logger.error(
            "task.callback_failed",
            task_id=fault.task_id,
            phase=fault.phase,
            reason=fault.reason,
        )


class LoggingDiagnosticSink:
    """Report faults through the package's structured logger, with traceback."""

    name = "log"

    def __init__(self, logger: Any | None = None) -> None:
        self._logger = logger or get_logger("rhythm.diagnostics")

    def __call__(self, fault: CallbackFault) -> None:
        self._logger.error(
            "task.callback_failed",
            task_id=fault.task_id,
            phase=fault.phase,
            reason=fault.reason,
            exc_info=fault.cause,
        )


class MemoryDiagnosticSink:
    """Collect faults in memory. Handy for tests and for hosts that poll."""

    name = "memory"

    def __init__(self) -> None:
        self.faults: list[CallbackFault] = []

    def __call__(self, fault: CallbackFault) -> None:
        self.faults.append(fault)

    def __len__(self) -> int:
        return len(self.faults)

    def task_ids(self) -> list[int]:
        return [fault.task_id for fault in self.faults]

    def clear(self) -> None:
        self.faults.clear()


_SINKS: dict[str, type] = {
    StderrDiagnosticSink.name: StderrDiagnosticSink,
    LoggingDiagnosticSink.name: LoggingDiagnosticSink,
    MemoryDiagnosticSink.name: MemoryDiagnosticSink,
}


def create_diagnostic_sink(name: str) -> DiagnosticSink:
    """Build a sink by its configured name (``stderr``, ``log``, ``memory``)."""
    try:
        return _SINKS[name]()
    except KeyError:
        raise ConfigError(
            f"Unknown diagnostic sink '{name}', expected one of {sorted(_SINKS)}"
        ).with_context(operation="create_diagnostic_sink", sink=name) from None


__all__ = [
    "DiagnosticSink",
    "StderrDiagnosticSink",
    "LoggingDiagnosticSink",
    "MemoryDiagnosticSink",
    "create_diagnostic_sink",
]
