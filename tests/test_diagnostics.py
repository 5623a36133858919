"""Tests for rhythm.diagnostics."""

from __future__ import annotations

import io
from datetime import timedelta

import pytest

from rhythm.diagnostics import (
    LoggingDiagnosticSink,
    MemoryDiagnosticSink,
    StderrDiagnosticSink,
    create_diagnostic_sink,
)
from rhythm.errors import CallbackFault, ConfigError
from rhythm.scheduler import Scheduler


class FakeLogger:
    def __init__(self):
        self.calls = []

    def error(self, event, **kwargs):
        self.calls.append((event, kwargs))


class TestStderrDiagnosticSink:
    def test_single_line_on_stderr(self, capsys):
        """Each fault becomes exactly one line on stderr."""
        StderrDiagnosticSink()(CallbackFault(3, ValueError("boom")))

        captured = capsys.readouterr()
        assert captured.out == ""
        lines = captured.err.splitlines()
        assert len(lines) == 1
        assert lines[0] == (
            "event='task.callback_failed' task_id=3 phase='run' reason='ValueError: boom'"
        )

    def test_multiline_message_stays_on_one_line(self):
        """Newlines in the exception text are escaped."""
        stream = io.StringIO()
        StderrDiagnosticSink(stream)(CallbackFault(1, RuntimeError("line one\nline two")))
        assert stream.getvalue().count("\n") == 1

    def test_default_scheduler_sink(self, capsys, clock):
        """A scheduler without an explicit sink reports to stderr."""
        scheduler = Scheduler(clock)

        def boom(task_id):
            raise ValueError("boom")

        scheduler.schedule_after(timedelta(0), boom)
        scheduler.tick()
        err = capsys.readouterr().err
        assert "task.callback_failed" in err
        assert "task_id=1" in err


class TestLoggingDiagnosticSink:
    def test_logs_event_with_exc_info(self):
        """The fault is logged as a structured event carrying the exception."""
        logger = FakeLogger()
        cause = ValueError("boom")
        LoggingDiagnosticSink(logger)(CallbackFault(4, cause, phase="cleanup"))

        event, fields = logger.calls[0]
        assert event == "task.callback_failed"
        assert fields["task_id"] == 4
        assert fields["phase"] == "cleanup"
        assert fields["exc_info"] is cause


class TestMemoryDiagnosticSink:
    def test_collects_faults(self):
        sink = MemoryDiagnosticSink()
        sink(CallbackFault(1, ValueError()))
        sink(CallbackFault(5, ValueError()))
        assert len(sink) == 2
        assert sink.task_ids() == [1, 5]
        sink.clear()
        assert len(sink) == 0


class TestCreateDiagnosticSink:
    @pytest.mark.parametrize(
        "name,cls",
        [
            ("stderr", StderrDiagnosticSink),
            ("log", LoggingDiagnosticSink),
            ("memory", MemoryDiagnosticSink),
        ],
    )
    def test_known_names(self, name, cls):
        assert isinstance(create_diagnostic_sink(name), cls)

    def test_unknown_name(self):
        """Unknown names are configuration errors, not bare ValueErrors."""
        with pytest.raises(ConfigError, match="Unknown diagnostic sink") as exc_info:
            create_diagnostic_sink("pager")
        assert exc_info.value.context.operation == "create_diagnostic_sink"
        assert exc_info.value.context.metadata == {"sink": "pager"}
