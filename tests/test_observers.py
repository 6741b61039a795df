"""Tests for session observers.

These tests verify the observer implementations that handle side effects
(console output, log records) based on session events.
"""

import logging
from datetime import datetime
from unittest.mock import MagicMock

from flowwatch.execution.bus import EventBus
from flowwatch.execution.events import (
    LogEmitted,
    SessionCompleted,
    SessionErrored,
    SessionStarted,
    StepParsed,
)
from flowwatch.execution.observers import ConsoleObserver, LoggingObserver
from flowwatch.models import RunStats, StepRecord, StepStatus


NOW = datetime(2024, 1, 1, 12, 0, 0)


def make_step(name, status=StepStatus.PASSED, declared_total=None):
    return StepRecord(name=name, status=status, started_at=NOW, ended_at=NOW,
                      declared_total=declared_total)


def started(handle="exec-1"):
    return SessionStarted(handle=handle, command=["npx", "flow-test-engine"], cwd="/work", pid=7)


class TestConsoleObserver:
    """Tests for ConsoleObserver event forwarding."""

    def test_session_started_prints_header(self):
        bus = EventBus()
        reporter = MagicMock()
        observer = ConsoleObserver(reporter, bus, suite="users.yaml")

        bus.emit(started())

        reporter.execution_started.assert_called_once_with(
            suite="users.yaml", command=["npx", "flow-test-engine"], cwd="/work"
        )
        observer.close()

    def test_suite_label_defaults_to_handle(self):
        bus = EventBus()
        reporter = MagicMock()
        ConsoleObserver(reporter, bus)

        bus.emit(started("exec-9"))

        assert reporter.execution_started.call_args.kwargs["suite"] == "exec-9"

    def test_log_lines_forwarded(self):
        bus = EventBus()
        reporter = MagicMock()
        ConsoleObserver(reporter, bus)

        bus.emit(LogEmitted(handle="exec-1", level="error", message="boom"))

        reporter.engine_output.assert_called_once_with(level="error", line="boom")

    def test_step_total_prefers_declared_count(self):
        bus = EventBus()
        reporter = MagicMock()
        ConsoleObserver(reporter, bus)
        step = make_step("Login", declared_total=5)

        bus.emit(StepParsed(handle="exec-1", step=step, position=1, total=1))

        reporter.step_completed.assert_called_once_with(step=step, position=1, total=5)

    def test_summary_counts_steps_for_handle(self):
        bus = EventBus()
        reporter = MagicMock()
        ConsoleObserver(reporter, bus)

        bus.emit(started())
        bus.emit(StepParsed(handle="exec-1", step=make_step("a"), position=1, total=1))
        bus.emit(StepParsed(handle="exec-1", step=make_step("b", StepStatus.FAILED), position=2, total=2))
        bus.emit(StepParsed(handle="exec-2", step=make_step("other"), position=1, total=1))
        bus.emit(SessionCompleted(handle="exec-1", success=False, exit_code=1, duration_ms=250.0))

        reporter.execution_completed.assert_called_once_with(
            success=False,
            exit_code=1,
            duration_ms=250.0,
            stats=RunStats(total=2, passed=1, failed=1, skipped=0),
            cancelled=False,
        )

    def test_session_errored_reports_error(self):
        bus = EventBus()
        reporter = MagicMock()
        ConsoleObserver(reporter, bus)

        bus.emit(SessionErrored(handle="exec-1", message="spawn npx ENOENT"))

        reporter.error.assert_called_once_with("spawn npx ENOENT")

    def test_reporter_failure_is_logged_not_raised(self, caplog):
        bus = EventBus()
        reporter = MagicMock()
        reporter.engine_output.side_effect = OSError("broken pipe")
        ConsoleObserver(reporter, bus)

        with caplog.at_level(logging.WARNING):
            bus.emit(LogEmitted(handle="exec-1", level="info", message="line"))

        assert "ConsoleObserver failed on log_emitted" in caplog.text
        assert "broken pipe" in caplog.text

    def test_close_unsubscribes(self):
        bus = EventBus()
        reporter = MagicMock()
        observer = ConsoleObserver(reporter, bus)

        observer.close()
        bus.emit(started())

        reporter.execution_started.assert_not_called()
        assert bus.has_handlers(StepParsed) is False


class TestLoggingObserver:
    """Tests for LoggingObserver log records."""

    def test_lifecycle_logged(self, caplog):
        bus = EventBus()
        observer = LoggingObserver(bus)

        with caplog.at_level(logging.INFO, logger="flowwatch.tool"):
            bus.emit(started())
            bus.emit(LogEmitted(handle="exec-1", level="info", message="Running suite"))
            bus.emit(StepParsed(handle="exec-1", step=make_step("Login"), position=1, total=1))
            bus.emit(SessionCompleted(handle="exec-1", success=True, exit_code=0, duration_ms=12.0))

        messages = [r.getMessage() for r in caplog.records if r.name == "flowwatch.tool"]
        assert messages == [
            "[exec-1] started pid=7 cwd=/work: npx flow-test-engine",
            "[exec-1] Running suite",
            "[exec-1] step 1/1 'Login': passed",
            "[exec-1] exited with code 0 after 12ms",
        ]
        observer.close()

    def test_stderr_lines_logged_as_errors(self, caplog):
        bus = EventBus()
        LoggingObserver(bus)

        with caplog.at_level(logging.INFO, logger="flowwatch.tool"):
            bus.emit(LogEmitted(handle="exec-1", level="error", message="stack trace"))

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.getMessage() == "[exec-1] stack trace"

    def test_failed_and_cancelled_completion_warns(self, caplog):
        bus = EventBus()
        LoggingObserver(bus)

        with caplog.at_level(logging.INFO, logger="flowwatch.tool"):
            bus.emit(SessionCompleted(handle="exec-1", success=False, exit_code=-15,
                                      duration_ms=5.0, cancelled=True))

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.getMessage().endswith("(cancelled)")

    def test_custom_logger(self, caplog):
        bus = EventBus()
        custom = logging.getLogger("tests.custom_tool")
        LoggingObserver(bus, tool_logger=custom)

        with caplog.at_level(logging.ERROR, logger="tests.custom_tool"):
            bus.emit(SessionErrored(handle="exec-1", message="spawn failed"))

        assert "[exec-1] spawn failed" in caplog.text
