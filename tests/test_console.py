"""Tests for console output."""

from datetime import datetime

import pytest

from flowwatch.console import ConsoleReporter
from flowwatch.models import AssertionResult, RequestDetails, RunStats, StepRecord, StepStatus
from flowwatch.curl import to_curl


NOW = datetime(2024, 1, 1, 12, 0, 0)


def make_step(name="Create user", status=StepStatus.PASSED, **kwargs):
    return StepRecord(name=name, status=status, started_at=NOW, ended_at=NOW, **kwargs)


class TestConsoleReporter:
    """Tests for ConsoleReporter output (captured stdout is not a TTY)."""

    def test_execution_started_displays_info(self, capsys):
        reporter = ConsoleReporter()
        reporter.execution_started("suites/login.yaml", ["npx", "flow-test-engine", "suites/login.yaml"], "/work")

        out = capsys.readouterr().out
        assert "Suite: suites/login.yaml" in out
        assert "Command: npx flow-test-engine suites/login.yaml" in out
        assert "Directory: /work" in out

    def test_execution_started_quiet_omits_command(self, capsys):
        reporter = ConsoleReporter(quiet=True)
        reporter.execution_started("suite.yaml", ["npx"], "/work")

        out = capsys.readouterr().out
        assert "Suite: suite.yaml" in out
        assert "Command:" not in out

    def test_passed_step_line(self, capsys):
        reporter = ConsoleReporter(width=100)
        reporter.step_completed(make_step(duration_ms=41.6), position=1, total=3)

        out = capsys.readouterr().out
        assert "+ [1/3] Create user (42ms)" in out

    def test_failed_step_lists_failed_assertions(self, capsys):
        assertion = AssertionResult(
            path="body.id", operator="equals", expected=5, actual=6, passed=False,
            message="expected 5, got 6",
        )
        request = RequestDetails(method="POST", url="https://api.example.com/users")
        step = make_step(
            status=StepStatus.FAILED,
            assertions=(assertion,),
            request=request,
            curl_command=to_curl(request),
        )
        reporter = ConsoleReporter(width=100)
        reporter.step_completed(step, position=2, total=2)

        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("  x [2/2] Create user")
        assert "|- expected 5, got 6" in lines[1]
        assert "`- curl https://api.example.com/users ..." in lines[2]

    def test_error_shown_for_failed_step(self, capsys):
        reporter = ConsoleReporter(width=100)
        reporter.step_completed(make_step(status=StepStatus.FAILED, error="connect ECONNREFUSED"), 1, 1)

        out = capsys.readouterr().out
        assert "`- ! connect ECONNREFUSED" in out

    def test_quiet_mode_hides_passing_steps(self, capsys):
        reporter = ConsoleReporter(quiet=True)
        reporter.step_completed(make_step(), 1, 2)
        reporter.step_completed(make_step(name="Broken", status=StepStatus.FAILED), 2, 2)

        out = capsys.readouterr().out
        assert "Create user" not in out
        assert "Broken" in out

    def test_skipped_step_symbol(self, capsys):
        reporter = ConsoleReporter()
        reporter.step_completed(make_step(status=StepStatus.SKIPPED), 1, 1)

        assert "- [1/1] Create user" in capsys.readouterr().out

    def test_long_step_name_truncated(self, capsys):
        reporter = ConsoleReporter(width=60)
        reporter.step_completed(make_step(name="x" * 200), 1, 1)

        out = capsys.readouterr().out
        assert "..." in out
        assert "x" * 200 not in out

    def test_engine_output_hidden_by_default(self, capsys):
        reporter = ConsoleReporter()
        reporter.engine_output("info", "raw engine line")

        assert capsys.readouterr().out == ""

    def test_engine_output_shown_when_enabled(self, capsys):
        reporter = ConsoleReporter(show_output=True)
        reporter.engine_output("info", "raw engine line")

        assert "| raw engine line" in capsys.readouterr().out

    @pytest.mark.parametrize("success,cancelled,expected", [
        (True, False, "PASSED (exit 0, 1500ms)"),
        (False, False, "FAILED (exit 0, 1500ms)"),
        (False, True, "STOPPED (exit 0, 1500ms)"),
    ])
    def test_summary_outcome(self, capsys, success, cancelled, expected):
        reporter = ConsoleReporter()
        stats = RunStats(total=3, passed=1, failed=1, skipped=1)
        reporter.execution_completed(success, 0, 1500.0, stats, cancelled=cancelled)

        out = capsys.readouterr().out
        assert "3 steps: 1 passed, 1 failed, 1 skipped" in out
        assert expected in out

    def test_no_color_when_not_tty(self, capsys):
        reporter = ConsoleReporter()
        reporter.error("boom")

        out = capsys.readouterr().out
        assert out == "! boom\n"


class TestTerminalWidth:
    """Tests for terminal width detection."""

    def test_width_override(self):
        assert ConsoleReporter(width=123)._detect_terminal_width() == 123

    def test_columns_env(self, monkeypatch):
        monkeypatch.setenv("COLUMNS", "140")

        assert ConsoleReporter()._detect_terminal_width() == 140

    def test_invalid_columns_env_ignored(self, monkeypatch):
        monkeypatch.setenv("COLUMNS", "wide")

        assert ConsoleReporter()._detect_terminal_width() > 0
