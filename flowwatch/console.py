"""Console output reporter for suite execution."""

import os
import shutil
import sys
from datetime import datetime
from typing import List, Optional

from .models import RunStats, StepRecord, StepStatus


class ConsoleReporter:
    """Handles formatted console output for a suite run.

    Prints one line per finalized step with its failed assertions nested
    beneath it, and a summary when the engine exits. Supports quiet mode and
    terminal capability detection (colors, Unicode, width).
    """

    RESET_COLOR = '\033[0m'
    STATUS_COLORS = {
        StepStatus.PASSED: '\033[32m',   # Green
        StepStatus.FAILED: '\033[31m',   # Red
        StepStatus.SKIPPED: '\033[33m',  # Yellow
    }
    ERROR_COLOR = '\033[31m'
    DIM_COLOR = '\033[2m'

    MIN_CONTENT_WIDTH = 40
    MAX_CONTENT_WIDTH = 160
    DEFAULT_TERMINAL_WIDTH = 80

    PREFIX_STEP = 16          # "  ✓ [12/12] " plus duration margin
    PREFIX_TREE_BRANCH = 7    # "      ├─ "

    def __init__(self, quiet: bool = False, show_output: bool = False, width: Optional[int] = None):
        """Initialize console reporter.

        Args:
            quiet: If True, print only failed steps, errors and the summary
            show_output: If True, echo every engine output line
            width: Override terminal width. If None, auto-detect from environment.
        """
        self.quiet = quiet
        self.show_output = show_output
        self._width_override = width

        self._supports_color = self._detect_color_support()
        self._supports_unicode = self._detect_unicode_support()
        self._terminal_width = self._detect_terminal_width()

        if self._supports_unicode:
            self.STATUS_SYMBOLS = {
                StepStatus.PASSED: "✓",
                StepStatus.FAILED: "✗",
                StepStatus.SKIPPED: "⊘",
            }
            self.TREE_BRANCH = "├─"
            self.TREE_END = "└─"
            self.RULE = "─"
        else:
            self.STATUS_SYMBOLS = {
                StepStatus.PASSED: "+",
                StepStatus.FAILED: "x",
                StepStatus.SKIPPED: "-",
            }
            self.TREE_BRANCH = "|-"
            self.TREE_END = "`-"
            self.RULE = "-"

    def _detect_color_support(self) -> bool:
        """Detect if terminal supports colors."""
        if not sys.stdout.isatty():
            return False
        if os.getenv('NO_COLOR'):
            return False
        term = os.getenv('TERM', '')
        if term and 'color' in term.lower():
            return True
        if os.getenv('WT_SESSION'):
            return True
        if getattr(sys.stdout, 'encoding', None) and 'utf' in sys.stdout.encoding.lower():
            return True
        return False

    def _detect_unicode_support(self) -> bool:
        """Detect if terminal supports the status symbols and box-drawing characters."""
        if not sys.stdout.isatty():
            return False
        if getattr(sys.stdout, 'encoding', None) and 'utf' in sys.stdout.encoding.lower():
            return True
        term = os.getenv('TERM', '')
        if term and ('xterm' in term.lower() or 'utf' in term.lower()):
            return True
        if os.getenv('WT_SESSION'):
            return True
        return False

    def _detect_terminal_width(self) -> int:
        """Detect terminal width.

        Detection priority: explicit override, the COLUMNS environment
        variable, shutil.get_terminal_size(), then 80 columns.
        """
        if self._width_override is not None:
            return self._width_override

        columns_env = os.getenv('COLUMNS')
        if columns_env:
            try:
                width = int(columns_env)
                if width > 0:
                    return width
            except ValueError:
                pass

        try:
            return shutil.get_terminal_size().columns
        except (OSError, AttributeError):
            pass

        return self.DEFAULT_TERMINAL_WIDTH

    def _colorize(self, text: str, color: str) -> str:
        if not self._supports_color or not color:
            return text
        return f"{color}{text}{self.RESET_COLOR}"

    def _truncate_message(self, message: str, max_width: Optional[int] = None) -> str:
        """Truncate message to fit terminal width."""
        if max_width is None:
            max_width = self._terminal_width
        if len(message) <= max_width:
            return message
        return message[:max_width - 3] + "..."

    def _available_width(self, prefix_length: int) -> int:
        """Width left for content after a prefix, clamped to sane bounds."""
        available = self._detect_terminal_width() - prefix_length - 2
        return max(self.MIN_CONTENT_WIDTH, min(available, self.MAX_CONTENT_WIDTH))

    def _print(self, message: str) -> None:
        print(message, flush=True)

    def execution_started(self, suite: str, command: List[str], cwd: str) -> None:
        """Display run startup information.

        Args:
            suite: Suite file or collection being run
            command: Engine argv
            cwd: Engine working directory
        """
        timestamp = datetime.now().strftime("%H:%M:%S")
        self._print(f"[{timestamp}] Suite: {suite}")
        if not self.quiet:
            self._print(f"[{timestamp}] Command: {' '.join(command)}")
            self._print(f"[{timestamp}] Directory: {cwd}")
        self._print("")

    def engine_output(self, level: str, line: str) -> None:
        """Echo a line of engine output when output echo is enabled."""
        if not self.show_output:
            return
        text = f"  {self._colorize('|', self.DIM_COLOR)} {line}"
        if level == "error":
            text = self._colorize(text, self.ERROR_COLOR)
        self._print(text)

    def step_completed(self, step: StepRecord, position: int, total: int) -> None:
        """Display one finalized step.

        Args:
            step: The finalized step
            position: 1-based position of the step in the run
            total: Declared step count if the engine announced one, else the
                running count
        """
        if self.quiet and step.status is not StepStatus.FAILED:
            return

        symbol = self._colorize(self.STATUS_SYMBOLS[step.status], self.STATUS_COLORS[step.status])
        name = self._truncate_message(step.name, max_width=self._available_width(self.PREFIX_STEP))
        line = f"  {symbol} [{position}/{total}] {name}"
        if step.duration_ms > 0:
            line += f" ({int(round(step.duration_ms))}ms)"
        self._print(line)

        details = []
        if step.error:
            details.append(self._colorize(f"! {step.error}", self.ERROR_COLOR))
        for assertion in step.failed_assertions:
            message = assertion.message or (
                f"{assertion.path} {assertion.operator} {assertion.expected!r}, got {assertion.actual!r}"
            )
            details.append(self._truncate_message(
                message, max_width=self._available_width(self.PREFIX_TREE_BRANCH)
            ))
        if step.status is StepStatus.FAILED and step.curl_command and not self.quiet:
            first_line = step.curl_command.splitlines()[0].rstrip(" \\")
            details.append(first_line + (" ..." if "\n" in step.curl_command else ""))

        for i, detail in enumerate(details):
            branch = self.TREE_END if i == len(details) - 1 else self.TREE_BRANCH
            self._print(f"      {branch} {detail}")

    def execution_completed(self, success: bool, exit_code: int, duration_ms: float,
                            stats: RunStats, cancelled: bool = False) -> None:
        """Display the run summary."""
        rule = self.RULE * min(self._terminal_width, 60)
        self._print("")
        self._print(rule)
        counts = f"{stats.total} steps: {stats.passed} passed, {stats.failed} failed, {stats.skipped} skipped"
        self._print(counts)
        if cancelled:
            outcome = self._colorize("STOPPED", self.STATUS_COLORS[StepStatus.SKIPPED])
        elif success:
            outcome = self._colorize("PASSED", self.STATUS_COLORS[StepStatus.PASSED])
        else:
            outcome = self._colorize("FAILED", self.STATUS_COLORS[StepStatus.FAILED])
        self._print(f"{outcome} (exit {exit_code}, {int(round(duration_ms))}ms)")

    def error(self, message: str) -> None:
        """Display an error message."""
        self._print(self._colorize(f"! {message}", self.ERROR_COLOR))
