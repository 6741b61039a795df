"""Consumer-side view of an execution.

ExecutionStateAggregator runs one session at a time and folds its events into
an AggregatedView: the log lines, the finalized steps, progress counters and
the terminal outcome. It never touches the session's parser; everything it
knows arrives as events, filtered by the handle of its current session.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from ..models import RunStats, StepRecord, StepStatus, StopResult
from ..proc_wrap import DEFAULT_EXECUTABLE, ExecutionOptions, ProcessLauncher
from .bus import EventBus
from .errors import ExecutionInProgressError
from .events import LogEmitted, SessionCompleted, SessionErrored, SessionStarted, StepParsed
from .registry import SessionRegistry
from .session import ExecutionSession, stop_session

logger = logging.getLogger(__name__)

StepCallback = Callable[[StepRecord, int, int], None]
LogCallback = Callable[[str, str], None]


@dataclass(frozen=True)
class TerminalResult:
    success: bool
    exit_code: int
    duration_ms: float
    stats: RunStats = field(default_factory=RunStats)


@dataclass(frozen=True)
class AggregatedView:
    """Snapshot of an aggregator's state.

    Attributes:
        is_running: True between execute() being called and a terminal event
        handle: Handle of the current or last session
        logs: Log lines, formatted as "[LEVEL] message"
        steps: Finalized steps in completion order
        current_step_index: 1-based position of the last surfaced step
        total_steps: Number of steps surfaced so far
        terminal_result: Outcome once the engine exited
        last_error: Human-readable error, if the run failed
    """
    is_running: bool = False
    handle: Optional[str] = None
    logs: List[str] = field(default_factory=list)
    steps: List[StepRecord] = field(default_factory=list)
    current_step_index: int = 0
    total_steps: int = 0
    terminal_result: Optional[TerminalResult] = None
    last_error: Optional[str] = None


class ExecutionStateAggregator:
    """Accumulates the observable state of one execution at a time.

    Args:
        registry: Store shared with the sessions this aggregator starts
        bus: Bus to publish session events on. A private bus is created when
            omitted; pass a shared one to attach other observers.
        launcher: Process launcher handed to sessions
        executable: Command prefix that starts the engine
        empty_status: Status for steps that recorded no assertions
        on_step: Called as on_step(step, position, total) for each finalized
            step, before the view is updated
        on_log: Called as on_log(level, message) for each log line
    """

    def __init__(
        self,
        registry: Optional[SessionRegistry] = None,
        bus: Optional[EventBus] = None,
        launcher: Optional[ProcessLauncher] = None,
        executable: Sequence[str] = DEFAULT_EXECUTABLE,
        empty_status: StepStatus = StepStatus.PASSED,
        on_step: Optional[StepCallback] = None,
        on_log: Optional[LogCallback] = None,
    ) -> None:
        self.registry = registry if registry is not None else SessionRegistry()
        self.bus = bus if bus is not None else EventBus()
        self._launcher = launcher
        self._executable = tuple(executable)
        self._empty_status = empty_status
        self.on_step = on_step
        self.on_log = on_log

        self._session: Optional[ExecutionSession] = None
        self._in_flight = False
        self._reset()

    def _reset(self) -> None:
        self.is_running = False
        self.handle: Optional[str] = None
        self.logs: List[str] = []
        self.steps: List[StepRecord] = []
        self.current_step_index = 0
        self.total_steps = 0
        self.terminal_result: Optional[TerminalResult] = None
        self.last_error: Optional[str] = None

    @property
    def view(self) -> AggregatedView:
        """Copy of the current state."""
        return AggregatedView(
            is_running=self.is_running,
            handle=self.handle,
            logs=list(self.logs),
            steps=list(self.steps),
            current_step_index=self.current_step_index,
            total_steps=self.total_steps,
            terminal_result=self.terminal_result,
            last_error=self.last_error,
        )

    async def execute(self, options: ExecutionOptions, handle: Optional[str] = None) -> AggregatedView:
        """Run the engine and return the final view.

        Resets all accumulated state first. Resolves once the session reaches
        a terminal state; launch failures and non-zero exits are reported in
        the view (last_error), not raised.

        Raises:
            ExecutionInProgressError: If a previous execute() has not resolved
            SessionAlreadyRunningError: If handle is held by another session
        """
        if self._in_flight:
            raise ExecutionInProgressError("An execution is already in progress")
        self._in_flight = True

        self._reset()
        self.is_running = True
        session = ExecutionSession(
            options,
            bus=self.bus,
            registry=self.registry,
            launcher=self._launcher,
            handle=handle,
            executable=self._executable,
            empty_status=self._empty_status,
        )
        self._session = session
        self.handle = session.handle

        unsubscribers = [
            self.bus.subscribe(SessionStarted, self._on_started),
            self.bus.subscribe(LogEmitted, self._on_log),
            self.bus.subscribe(StepParsed, self._on_step_parsed),
            self.bus.subscribe(SessionCompleted, self._on_completed),
            self.bus.subscribe(SessionErrored, self._on_errored),
        ]
        try:
            await session.run()
        finally:
            for unsubscribe in unsubscribers:
                unsubscribe()
            self.is_running = False
            self._in_flight = False
        return self.view

    async def cancel(self) -> StopResult:
        """Stop the current execution.

        With no active execution this reports failure instead of raising.
        """
        if self._session is None or not self.is_running:
            logger.warning("No active execution to stop")
            return StopResult(success=False, message="No active execution")

        result = await stop_session(self.registry, self._session.handle)
        if result.success:
            self._append_log("info", "Execution stopped by user")
            self.is_running = False
        return result

    def clear_logs(self) -> None:
        self.logs = []

    def clear_results(self) -> None:
        self.steps = []
        self.terminal_result = None
        self.last_error = None
        self.current_step_index = 0
        self.total_steps = 0

    def _is_mine(self, event) -> bool:
        return self._session is not None and event.handle == self._session.handle

    def _append_log(self, level: str, message: str) -> None:
        self.logs.append(f"[{level.upper()}] {message}")
        if self.on_log is not None:
            self.on_log(level, message)

    def _on_started(self, event: SessionStarted) -> None:
        if not self._is_mine(event):
            return
        self._append_log("info", f"Execution started: {event.handle}")

    def _on_log(self, event: LogEmitted) -> None:
        if not self._is_mine(event):
            return
        self._append_log(event.level, event.message)

    def _on_step_parsed(self, event: StepParsed) -> None:
        if not self._is_mine(event):
            return
        if self.on_step is not None:
            try:
                self.on_step(event.step, event.position, event.total)
            except Exception as e:
                logger.warning(f"on_step callback failed for step '{event.step.name}': {e}")
        self.steps.append(event.step)
        self.current_step_index = event.position
        self.total_steps = event.total

    def _on_completed(self, event: SessionCompleted) -> None:
        if not self._is_mine(event):
            return
        self.terminal_result = TerminalResult(
            success=event.success,
            exit_code=event.exit_code,
            duration_ms=event.duration_ms,
            stats=RunStats.from_steps(self.steps),
        )
        outcome = "SUCCESS" if event.success else ("CANCELLED" if event.cancelled else "FAILURE")
        self._append_log(
            "info" if event.success else "error",
            f"Execution finished: {outcome} (exit code: {event.exit_code}, {event.duration_ms:.0f}ms)",
        )
        if not event.success and not event.cancelled:
            self.last_error = f"Execution failed with exit code {event.exit_code}"
        self.is_running = False

    def _on_errored(self, event: SessionErrored) -> None:
        if not self._is_mine(event):
            return
        self.last_error = event.message
        self._append_log("error", f"Execution error: {event.message}")
        self.is_running = False
