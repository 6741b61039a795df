"""Console observer for the session event bus.

Bridges session events to the ConsoleReporter. It is a thin adapter that maps
events to reporter methods; the only state it keeps is the steps seen per
handle, so the summary can show counts.
"""

import logging
from typing import Dict, List, Optional

from ..bus import EventBus
from ..events import (
    LogEmitted,
    SessionCompleted,
    SessionErrored,
    SessionStarted,
    StepParsed,
)
from ...console import ConsoleReporter
from ...models import RunStats, StepRecord

logger = logging.getLogger(__name__)


class ConsoleObserver:
    """Observer that bridges events to the ConsoleReporter.

    All reporter calls are wrapped in try/except so output failures never
    reach the session's read loop.

    Attributes:
        reporter: The ConsoleReporter instance to send output to
        suite: Label printed in the startup header
    """

    def __init__(self, reporter: ConsoleReporter, bus: EventBus, suite: str = "") -> None:
        self.reporter = reporter
        self.suite = suite
        self._bus = bus
        self._steps: Dict[str, List[StepRecord]] = {}
        self._subscribe()

    def _subscribe(self) -> None:
        self._bus.on(SessionStarted, self._on_session_started)
        self._bus.on(LogEmitted, self._on_log_emitted)
        self._bus.on(StepParsed, self._on_step_parsed)
        self._bus.on(SessionCompleted, self._on_session_completed)
        self._bus.on(SessionErrored, self._on_session_errored)

    def _unsubscribe(self) -> None:
        self._bus.off(SessionStarted, self._on_session_started)
        self._bus.off(LogEmitted, self._on_log_emitted)
        self._bus.off(StepParsed, self._on_step_parsed)
        self._bus.off(SessionCompleted, self._on_session_completed)
        self._bus.off(SessionErrored, self._on_session_errored)

    def close(self) -> None:
        """Unsubscribe from events. Call when the run is over."""
        self._unsubscribe()

    def _on_session_started(self, event: SessionStarted) -> None:
        self._steps[event.handle] = []
        try:
            self.reporter.execution_started(
                suite=self.suite or event.handle,
                command=event.command,
                cwd=event.cwd,
            )
        except Exception as e:
            logger.warning(f"ConsoleObserver failed on session_started: {e}")

    def _on_log_emitted(self, event: LogEmitted) -> None:
        try:
            self.reporter.engine_output(level=event.level, line=event.message)
        except Exception as e:
            logger.warning(f"ConsoleObserver failed on log_emitted: {e}")

    def _on_step_parsed(self, event: StepParsed) -> None:
        self._steps.setdefault(event.handle, []).append(event.step)
        try:
            # Prefer the engine's announced count over the running count
            total = max(event.step.declared_total or 0, event.total)
            self.reporter.step_completed(step=event.step, position=event.position, total=total)
        except Exception as e:
            logger.warning(f"ConsoleObserver failed on step_parsed: {e}")

    def _on_session_completed(self, event: SessionCompleted) -> None:
        steps = self._steps.pop(event.handle, [])
        try:
            self.reporter.execution_completed(
                success=event.success,
                exit_code=event.exit_code,
                duration_ms=event.duration_ms,
                stats=RunStats.from_steps(steps),
                cancelled=event.cancelled,
            )
        except Exception as e:
            logger.warning(f"ConsoleObserver failed on session_completed: {e}")

    def _on_session_errored(self, event: SessionErrored) -> None:
        self._steps.pop(event.handle, None)
        try:
            self.reporter.error(event.message)
        except Exception as e:
            logger.warning(f"ConsoleObserver failed on session_errored: {e}")
