"""Logging observer for the session event bus.

Mirrors session events into the 'flowwatch.tool' logger so a verbose run
records the engine's output and lifecycle next to flowwatch's own logs.
"""

import logging
from typing import Optional

from ..bus import EventBus
from ..events import (
    LOG_LEVEL_ERROR,
    LogEmitted,
    SessionCompleted,
    SessionErrored,
    SessionStarted,
    StepParsed,
)

TOOL_LOGGER_NAME = "flowwatch.tool"


class LoggingObserver:
    """Observer that writes every session event to a logger."""

    def __init__(self, bus: EventBus, tool_logger: Optional[logging.Logger] = None) -> None:
        self._bus = bus
        self.logger = tool_logger or logging.getLogger(TOOL_LOGGER_NAME)
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
        self._unsubscribe()

    def _on_session_started(self, event: SessionStarted) -> None:
        self.logger.info(
            f"[{event.handle}] started pid={event.pid} cwd={event.cwd}: {' '.join(event.command)}"
        )

    def _on_log_emitted(self, event: LogEmitted) -> None:
        level = logging.ERROR if event.level == LOG_LEVEL_ERROR else logging.INFO
        self.logger.log(level, f"[{event.handle}] {event.message}")

    def _on_step_parsed(self, event: StepParsed) -> None:
        step = event.step
        self.logger.info(
            f"[{event.handle}] step {event.position}/{event.total} '{step.name}': {step.status.value}"
        )

    def _on_session_completed(self, event: SessionCompleted) -> None:
        level = logging.INFO if event.success else logging.WARNING
        self.logger.log(
            level,
            f"[{event.handle}] exited with code {event.exit_code} after {event.duration_ms:.0f}ms"
            + (" (cancelled)" if event.cancelled else ""),
        )

    def _on_session_errored(self, event: SessionErrored) -> None:
        self.logger.error(f"[{event.handle}] {event.message}")
