"""Execution layer: sessions, the event bus and the state aggregator.

An ExecutionSession owns one engine process and its parser and publishes
events on an EventBus. The ExecutionStateAggregator and the observers are
independent consumers of those events.
"""

from flowwatch.execution.bus import EventBus
from flowwatch.execution.errors import (
    FlowwatchError,
    SessionError,
    SessionAlreadyRunningError,
    ExecutionInProgressError,
)
from flowwatch.execution.events import (
    SessionStarted,
    LogEmitted,
    StepParsed,
    SessionCompleted,
    SessionErrored,
)
from flowwatch.execution.registry import SessionRegistry
from flowwatch.execution.session import (
    ExecutionSession,
    SessionState,
    generate_handle,
    stop_session,
)
from flowwatch.execution.aggregator import (
    AggregatedView,
    ExecutionStateAggregator,
    TerminalResult,
)

__all__ = [
    # Exception classes
    "FlowwatchError",
    "SessionError",
    "SessionAlreadyRunningError",
    "ExecutionInProgressError",
    # Events
    "EventBus",
    "SessionStarted",
    "LogEmitted",
    "StepParsed",
    "SessionCompleted",
    "SessionErrored",
    # Sessions
    "SessionRegistry",
    "ExecutionSession",
    "SessionState",
    "generate_handle",
    "stop_session",
    # Aggregation
    "AggregatedView",
    "ExecutionStateAggregator",
    "TerminalResult",
]
