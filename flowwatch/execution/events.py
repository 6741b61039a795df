"""Events published by an execution session.

Every event carries the session handle so consumers sharing one bus can tell
concurrent sessions apart. Events are frozen dataclasses and are never
modified after emission.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..models import StepRecord

LOG_LEVEL_INFO = "info"
LOG_LEVEL_ERROR = "error"


@dataclass(frozen=True)
class SessionStarted:
    """Emitted once the engine process is confirmed to exist.

    Attributes:
        handle: Session handle
        command: The argv used to launch the engine
        cwd: Working directory of the engine
        pid: Process id, if known
        timestamp: When the process was confirmed
    """
    handle: str
    command: List[str]
    cwd: str
    pid: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class LogEmitted:
    """Emitted for every line of engine output, in arrival order.

    Attributes:
        handle: Session handle
        level: "info" for stdout lines, "error" for stderr lines
        message: The line, without its line terminator
        timestamp: When the line was observed
    """
    handle: str
    level: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class StepParsed:
    """Emitted when the parser finalizes a step.

    Attributes:
        handle: Session handle
        step: The finalized step
        position: 1-based position of the step in this session
        total: Number of steps finalized so far, including this one
        timestamp: When the step was surfaced
    """
    handle: str
    step: StepRecord
    position: int
    total: int
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SessionCompleted:
    """Emitted when the engine process exits.

    A non-zero exit is still a completion: the engine ran and reported
    failure.

    Attributes:
        handle: Session handle
        success: True when the exit code is 0 and the session was not cancelled
        exit_code: Process exit code (negative for signals on Unix)
        duration_ms: Time from launch to exit
        cancelled: True when the session was stopped on request
        timestamp: When the exit was observed
    """
    handle: str
    success: bool
    exit_code: int
    duration_ms: float
    cancelled: bool = False
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SessionErrored:
    """Emitted when the engine could not be run at all (e.g. spawn failure)."""
    handle: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)


ALL_EVENTS = (
    SessionStarted,
    LogEmitted,
    StepParsed,
    SessionCompleted,
    SessionErrored,
)
