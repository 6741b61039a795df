"""Exception classes for execution errors.

Only precondition violations are raised. Launch failures and non-zero exits
travel as events, and stopping an unknown session returns a StopResult.
"""


class FlowwatchError(Exception):
    """Base exception for flowwatch execution errors."""
    pass


class SessionError(FlowwatchError):
    """Raised when a session is used in a way its state does not allow,
    e.g. starting a session object twice."""
    pass


class SessionAlreadyRunningError(SessionError):
    """Raised when starting a session on a handle that already has an active
    session. No process is launched."""
    pass


class ExecutionInProgressError(FlowwatchError):
    """Raised when an aggregator is asked to execute while a previous
    execution has not reached a terminal state."""
    pass


__all__ = [
    'FlowwatchError',
    'SessionError',
    'SessionAlreadyRunningError',
    'ExecutionInProgressError',
]
