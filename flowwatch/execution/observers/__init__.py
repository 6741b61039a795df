"""Observers for the session event bus.

Observers subscribe to session events and perform side effects (console
output, logging). They are decoupled from the session and the aggregator and
can be attached or detached independently.
"""

from .console import ConsoleObserver
from .log import LoggingObserver

__all__ = [
    "ConsoleObserver",
    "LoggingObserver",
]
