"""Synchronous publish/subscribe bus for session events.

A session emits every event inline from its single read loop, so handlers run
in emission order and see lines in the order the session observed them.
Handlers should be quick. An exception in one handler is logged and does not
reach the session or the other handlers.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Type, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar('E')

EventHandler = Callable[[Any], None]


class EventBus:
    """Maps event classes to handler lists.

    Example usage:
        bus = EventBus()
        bus.on(LogEmitted, lambda event: print(event.message))
        bus.emit(LogEmitted(handle="exec-1", level="info", message="hello"))
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type, List[EventHandler]] = defaultdict(list)

    def on(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        """Register handler for events of exactly event_type."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        """Remove a handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        """Register handler and return a callable that unregisters it."""
        self.on(event_type, handler)

        def unsubscribe() -> None:
            self.off(event_type, handler)

        return unsubscribe

    def emit(self, event: Any) -> None:
        """Deliver event to every handler registered for its type, in order."""
        event_type = type(event)
        # Copy so handlers may unsubscribe while being dispatched
        for handler in list(self._handlers.get(event_type, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Event handler {getattr(handler, '__name__', handler)!r} raised exception for "
                    f"{event_type.__name__}: {e}",
                    exc_info=True
                )

    def has_handlers(self, event_type: Type) -> bool:
        return bool(self._handlers.get(event_type))

    def clear(self) -> None:
        self._handlers.clear()
