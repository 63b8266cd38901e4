"""
Observer support for store lifecycle and domain events.

Listeners are plain callables invoked synchronously, in registration
order, with the event's arguments. A failing listener is logged and does
not prevent the remaining listeners or the store operation from
completing.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]

# Events emitted by MongoStore
CONNECTED = "connected"
DISCONNECTED = "disconnected"
CREATE = "create"
UPDATE = "update"
SET = "set"
GET = "get"
TOUCH = "touch"
DESTROY = "destroy"
ALL = "all"

EVENTS = frozenset({CONNECTED, DISCONNECTED, CREATE, UPDATE, SET, GET, TOUCH, DESTROY, ALL})


class EventEmitter:
    """Minimal synchronous event emitter."""

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> Listener:
        """
        Register a listener for an event.

        Returns the listener so the method can be used as a decorator.

        Raises:
            ValueError: If the event name is unknown.
        """
        if event not in EVENTS:
            raise ValueError(f"Unknown event: {event!r}")
        self._listeners[event].append(listener)
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """Register a listener that is removed after its first call."""
        def wrapper(*args: Any) -> Any:
            self.off(event, wrapper)
            return listener(*args)

        wrapper.__wrapped__ = listener  # type: ignore[attr-defined]
        self.on(event, wrapper)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove a listener; removing an unknown listener is a no-op."""
        listeners = self._listeners.get(event, [])
        for registered in list(listeners):
            if registered == listener or getattr(registered, "__wrapped__", None) == listener:
                listeners.remove(registered)
                return

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """
        Call every listener for an event.

        Returns:
            True if at least one listener was registered
        """
        listeners = list(self._listeners.get(event, []))
        for listener in listeners:
            try:
                listener(*args)
            except Exception as e:
                logger.warning(
                    f"Listener for '{event}' failed: {e}",
                    exc_info=True,
                    extra={"extra_data": {"event": event, "error": str(e)}}
                )
        return bool(listeners)
