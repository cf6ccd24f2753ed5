"""
Notification sink for grant runs.

Fire-and-forget channel for human-readable messages. Hosts subscribe to
surface notifications as toasts and errors as warnings; the engine's
success/failure contract never depends on it.

Usage:
    bus = EventBus()
    bus.on(EventType.NOTIFICATION, lambda event: print(event.data["message"]))
    manager = GrantsManager(resolver, random, notifications=bus)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Events published by the grant engine."""

    NOTIFICATION = "grant.notification"
    ERROR = "grant.error"
    GRANTS_APPLIED = "grant.applied"
    GRANTS_REVERSED = "grant.reversed"


@dataclass
class GrantEvent:
    """
    Event payload.

    Attributes:
        type: The event type
        data: Event-specific payload
        actor_id: Actor the event concerns
        timestamp: When the event was emitted
    """

    type: EventType
    data: dict = field(default_factory=dict)
    actor_id: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"[{self.type.value}] {self.data}"


EventHandler = Callable[[GrantEvent], None]


class EventBus:
    """
    Synchronous event bus.

    Listeners are called immediately on emit(). A failing listener is
    logged and skipped so one bad subscriber cannot break a grant run.
    """

    def __init__(self, history_limit: int = 100):
        self._listeners: dict[EventType, list[EventHandler]] = {}
        self._history: list[GrantEvent] = []
        self._history_limit = history_limit

    def on(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to an event type."""
        handlers = self._listeners.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe from an event type."""
        if handler in self._listeners.get(event_type, []):
            self._listeners[event_type].remove(handler)

    def emit(self, event_type: EventType, actor_id: str = "", **data) -> GrantEvent:
        """
        Emit an event to all subscribers.

        Returns:
            The emitted GrantEvent
        """
        event = GrantEvent(type=event_type, data=data, actor_id=actor_id)

        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit :]

        for handler in list(self._listeners.get(event_type, [])):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Error in handler for {event_type.value}")

        return event

    def notify(self, message: str, actor_id: str = "") -> GrantEvent:
        return self.emit(EventType.NOTIFICATION, actor_id=actor_id, message=message)

    def warn(self, message: str, actor_id: str = "") -> GrantEvent:
        return self.emit(EventType.ERROR, actor_id=actor_id, message=message)

    def clear(self) -> None:
        """Clear all listeners."""
        self._listeners.clear()

    def get_history(self, event_type: EventType | None = None) -> list[GrantEvent]:
        """Recent events, optionally filtered by type."""
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.type == event_type]

    def listener_count(self, event_type: EventType) -> int:
        return len(self._listeners.get(event_type, []))


# Process-wide bus for hosts that want one. The engine never reaches for it;
# pass it to GrantsManager explicitly.
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the shared event bus, creating it on first use."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Reset the shared event bus. Useful for testing."""
    global _event_bus
    _event_bus = None
