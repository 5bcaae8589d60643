from monica_client.core.events import (
    WILDCARD,
    Event,
    EventBus,
    EventHandler,
    EventType,
    get_event_bus,
    reset_event_bus,
)

__all__ = [
    "WILDCARD",
    "Event",
    "EventBus",
    "EventHandler",
    "EventType",
    "get_event_bus",
    "reset_event_bus",
]
