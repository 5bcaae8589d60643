"""In-process notifications for auth and sync state.

The controllers publish here and a presentation layer subscribes, so the
core never imports a UI toolkit.

Topics:
- auth.authenticated / auth.logged_out / auth.session_expired
- sync.started / sync.completed / sync.failed

A subscription pattern is an exact topic, a family (``"sync.*"``) or
``"*"`` for everything.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

WILDCARD = "*"


class EventType(str, Enum):
    AUTHENTICATED = "auth.authenticated"
    LOGGED_OUT = "auth.logged_out"
    SESSION_EXPIRED = "auth.session_expired"

    SYNC_STARTED = "sync.started"
    SYNC_COMPLETED = "sync.completed"
    SYNC_FAILED = "sync.failed"


@dataclass(frozen=True)
class Event:
    event_type: str
    data: Dict[str, Any] = field(default_factory=dict)
    source: str = "core"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.event_type,
            "source": self.source,
            "timestamp": self.timestamp.isoformat(),
            "data": dict(self.data),
        }


EventHandler = Callable[[Event], None]
Topic = Union[str, EventType]


def _topic(value: Topic) -> str:
    return value.value if isinstance(value, EventType) else str(value)


def _matches(pattern: str, topic: str) -> bool:
    if pattern == WILDCARD or pattern == topic:
        return True
    return pattern.endswith(".*") and topic.startswith(pattern[:-1])


class EventBus:
    """Synchronous publish/subscribe with a bounded history.

    Handlers run on the publishing thread, in subscription order. A handler
    that raises is logged and skipped; the publisher never sees the error.

    Example::

        bus = EventBus()
        stop = bus.subscribe("sync.*", lambda e: print(e.event_type))
        bus.publish(EventType.SYNC_STARTED)
        stop()
    """

    def __init__(self, history_size: int = 100) -> None:
        self._subscriptions: List[Tuple[str, EventHandler]] = []
        self._history: Deque[Event] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    def subscribe(self, pattern: Topic, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler`` for ``pattern``; returns a function that removes it."""
        entry = (_topic(pattern), handler)
        with self._lock:
            self._subscriptions.append(entry)

        def _unsubscribe() -> None:
            with self._lock:
                if entry in self._subscriptions:
                    self._subscriptions.remove(entry)

        return _unsubscribe

    def publish(
        self,
        event_type: Topic,
        data: Optional[Dict[str, Any]] = None,
        source: str = "core",
    ) -> Event:
        event = Event(event_type=_topic(event_type), data=dict(data or {}), source=source)
        with self._lock:
            self._history.append(event)
            handlers = [h for pattern, h in self._subscriptions if _matches(pattern, event.event_type)]

        for handler in handlers:
            try:
                handler(event)
            except Exception as exc:
                logger.error("Event handler %r failed on %s: %s", handler, event.event_type, exc)
        return event

    def get_history(self, pattern: Optional[Topic] = None, limit: int = 20) -> List[Event]:
        """Most recent events, oldest first, optionally filtered by pattern."""
        with self._lock:
            events = list(self._history)
        if pattern is not None:
            wanted = _topic(pattern)
            events = [e for e in events if _matches(wanted, e.event_type)]
        return events[-limit:] if limit > 0 else []

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()


_default_bus: Optional[EventBus] = None
_default_bus_lock = threading.Lock()


def get_event_bus() -> EventBus:
    """Process-wide bus used when a controller is not handed one."""
    global _default_bus
    with _default_bus_lock:
        if _default_bus is None:
            _default_bus = EventBus()
        return _default_bus


def reset_event_bus() -> None:
    global _default_bus
    with _default_bus_lock:
        _default_bus = None


__all__ = [
    "Event",
    "EventBus",
    "EventHandler",
    "EventType",
    "WILDCARD",
    "get_event_bus",
    "reset_event_bus",
]
