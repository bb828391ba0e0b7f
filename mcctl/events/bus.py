"""Event Bus — structured event sink shared by every mcctl component.

The controller, resolvers and download pipeline never print. They emit
topic-named events ("server.spawned", "install.verified", ...) on the bus
they were handed, and subscribers decide where those events go.
Supports topic wildcards: "install.*" matches "install.started", "install.failed".
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Awaitable

from pydantic import BaseModel, Field

from mcctl.types import new_id

_logger = logging.getLogger(__name__)

EventHandler = Callable[["Event"], Awaitable[None]]

# Topics that indicate degraded or failed operations
_WARNING_TOPICS = (
    "*.failed",
    "*.spawn_failed",
    "*.stop_failed",
    "*.digest_mismatch",
    "*.unverified",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(BaseModel):
    """A system event."""

    id: str = Field(default_factory=new_id)
    topic: str
    data: dict[str, Any] = Field(default_factory=dict)
    source: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)


class EventBus:
    """Async pub/sub event bus with wildcard topic matching.

    Subscribe to "server.*" to receive all process lifecycle events.
    Subscribe to "*" to receive everything.
    """

    def __init__(self, history_limit: int = 500) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)
        self._history: list[Event] = []
        self._history_limit = history_limit
        self._lock = asyncio.Lock()

    def subscribe(self, pattern: str, handler: EventHandler) -> None:
        """Subscribe to events matching a topic pattern."""
        self._subscribers[pattern].append(handler)

    def unsubscribe(self, pattern: str, handler: EventHandler) -> None:
        """Remove a subscription."""
        handlers = self._subscribers.get(pattern, [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, topic: str, data: dict | None = None, source: str = "") -> Event:
        """Emit an event to all matching subscribers.

        A failing subscriber never breaks the emitter.
        """
        event = Event(topic=topic, data=data or {}, source=source)

        async with self._lock:
            self._history.append(event)
            if len(self._history) > self._history_limit:
                self._history = self._history[-self._history_limit:]

        tasks = []
        for pattern, handlers in self._subscribers.items():
            if fnmatch.fnmatch(topic, pattern):
                for handler in handlers:
                    tasks.append(handler(event))

        if tasks:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    _logger.warning("Event handler for %s failed: %s", topic, result)

        return event

    def history(self, topic_filter: str = "*", limit: int = 50) -> list[Event]:
        """Get recent events, newest first, optionally filtered by topic pattern."""
        if topic_filter == "*":
            events = self._history
        else:
            events = [
                e for e in self._history
                if fnmatch.fnmatch(e.topic, topic_filter)
            ]
        return list(reversed(events[-limit:]))

    @property
    def subscriber_count(self) -> int:
        return sum(len(h) for h in self._subscribers.values())

    def topics(self) -> list[str]:
        """Get all topics that have been emitted."""
        return list({e.topic for e in self._history})


def attach_logging(bus: EventBus, logger: logging.Logger | None = None) -> EventHandler:
    """Forward every event on ``bus`` to a stdlib logger.

    Failure topics are logged at WARNING, everything else at INFO.
    Returns the handler so callers can unsubscribe it.
    """
    target = logger or logging.getLogger("mcctl.events")

    async def _log_event(event: Event) -> None:
        level = logging.INFO
        if any(fnmatch.fnmatch(event.topic, p) for p in _WARNING_TOPICS):
            level = logging.WARNING
        target.log(level, "[%s] %s %s", event.source or "-", event.topic, event.data)

    bus.subscribe("*", _log_event)
    return _log_event
