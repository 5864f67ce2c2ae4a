"""Event registry shared by the output pipeline components."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Event names
MESSAGE_DROPPED = "message-dropped"
MESSAGE_QUEUED = "message-queued"
BATCH_RENDERED = "batch-rendered"
CRITICAL_RENDERED = "critical-rendered"
BUFFER_CLEARED = "buffer-cleared"
QUEUE_ERROR = "queue-error"
CHUNK_RENDERED = "chunk-rendered"
PAGE_RENDERED = "page-rendered"
RENDER_COMPLETE = "render-complete"
RENDER_ERROR = "render-error"
RESIZE = "resize"
OPERATION_ERROR = "operation-error"
CLEANUP_COMPLETE = "cleanup-complete"
HEALTH_DEGRADED = "health-degraded"

EventHandler = Callable[[Any], None]


@dataclass(frozen=True)
class BatchRendered:
    size: int
    remaining: int


@dataclass(frozen=True)
class ChunkRendered:
    chunk: int
    total: int
    lines: int


@dataclass(frozen=True)
class PageRendered:
    page: int
    total: int


@dataclass(frozen=True)
class Resize:
    old_width: int
    old_height: int
    new_width: int
    new_height: int


@dataclass(frozen=True)
class ErrorEvent:
    context: str
    error: BaseException


class EventRegistry:
    """Observer registry keyed by event name.

    Emitting an event nobody subscribed to is valid. A failing handler is
    logged and does not stop the remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def on(self, event: str) -> Callable[[EventHandler], EventHandler]:
        """Decorator to subscribe a handler to an event.

        Args:
            event: Event name (e.g., "resize", "message-dropped").

        Returns:
            Decorator function.
        """

        def decorator(handler: EventHandler) -> EventHandler:
            self.subscribe(event, handler)
            return handler

        return decorator

    def subscribe(self, event: str, handler: EventHandler) -> Callable[[], None]:
        """Subscribe a handler and return a callable that unsubscribes it."""
        self._handlers.setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            self.unsubscribe(event, handler)

        return unsubscribe

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Any = None) -> None:
        """Dispatch a payload to every handler of an event."""
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("Event handler failed event=%s handler=%r", event, handler)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))
