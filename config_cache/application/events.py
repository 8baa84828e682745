"""Event notifications emitted by ConfigCache (debug, ready, error).

Events are notifications, never failures: each is logged, then passed to the
registered handlers synchronously at the emission point.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from config_cache.core.constants import EVENT_DEBUG, EVENT_ERROR, EVENT_NAMES, EVENT_READY
from config_cache.domain.exceptions import InvalidArgumentException

logger = logging.getLogger(__name__)

EventHandler = Callable[..., Any]

_LOG_LEVELS = {
    EVENT_DEBUG: logging.DEBUG,
    EVENT_READY: logging.INFO,
    EVENT_ERROR: logging.WARNING,
}


class EventNotifier:
    """Per-event handler registry."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {name: [] for name in EVENT_NAMES}

    @staticmethod
    def _check_event(event: str) -> None:
        if event not in EVENT_NAMES:
            raise InvalidArgumentException(
                f"Unknown event {event!r}; expected one of {', '.join(EVENT_NAMES)}",
                argument="event",
            )

    def on(self, event: str, handler: EventHandler) -> None:
        """Register handler for event."""
        self._check_event(event)
        if not callable(handler):
            raise InvalidArgumentException(
                f"Listener for {event!r} is not callable", argument="listeners"
            )
        self._handlers[event].append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        """Unregister handler; no-op if it was never registered."""
        self._check_event(event)
        try:
            self._handlers[event].remove(handler)
        except ValueError:
            pass

    def register(self, listeners: Mapping[str, EventHandler]) -> None:
        """Register a mapping of event name -> handler."""
        for event, handler in listeners.items():
            self.on(event, handler)

    def handlers(self, event: str) -> tuple[EventHandler, ...]:
        self._check_event(event)
        return tuple(self._handlers[event])

    def emit(self, event: str, message: str, *args: Any) -> None:
        """Log the event, then call each handler with (message, *args).

        A handler that raises is logged and skipped; the emitter carries on.
        """
        self._check_event(event)
        logger.log(_LOG_LEVELS[event], "%s: %s", event, message)
        for handler in tuple(self._handlers[event]):
            try:
                handler(message, *args)
            except Exception:
                logger.exception("Listener for %r event failed", event)
