"""Event dispatcher — routes inbound events to a handler per event kind.

Handlers are plain callables taking an :class:`InboundEvent`, so they can be
exercised without a live session.
"""

from __future__ import annotations

import logging
from typing import Callable

from chatkeeper.ingest.events import EventKind, InboundEvent

logger = logging.getLogger(__name__)

Handler = Callable[[InboundEvent], None]


class EventDispatcher:
    """Dispatch table from :class:`EventKind` to handler.

    Usage::

        dispatcher = EventDispatcher()
        dispatcher.register(EventKind.CHAT_MESSAGE, pipeline.handle_chat_message)
        dispatcher.dispatch(event)
    """

    def __init__(self) -> None:
        self._handlers: dict[EventKind, Handler] = {}

    def register(self, kind: EventKind, handler: Handler) -> None:
        """Register a handler. Raises ValueError if the kind is already taken."""
        if kind in self._handlers:
            raise ValueError(f"Handler already registered: {kind.value}")
        self._handlers[kind] = handler

    def dispatch(self, event: InboundEvent) -> bool:
        """Run the handler for the event. Returns False if none is registered."""
        handler = self._handlers.get(event.kind)
        if handler is None:
            logger.debug("No handler for %s, ignoring", event.kind.value)
            return False
        handler(event)
        return True

    __call__ = dispatch

    @property
    def kinds(self) -> list[EventKind]:
        return list(self._handlers.keys())
