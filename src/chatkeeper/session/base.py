"""Abstract base class for chat sessions.

A session owns the connection to the chat server. It sends join, leave and
capability commands, and delivers every inbound event it understands to a
single handler as an :class:`~chatkeeper.ingest.events.InboundEvent`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Sequence

from chatkeeper.ingest.events import InboundEvent
from chatkeeper.membership.reconciler import ChannelRef

EventHandler = Callable[[InboundEvent], None]


class ChatSession(ABC):
    """Base interface for chat sessions.

    Send methods raise :class:`~chatkeeper.errors.ActionError` on failure.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Session identifier (e.g. 'twitch')."""
        ...

    @abstractmethod
    def send_join(self, channel: ChannelRef) -> None:
        ...

    @abstractmethod
    def send_leave(self, channel: ChannelRef) -> None:
        ...

    @abstractmethod
    def send_capability_request(self, capabilities: Sequence[str]) -> None:
        ...

    @abstractmethod
    def start(self) -> None:
        """Connect and process inbound events (blocks until disconnected)."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Disconnect."""
        ...
