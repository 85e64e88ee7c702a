"""Inbound event types delivered by a chat session."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class EventKind(str, Enum):
    """The inbound events the bot reacts to."""

    SESSION_READY = "session_ready"  # 001 welcome, registration finished
    CHAT_MESSAGE = "chat_message"  # PRIVMSG
    MESSAGE_DELETION = "message_deletion"  # CLEARMSG


@dataclass(frozen=True)
class InboundEvent:
    """One protocol event, reduced to what the handlers need.

    Attributes:
        kind: Which event this is.
        tags: IRCv3 message tags (e.g. {"user-id": "123"}).
        params: Command parameters; for PRIVMSG ``(target, body)``.
        source: Nick of the sender, empty when the server sent it.
    """

    kind: EventKind
    tags: dict[str, str] = field(default_factory=dict)
    params: tuple[str, ...] = ()
    source: str = ""

    def tag(self, key: str) -> str | None:
        """Tag value, or None when the tag is absent."""
        return self.tags.get(key)

    def param(self, index: int) -> str:
        """Parameter at ``index``, or an empty string."""
        if 0 <= index < len(self.params):
            return self.params[index]
        return ""
