"""Twitch IRC protocol constants and raw message → :class:`InboundEvent` translation.

Kept separate from the client so it can be used without a connection.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from chatkeeper.ingest.events import EventKind, InboundEvent

TWITCH_HOST = "irc.chat.twitch.tv"
TWITCH_PORT = 6667

RPL_WELCOME = "001"

_COMMAND_KINDS = {
    RPL_WELCOME: EventKind.SESSION_READY,
    "PRIVMSG": EventKind.CHAT_MESSAGE,
    "CLEARMSG": EventKind.MESSAGE_DELETION,
}


def source_nick(source: str | None) -> str:
    """``nick!user@host`` → ``nick``."""
    if not source:
        return ""
    return source.split("!", 1)[0]


def normalize_tags(tags: Mapping[str, Any] | None) -> dict[str, str]:
    """Tag values as strings. Valueless tags (parsed as True) become ''."""
    if not tags:
        return {}
    result: dict[str, str] = {}
    for key, value in tags.items():
        if value is True or value is None:
            result[key] = ""
        else:
            result[key] = str(value)
    return result


def to_inbound_event(
    command: str,
    params: Sequence[str] = (),
    tags: Mapping[str, Any] | None = None,
    source: str | None = None,
) -> InboundEvent | None:
    """Translate one raw message, or return None if the bot ignores it."""
    kind = _COMMAND_KINDS.get(str(command).upper())
    if kind is None:
        return None
    return InboundEvent(
        kind=kind,
        tags=normalize_tags(tags),
        params=tuple(params),
        source=source_nick(source),
    )
