"""PRIVMSG parsing — turns a chat-message event into a :class:`ChatRecord`.

Twitch attaches the metadata we need as IRCv3 tags (requested with the
``twitch.tv/tags`` capability). Every required tag must be present and valid;
otherwise a :class:`ParseError` names the tag and no record is produced.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from chatkeeper.errors import ParseError
from chatkeeper.ingest.events import EventKind, InboundEvent
from chatkeeper.ingest.records import ChatRecord
from chatkeeper.membership.reconciler import strip_sigil

TAG_USER_ID = "user-id"
TAG_ROOM_ID = "room-id"
TAG_MESSAGE_ID = "id"
TAG_MOD = "mod"
TAG_REPLY_PARENT = "reply-parent-msg-id"

# Signed 64-bit, ASCII decimal digits only
_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _required(event: InboundEvent, key: str, context: str) -> str:
    value = event.tag(key)
    if value is None:
        raise ParseError(key, None, context)
    return value


def _required_int(event: InboundEvent, key: str, context: str) -> int:
    raw = _required(event, key, context)
    if not _INT_PATTERN.fullmatch(raw):
        raise ParseError(key, raw, "not an integer")
    value = int(raw)
    if not INT64_MIN <= value <= INT64_MAX:
        raise ParseError(key, raw, "out of 64-bit range")
    return value


def _optional(value: str | None) -> str | None:
    return value or None


def parse_chat_message(event: InboundEvent) -> ChatRecord:
    """Parse a chat-message event.

    Raises:
        ParseError: a required tag is missing or unparsable.
        ValueError: the event is not a chat message.
    """
    if event.kind is not EventKind.CHAT_MESSAGE:
        raise ValueError(f"Expected a chat message event, got {event.kind.value}")

    author_name = event.source
    channel_name = strip_sigil(event.param(0))
    body = event.param(1)

    author_id = _required_int(event, TAG_USER_ID, f"user {author_name}")
    channel_id = _required_int(event, TAG_ROOM_ID, f"channel {channel_name}")

    message_id = _required(event, TAG_MESSAGE_ID, f"body {body!r} by {author_name}")
    if not message_id:
        raise ParseError(TAG_MESSAGE_ID, message_id, "empty message id")

    mod = _required(event, TAG_MOD, f"body {body!r} by {author_name}")

    return ChatRecord(
        id=message_id,
        body=body,
        moderator=mod == "1",
        timestamp=datetime.now(timezone.utc),
        channel_id=channel_id,
        author_id=author_id,
        author_name=author_name,
        channel_name=channel_name,
        reply_to_id=_optional(event.tag(TAG_REPLY_PARENT)),
    )
