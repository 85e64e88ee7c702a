"""Structured chat records produced by the parser."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ChatRecord:
    """A single chat message as it will be stored.

    ``id`` is assigned by Twitch and is globally unique. ``deleted_at`` is
    only ever set later by a deletion event, directly in the database.
    """

    id: str
    body: str
    moderator: bool
    timestamp: datetime
    channel_id: int
    author_id: int
    author_name: str
    channel_name: str
    reply_to_id: str | None = None
    deleted_at: datetime | None = None

    def __str__(self) -> str:
        mod = "[mod] " if self.moderator else ""
        return f"({self.channel_name}) {mod}[{self.author_name}]: {self.body}"
