"""Shared fixtures: a fake chat session and a SQLite-backed store."""

from __future__ import annotations

from typing import Sequence

import pytest

from chatkeeper.errors import ActionError
from chatkeeper.ingest.events import EventKind, InboundEvent
from chatkeeper.membership.reconciler import ChannelRef
from chatkeeper.session.base import ChatSession
from chatkeeper.storage.store import MessageStore


class FakeSession(ChatSession):
    """Records every command instead of sending it."""

    def __init__(self, handler=None, fail_on: Sequence[str] = ()) -> None:
        self.handler = handler
        self.fail_on = set(fail_on)
        self.sent: list[tuple[str, str]] = []
        self.started = False
        self.stopped = False

    @property
    def name(self) -> str:
        return "fake"

    def _record(self, command: str, arg: str) -> None:
        if arg in self.fail_on:
            raise ActionError(f"{command} {arg} failed")
        self.sent.append((command, arg))

    def send_join(self, channel: ChannelRef) -> None:
        self._record("JOIN", channel.name)

    def send_leave(self, channel: ChannelRef) -> None:
        self._record("PART", channel.name)

    def send_capability_request(self, capabilities: Sequence[str]) -> None:
        self._record("CAP", " ".join(capabilities))

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    @property
    def joins(self) -> list[str]:
        return [arg for cmd, arg in self.sent if cmd == "JOIN"]

    @property
    def leaves(self) -> list[str]:
        return [arg for cmd, arg in self.sent if cmd == "PART"]


def refs(*names: str) -> list[ChannelRef]:
    return [ChannelRef(name) for name in names]


def chat_event(tags=None, target="#demo", body="hello", source="someone!someone@someone.tmi.twitch.tv"):
    """A PRIVMSG event with a full set of valid tags unless overridden."""
    if tags is None:
        tags = {"user-id": "123", "room-id": "456", "id": "msg-1", "mod": "0"}
    return InboundEvent(
        kind=EventKind.CHAT_MESSAGE,
        tags=tags,
        params=(target, body),
        source=source.split("!", 1)[0],
    )


def deletion_event(target_id: str | None = "msg-1"):
    tags = {} if target_id is None else {"target-msg-id": target_id}
    return InboundEvent(kind=EventKind.MESSAGE_DELETION, tags=tags, params=("#demo", "hello"))


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def store(tmp_path):
    """A MessageStore on a fresh SQLite file."""
    s = MessageStore.from_url(f"sqlite:///{tmp_path / 'chatkeeper.db'}")
    s.create_schema()
    return s
