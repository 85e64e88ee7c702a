"""Twitch IRC session built on pydle.

The pydle client runs its own asyncio event loop in the thread that calls
:meth:`TwitchSession.start` (normally the main thread). Commands sent from
other threads are handed to that loop and waited on. Inbound events are
delivered to the handler on the loop, one at a time, in arrival order.

There is no reconnect: when the connection drops, :meth:`start` raises
:class:`SessionConnectionError` and the process is expected to exit.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Sequence

import pydle

from chatkeeper.errors import ActionError, SessionConnectionError
from chatkeeper.membership.reconciler import ChannelRef
from chatkeeper.session.base import ChatSession, EventHandler
from chatkeeper.session.protocol import RPL_WELCOME, TWITCH_HOST, TWITCH_PORT, to_inbound_event

logger = logging.getLogger(__name__)

# Seconds to wait for a command to be written
SEND_TIMEOUT = 10.0


class _TwitchClient(pydle.Client):
    """pydle client that forwards the events we care about."""

    RECONNECT_ON_ERROR = False

    def __init__(self, *args: Any, deliver: EventHandler, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._deliver = deliver

    def _forward(self, message: Any) -> None:
        event = to_inbound_event(
            message.command,
            params=message.params,
            tags=getattr(message, "tags", None),
            source=message.source,
        )
        if event is not None:
            self._deliver(event)

    async def on_raw_001(self, message: Any) -> None:
        await super().on_raw_001(message)
        logger.debug("Registered with IRC server")
        self._deliver(to_inbound_event(RPL_WELCOME))

    async def on_raw_privmsg(self, message: Any) -> None:
        self._forward(message)

    async def on_raw_clearmsg(self, message: Any) -> None:
        self._forward(message)

    async def on_disconnect(self, expected: bool) -> None:
        # pydle reconnects from the base handler; we exit instead
        if expected:
            logger.info("Disconnected from IRC")
        else:
            logger.error("Lost connection to IRC")


class TwitchSession(ChatSession):
    """Chat session connected to Twitch IRC.

    Usage::

        session = TwitchSession(handler=dispatcher.dispatch, nickname="justinfan123")
        session.start()  # blocks until disconnected
    """

    def __init__(
        self,
        handler: EventHandler,
        nickname: str,
        username: str | None = None,
        password: str | None = None,
        host: str = TWITCH_HOST,
        port: int = TWITCH_PORT,
        tls: bool = False,
    ) -> None:
        self._handler = handler
        self._nickname = nickname
        self._username = username or nickname
        self._password = password
        self._host = host
        self._port = port
        self._tls = tls
        self._client: _TwitchClient | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: threading.Thread | None = None
        self._stopping = False

    @property
    def name(self) -> str:
        return "twitch"

    # ── Commands ──

    def send_join(self, channel: ChannelRef) -> None:
        self._send("JOIN", channel.target)

    def send_leave(self, channel: ChannelRef) -> None:
        self._send("PART", channel.target)

    def send_capability_request(self, capabilities: Sequence[str]) -> None:
        self._send("CAP", "REQ", " ".join(capabilities))

    def _send(self, command: str, *params: str) -> None:
        client, loop = self._client, self._loop
        if client is None or loop is None or not client.connected:
            raise ActionError(f"cannot send {command}: not connected")
        if threading.current_thread() is self._loop_thread:
            raise ActionError(f"cannot send {command} and wait from the event loop thread")

        future = asyncio.run_coroutine_threadsafe(client.rawmsg(command, *params), loop)
        try:
            future.result(timeout=SEND_TIMEOUT)
        except (OSError, TimeoutError, concurrent.futures.TimeoutError, pydle.Error) as e:
            future.cancel()
            raise ActionError(f"sending {command} {' '.join(params)} failed: {e}") from e

    # ── Lifecycle ──

    def start(self) -> None:
        """Connect and process events until the connection closes.

        Raises:
            SessionConnectionError: connecting failed or the connection was lost.
        """
        self._stopping = False
        self._loop = asyncio.new_event_loop()
        self._loop_thread = threading.current_thread()
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run())
        finally:
            self._loop.close()
            self._client = None

    async def _run(self) -> None:
        self._client = _TwitchClient(
            self._nickname,
            username=self._username,
            realname=self._username,
            deliver=self._handler,
        )
        logger.info("Connecting to IRC at %s:%d ...", self._host, self._port)
        try:
            await self._client.connect(
                hostname=self._host,
                port=self._port,
                password=self._password,
                tls=self._tls,
            )
        except OSError as e:
            raise SessionConnectionError(f"connection to IRC failed: {e}") from e

        # connect() returns once the read loop is spawned
        while self._client.connected:
            await asyncio.sleep(0.5)

        if not self._stopping:
            raise SessionConnectionError("connection to IRC lost")

    def stop(self) -> None:
        """Disconnect. Safe to call from any thread, including signal handlers."""
        self._stopping = True
        client, loop = self._client, self._loop
        if client is None or loop is None or loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(client.disconnect(expected=True), loop)
