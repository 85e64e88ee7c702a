"""Bot wiring — builds the store, pipeline, session and membership from config.

Threads:
    main              — the session's event loop; handles chat events in order
    reconcile-ready   — one reconciliation pass after each welcome
    reconcile-ticker  — periodic reconciliation passes
    health-http       — optional Flask health endpoint

Reconciliation never runs on the session's event loop, so a long paced batch
of joins does not hold up message ingestion.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from chatkeeper.config import AppConfig
from chatkeeper.health.http_api import HealthServer
from chatkeeper.ingest.dispatch import EventDispatcher
from chatkeeper.ingest.events import EventKind, InboundEvent
from chatkeeper.ingest.pipeline import IngestionPipeline
from chatkeeper.membership.coordinator import ChannelMembership
from chatkeeper.membership.executor import RateLimitedExecutor
from chatkeeper.membership.ticker import ReconcileTicker
from chatkeeper.session.base import ChatSession, EventHandler
from chatkeeper.storage.store import MessageStore

logger = logging.getLogger(__name__)

SessionFactory = Callable[[EventHandler], ChatSession]


def twitch_session_factory(config: AppConfig) -> SessionFactory:
    """Build a factory for the pydle-backed Twitch session."""

    def _factory(handler: EventHandler) -> ChatSession:
        from chatkeeper.session.twitch import TwitchSession

        return TwitchSession(
            handler=handler,
            nickname=config.twitch_nick,
            username=config.twitch_user,
            password=config.twitch_pass,
            host=config.twitch_host,
            port=config.twitch_port,
            tls=config.twitch_tls,
        )

    return _factory


class ChatkeeperBot:
    """Everything needed to run one session.

    Usage::

        bot = ChatkeeperBot(config, store)
        bot.run()        # blocks until the session ends
        bot.shutdown()   # from a signal handler
    """

    def __init__(
        self,
        config: AppConfig,
        store: MessageStore,
        session_factory: SessionFactory | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.cancel_event = cancel_event or threading.Event()
        self.pipeline = IngestionPipeline(store)

        self.dispatcher = EventDispatcher()
        self.dispatcher.register(EventKind.SESSION_READY, self._on_session_ready)
        self.dispatcher.register(EventKind.CHAT_MESSAGE, self.pipeline.handle_chat_message)
        self.dispatcher.register(EventKind.MESSAGE_DELETION, self.pipeline.handle_message_deletion)

        factory = session_factory or twitch_session_factory(config)
        self.session = factory(self.dispatcher.dispatch)

        executor = RateLimitedExecutor(
            self.session,
            flood_free_actions=config.flood_free_actions,
            flood_delay=config.flood_delay,
        )
        self.membership = ChannelMembership(
            self.session, store.active_channels, executor, self.cancel_event
        )
        self.ticker = ReconcileTicker(
            self.membership.on_tick, self.cancel_event, config.reconcile_schedule
        )

        self.health: HealthServer | None = None
        address = config.web_address()
        if address:
            self.health = HealthServer(self.pipeline, host=address[0], port=address[1])

        self._ready_threads: list[threading.Thread] = []

    def _on_session_ready(self, event: InboundEvent) -> None:
        """Reconcile off the event loop, then keep checking on the ticker."""

        def _ready():
            try:
                self.membership.on_session_ready()
            except Exception:
                logger.exception("Session-ready reconciliation failed")
            finally:
                if not self.cancel_event.is_set():
                    self.ticker.start()

        thread = threading.Thread(target=_ready, daemon=True, name="reconcile-ready")
        self._ready_threads.append(thread)
        thread.start()

    def run(self) -> None:
        """Start the health endpoint and the session (blocks).

        Raises:
            SessionConnectionError: the session could not connect or was lost.
        """
        if self.health:
            self.health.start()
        logger.info("Running %s session ...", self.session.name)
        try:
            self.session.start()
        finally:
            self.cancel_event.set()
            self.ticker.stop()

    def shutdown(self) -> None:
        """Cancel reconciliation and disconnect."""
        logger.info("Shutting down")
        self.cancel_event.set()
        self.session.stop()

    def wait_for_ready_passes(self, timeout: float | None = None) -> None:
        """Join the session-ready reconciliation threads started so far."""
        for thread in list(self._ready_threads):
            thread.join(timeout=timeout)
