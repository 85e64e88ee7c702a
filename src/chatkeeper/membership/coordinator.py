"""Channel membership — keeps the session in the channels it should be in.

Two stimuli start a reconciliation pass: the session becoming ready and the
periodic ticker. Both go through one gate, so only one pass runs at a time.
A stimulus that arrives mid-pass waits for it, then reads the desired state
afresh.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Sequence

from chatkeeper.errors import ActionError, PersistenceError
from chatkeeper.membership.executor import RateLimitedExecutor
from chatkeeper.membership.reconciler import ChannelRef, reconcile
from chatkeeper.session.base import ChatSession

logger = logging.getLogger(__name__)

# https://dev.twitch.tv/docs/irc/capabilities/
CAPABILITIES = ("twitch.tv/tags", "twitch.tv/commands")

DesiredChannels = Callable[[], list[ChannelRef]]


class ChannelMembership:
    """Owns the current channel set and serializes reconciliation.

    Usage::

        membership = ChannelMembership(session, store.active_channels, executor, cancel)
        membership.on_session_ready()   # after the welcome numeric
        membership.on_tick()            # from the ticker
    """

    def __init__(
        self,
        session: ChatSession,
        desired_channels: DesiredChannels,
        executor: RateLimitedExecutor,
        cancel_event: threading.Event,
        capabilities: Sequence[str] = CAPABILITIES,
    ) -> None:
        self._session = session
        self._desired_channels = desired_channels
        self._executor = executor
        self._cancel_event = cancel_event
        self._capabilities = tuple(capabilities)
        self._current: list[ChannelRef] = []
        self._current_lock = threading.Lock()
        self._gate = threading.Lock()

    @property
    def current_channels(self) -> list[ChannelRef]:
        """Snapshot of the channels the session believes it has joined."""
        with self._current_lock:
            return list(self._current)

    @property
    def is_reconciling(self) -> bool:
        return self._gate.locked()

    # ── Stimuli ──

    def on_session_ready(self) -> None:
        """Request tags/commands capabilities, then reconcile."""
        logger.debug("Session ready, requesting capabilities %s", " ".join(self._capabilities))
        try:
            self._session.send_capability_request(self._capabilities)
        except ActionError:
            logger.exception("Error requesting tags and commands")
        self.reconcile()

    def on_tick(self) -> None:
        logger.debug("Checking for new channels to listen")
        self.reconcile()

    # ── Reconciliation ──

    def reconcile(self) -> bool:
        """Run one reconciliation pass behind the gate.

        Returns:
            True if the current set was committed, False if the pass was
            skipped (desired state unavailable) or cancelled.
        """
        with self._gate:
            return self._reconcile_locked()

    def _reconcile_locked(self) -> bool:
        with self._current_lock:
            try:
                desired = self._desired_channels()
            except PersistenceError as e:
                logger.error("Retrieving listening channels failed: %s", e)
                return False

            if not desired:
                logger.warning("Not joining any rooms")

            delta = reconcile(self._current, desired)
            if not delta:
                return True

            logger.info(
                "Reconciling channels: %d to join, %d to leave",
                len(delta.join), len(delta.leave),
            )
            if not self._executor.apply(delta, self._cancel_event):
                return False

            self._current = list(desired)
            return True
