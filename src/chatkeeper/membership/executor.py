"""Rate-limited join/leave execution.

Twitch drops or penalizes clients that send too many JOIN/PART commands in a
short window. Small batches go out back to back; anything larger is paced
with a fixed delay after every command.
"""

from __future__ import annotations

import logging
import threading

from chatkeeper.errors import ActionError
from chatkeeper.membership.reconciler import ChannelRef, JoinLeaveDelta
from chatkeeper.session.base import ChatSession

logger = logging.getLogger(__name__)

# Batches up to this size are sent without pacing
FLOOD_FREE_ACTIONS = 10
# Seconds between commands for larger batches
FLOOD_DELAY = 0.55


def compute_delay(
    total_actions: int,
    flood_free_actions: int = FLOOD_FREE_ACTIONS,
    flood_delay: float = FLOOD_DELAY,
) -> float:
    """Seconds to wait after each command for a batch of the given size."""
    if total_actions <= flood_free_actions:
        return 0.0
    return flood_delay


class RateLimitedExecutor:
    """Sends the commands for a :class:`JoinLeaveDelta` through a session.

    Usage::

        executor = RateLimitedExecutor(session)
        completed = executor.apply(delta, cancel_event)
    """

    def __init__(
        self,
        session: ChatSession,
        flood_free_actions: int = FLOOD_FREE_ACTIONS,
        flood_delay: float = FLOOD_DELAY,
    ) -> None:
        self._session = session
        self._flood_free_actions = flood_free_actions
        self._flood_delay = flood_delay

    def apply(self, delta: JoinLeaveDelta, cancel_event: threading.Event) -> bool:
        """Send all joins, then all leaves.

        Cancellation is checked before every command. A failed command is
        logged and skipped.

        Returns:
            True if every command was attempted, False if cancelled part-way.
        """
        if not delta:
            return True

        delay = compute_delay(delta.total, self._flood_free_actions, self._flood_delay)
        logger.debug("Join/leave delay set to %.3fs for %d actions", delay, delta.total)

        for channel in delta.join:
            if cancel_event.is_set():
                logger.info("Cancelled, stopping join operations")
                return False
            self._join(channel)
            self._pause(delay, cancel_event)

        for channel in delta.leave:
            if cancel_event.is_set():
                logger.info("Cancelled, stopping leave operations")
                return False
            self._leave(channel)
            self._pause(delay, cancel_event)

        return True

    def _join(self, channel: ChannelRef) -> None:
        try:
            self._session.send_join(channel)
        except ActionError:
            logger.exception("Error joining channel %s", channel.name)
        else:
            logger.info("Joined channel %s", channel.name)

    def _leave(self, channel: ChannelRef) -> None:
        try:
            self._session.send_leave(channel)
        except ActionError:
            logger.exception("Error leaving channel %s", channel.name)
        else:
            logger.info("Left channel %s", channel.name)

    @staticmethod
    def _pause(delay: float, cancel_event: threading.Event) -> None:
        if delay > 0:
            # Returns early when cancelled; the next loop check stops the pass
            cancel_event.wait(timeout=delay)
