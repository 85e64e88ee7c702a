"""Ingestion pipeline — persists chat messages and applies deletions.

Both paths are at-least-once safe: a redelivered message is a no-op and a
repeated deletion just rewrites the timestamp. Failures are per event; the
event is logged and dropped, never retried or queued.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from chatkeeper.errors import ParseError, PersistenceError
from chatkeeper.ingest.events import InboundEvent
from chatkeeper.ingest.parser import parse_chat_message
from chatkeeper.ingest.records import ChatRecord
from chatkeeper.storage.store import MessageStore

logger = logging.getLogger(__name__)

TAG_TARGET_MESSAGE_ID = "target-msg-id"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IngestOutcome:
    inserted: bool


@dataclass(frozen=True)
class DeletionOutcome:
    rows_affected: int


class IngestionPipeline:
    """Writes parsed records to the store and tracks the last activity.

    ``last_ingested_at`` and ``last_deleted_at`` are read by the health
    endpoint; both are None until the first successful write.
    """

    def __init__(
        self,
        store: MessageStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._clock = clock
        self._last_ingested_at: datetime | None = None
        self._last_deleted_at: datetime | None = None

    @property
    def last_ingested_at(self) -> datetime | None:
        return self._last_ingested_at

    @property
    def last_deleted_at(self) -> datetime | None:
        return self._last_deleted_at

    # ── Operations ──

    def ingest(self, record: ChatRecord) -> IngestOutcome:
        """Store a record. Raises PersistenceError if the store is unavailable."""
        inserted = self._store.insert_message(record)
        self._last_ingested_at = self._clock()
        return IngestOutcome(inserted=inserted)

    def apply_deletion(self, target_id: str) -> DeletionOutcome:
        """Mark a message deleted. Unknown ids affect zero rows."""
        now = self._clock()
        rows = self._store.mark_deleted(target_id, now)
        self._last_deleted_at = now
        return DeletionOutcome(rows_affected=rows)

    # ── Event handlers ──

    def handle_chat_message(self, event: InboundEvent) -> None:
        try:
            record = parse_chat_message(event)
        except ParseError as e:
            logger.error("Error parsing message: %s", e)
            return

        try:
            outcome = self.ingest(record)
        except PersistenceError as e:
            logger.error("Failed to save chat message %s: %s", record.id, e)
            return

        logger.debug(
            "Saved %s (inserted=%s, user=%s, channel=%s)",
            record, outcome.inserted, record.author_name, record.channel_name,
        )

    def handle_message_deletion(self, event: InboundEvent) -> None:
        logger.debug("Received message deletion in %s", event.param(0))

        target = event.tag(TAG_TARGET_MESSAGE_ID)
        if not target:
            logger.warning("Message deleted but no message reference found")
            return

        try:
            outcome = self.apply_deletion(target)
        except PersistenceError as e:
            logger.error("Error marking message %s deleted: %s", target, e)
            return

        logger.debug(
            "Marked message %s deleted (rows affected: %d)", target, outcome.rows_affected
        )
