"""Tests for the ingestion pipeline and its event handlers."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from chatkeeper.errors import PersistenceError
from chatkeeper.ingest.parser import parse_chat_message
from chatkeeper.ingest.pipeline import DeletionOutcome, IngestOutcome, IngestionPipeline

from conftest import chat_event, deletion_event

FIXED_NOW = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)


@pytest.fixture
def pipeline(store):
    return IngestionPipeline(store, clock=lambda: FIXED_NOW)


class TestIngest:
    def test_first_insert(self, pipeline, store):
        outcome = pipeline.ingest(parse_chat_message(chat_event()))
        assert outcome == IngestOutcome(inserted=True)
        msg = store.get_message("msg-1")
        assert msg.body == "hello"
        assert msg.mod is False
        assert msg.author_id == 123
        assert msg.channel_id == 456
        assert msg.reply_message_id is None

    def test_duplicate_insert_is_noop(self, pipeline):
        record = parse_chat_message(chat_event())
        assert pipeline.ingest(record).inserted is True
        assert pipeline.ingest(record).inserted is False

    def test_updates_last_ingested(self, pipeline):
        assert pipeline.last_ingested_at is None
        pipeline.ingest(parse_chat_message(chat_event()))
        assert pipeline.last_ingested_at == FIXED_NOW

    def test_storage_failure_propagates(self):
        store = MagicMock()
        store.insert_message.side_effect = PersistenceError("db down")
        pipeline = IngestionPipeline(store)
        with pytest.raises(PersistenceError):
            pipeline.ingest(parse_chat_message(chat_event()))
        assert pipeline.last_ingested_at is None


class TestApplyDeletion:
    def test_delete_ingested_message(self, pipeline, store):
        pipeline.ingest(parse_chat_message(chat_event()))
        assert pipeline.apply_deletion("msg-1") == DeletionOutcome(rows_affected=1)
        assert store.get_message("msg-1").deleted is not None

    def test_delete_unknown_message(self, pipeline):
        assert pipeline.apply_deletion("unknown").rows_affected == 0

    def test_updates_last_deleted(self, pipeline):
        assert pipeline.last_deleted_at is None
        pipeline.apply_deletion("unknown")
        assert pipeline.last_deleted_at == FIXED_NOW


class TestHandlers:
    def test_chat_message_is_stored(self, pipeline, store):
        pipeline.handle_chat_message(chat_event())
        assert store.get_message("msg-1") is not None

    def test_redelivered_message_is_harmless(self, pipeline, store):
        pipeline.handle_chat_message(chat_event())
        pipeline.handle_chat_message(chat_event(body="redelivered"))
        assert store.get_message("msg-1").body == "hello"

    def test_parse_error_is_dropped(self, pipeline, store):
        pipeline.handle_chat_message(chat_event({"user-id": "123", "id": "bad", "mod": "0"}))
        assert store.get_message("bad") is None
        assert pipeline.last_ingested_at is None

    def test_overflowing_id_is_dropped(self, pipeline, store):
        tags = {"user-id": "9223372036854775808", "room-id": "456", "id": "big", "mod": "0"}
        pipeline.handle_chat_message(chat_event(tags))
        assert store.get_message("big") is None
        assert pipeline.last_ingested_at is None

    def test_persistence_error_is_dropped(self):
        store = MagicMock()
        store.insert_message.side_effect = PersistenceError("db down")
        pipeline = IngestionPipeline(store)
        # Should not raise
        pipeline.handle_chat_message(chat_event())

    def test_deletion_marks_message(self, pipeline, store):
        pipeline.handle_chat_message(chat_event())
        pipeline.handle_message_deletion(deletion_event("msg-1"))
        assert store.get_message("msg-1").deleted is not None

    def test_deletion_without_target_is_noop(self):
        store = MagicMock()
        pipeline = IngestionPipeline(store)
        pipeline.handle_message_deletion(deletion_event(None))
        store.mark_deleted.assert_not_called()
        assert pipeline.last_deleted_at is None

    def test_deletion_of_unknown_message(self, pipeline):
        # Should not raise
        pipeline.handle_message_deletion(deletion_event("unknown"))
        assert pipeline.last_deleted_at == FIXED_NOW

    def test_deletion_persistence_error_is_dropped(self):
        store = MagicMock()
        store.mark_deleted.side_effect = PersistenceError("db down")
        pipeline = IngestionPipeline(store)
        pipeline.handle_message_deletion(deletion_event("msg-1"))
        assert pipeline.last_deleted_at is None
