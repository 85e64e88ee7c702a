"""SQLAlchemy-backed message store.

All writes run in their own short transaction. Message inserts are
first-writer-wins: a second insert with the same id is a no-op, so messages
redelivered after a reconnect never fail or overwrite.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import Engine, create_engine, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatkeeper.errors import PersistenceError
from chatkeeper.ingest.records import ChatRecord
from chatkeeper.membership.reconciler import ChannelRef
from chatkeeper.storage.models import Base, Channel, ListeningChannel, Message, User

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class MessageStore:
    """Reads the listening list and writes chat messages.

    Usage::

        store = MessageStore.from_url("sqlite:///chatkeeper.db")
        store.create_schema()
        inserted = store.insert_message(record)
    """

    def __init__(self, engine: Engine) -> None:
        insert = _DIALECT_INSERTS.get(engine.dialect.name)
        if insert is None:
            raise ValueError(
                f"Unsupported database dialect: {engine.dialect.name} "
                f"(supported: {', '.join(sorted(_DIALECT_INSERTS))})"
            )
        self._engine = engine
        self._insert = insert

    @classmethod
    def from_url(cls, url: str) -> MessageStore:
        try:
            engine = create_engine(url)
        except (SQLAlchemyError, ImportError) as e:
            raise PersistenceError(f"cannot open database: {e}") from e
        return cls(engine)

    def create_schema(self) -> None:
        """Create missing tables. Existing tables are left alone."""
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"creating schema failed: {e}") from e
        logger.info("Database schema ready (%s)", self._engine.dialect.name)

    # ── Desired state ──

    def active_channels(self) -> list[ChannelRef]:
        """Channels marked active in the listening list, ordered by name."""
        stmt = (
            select(ListeningChannel.channel_name)
            .where(ListeningChannel.active.is_(True))
            .order_by(ListeningChannel.channel_name)
        )
        try:
            with self._engine.connect() as conn:
                names = conn.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"retrieving listening channels failed: {e}") from e
        return [ChannelRef(name=name) for name in names]

    def set_listening(self, channel_name: str, active: bool = True) -> None:
        """Add a channel to the listening list, or flip its active flag."""
        stmt = self._insert(ListeningChannel).values(channel_name=channel_name, active=active)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ListeningChannel.channel_name],
            set_={"active": active},
        )
        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(f"updating listening channel {channel_name} failed: {e}") from e

    # ── Messages ──

    def insert_message(self, record: ChatRecord) -> bool:
        """Store a message with its author and channel.

        Returns:
            True if a row was created, False if the id already existed.
        """
        user_stmt = self._insert(User).values(id=record.author_id, name=record.author_name)
        user_stmt = user_stmt.on_conflict_do_update(
            index_elements=[User.id], set_={"name": record.author_name}
        )
        channel_stmt = self._insert(Channel).values(id=record.channel_id, name=record.channel_name)
        channel_stmt = channel_stmt.on_conflict_do_update(
            index_elements=[Channel.id], set_={"name": record.channel_name}
        )
        message_stmt = self._insert(Message).values(
            id=record.id,
            body=record.body,
            mod=record.moderator,
            date=record.timestamp,
            deleted=record.deleted_at,
            reply_message_id=record.reply_to_id,
            channel_id=record.channel_id,
            author_id=record.author_id,
        ).on_conflict_do_nothing(index_elements=[Message.id])

        try:
            with self._engine.begin() as conn:
                conn.execute(user_stmt)
                conn.execute(channel_stmt)
                result = conn.execute(message_stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(f"saving message {record.id} failed: {e}") from e
        return result.rowcount > 0

    def mark_deleted(self, message_id: str, when: datetime) -> int:
        """Set the deletion timestamp on a message. Returns rows affected."""
        stmt = update(Message).where(Message.id == message_id).values(deleted=when)
        try:
            with self._engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(f"marking message {message_id} deleted failed: {e}") from e
        return result.rowcount

    def get_message(self, message_id: str) -> Message | None:
        try:
            with Session(self._engine) as session:
                return session.get(Message, message_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"loading message {message_id} failed: {e}") from e
