"""ORM models for users, channels, messages and the listening list."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, String, Text, true
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for ORM models."""
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(64))


class Channel(Base):
    __tablename__ = "channels"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(64))


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    body: Mapped[str] = mapped_column(Text(), nullable=False)
    mod: Mapped[bool] = mapped_column(Boolean, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # optional
    deleted: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reply_message_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    channel_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("channels.id"), nullable=False, index=True)
    author_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)


class ListeningChannel(Base):
    """A channel the bot should be in while ``active`` is true."""

    __tablename__ = "listening_channels"

    channel_name: Mapped[str] = mapped_column(String(64), primary_key=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true())
