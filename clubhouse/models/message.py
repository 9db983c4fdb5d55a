"""Chat message model and per-user response rows."""

from sqlalchemy import (
    Column, Computed, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from clubhouse.db.base import Base, utcnow

# group_id of a pinned message, 0 for the global channel; NULL when unpinned
PIN_SCOPE_SQL = "CASE WHEN pinned THEN COALESCE(group_id, 0) END"


class Message(Base):
    """Chat message. ``group_id`` NULL is the global channel.

    ``pin_scope`` is generated by the database and unique, so a scope can hold
    at most one pinned message whatever the isolation level.
    """
    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("pin_scope", name="uq_messages_pin_scope"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(32), nullable=False, default="text")
    content = Column(Text, nullable=True)
    group_id = Column(Integer, ForeignKey("role_groups.id"), nullable=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    replied_to_id = Column(Integer, ForeignKey("messages.id"), nullable=True)
    forwarded_from_id = Column(Integer, ForeignKey("messages.id"), nullable=True)
    pinned = Column(Boolean, default=False, nullable=False)
    pinned_at = Column(DateTime, nullable=True)
    pinned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    pin_scope = Column(Integer, Computed(PIN_SCOPE_SQL, persisted=True), nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    sender = relationship("User", foreign_keys=[sender_id], lazy="joined")
    group = relationship("RoleGroup", lazy="joined")
    reactions = relationship("MessageReaction", lazy="selectin", cascade="all, delete-orphan")
    read_receipts = relationship("ReadReceipt", lazy="selectin", cascade="all, delete-orphan")


class MessageReaction(Base):
    """Emoji reaction; one row per (message, user, emoji)."""
    __tablename__ = "message_reactions"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", "emoji", name="uq_reaction_message_user_emoji"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    emoji = Column(String(32), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class StarredMessage(Base):
    """Bookmark of a message by a user."""
    __tablename__ = "starred_messages"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_starred_message_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class ReadReceipt(Base):
    """Last time a user read a message."""
    __tablename__ = "read_receipts"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_read_receipt_message_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    read_at = Column(DateTime, default=utcnow, nullable=False)
