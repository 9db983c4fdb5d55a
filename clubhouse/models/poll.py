"""Poll, option and vote models."""

import enum

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from clubhouse.db.base import Base, utcnow


class PollType(str, enum.Enum):
    yes_no = "yes_no"
    multiple = "multiple"


class Poll(Base):
    """Poll, optionally scoped to a role group."""
    __tablename__ = "polls"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(Enum(PollType), default=PollType.multiple, nullable=False)
    allow_custom_option = Column(Boolean, default=False, nullable=False)
    group_id = Column(Integer, ForeignKey("role_groups.id"), nullable=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    options = relationship(
        "PollOption", back_populates="poll", order_by="PollOption.id",
        lazy="selectin", cascade="all, delete-orphan",
    )
    votes = relationship("PollVote", lazy="selectin", cascade="all, delete-orphan")


class PollOption(Base):
    """Poll choice. ``created_by`` is set only for member-added options."""
    __tablename__ = "poll_options"
    __table_args__ = (
        # NULL creators (options defined with the poll) do not collide
        UniqueConstraint("poll_id", "created_by", name="uq_poll_option_creator"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    poll_id = Column(Integer, ForeignKey("polls.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(String(500), nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    poll = relationship("Poll", back_populates="options")


class PollVote(Base):
    """A user's single vote in a poll."""
    __tablename__ = "poll_votes"
    __table_args__ = (
        UniqueConstraint("poll_id", "user_id", name="uq_poll_vote_poll_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    poll_id = Column(Integer, ForeignKey("polls.id", ondelete="CASCADE"), nullable=False)
    option_id = Column(Integer, ForeignKey("poll_options.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    voted_at = Column(DateTime, default=utcnow, nullable=False)

    option = relationship("PollOption", lazy="joined")
