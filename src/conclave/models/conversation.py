# src/conclave/models/conversation.py
"""SQLAlchemy models for conversations and their membership."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from conclave.db.session import Base
from conclave.db.time import utcnow

CONVERSATION_TYPE_DIRECT = "direct"
CONVERSATION_TYPE_GROUP = "group"
CONVERSATION_TYPES = (CONVERSATION_TYPE_DIRECT, CONVERSATION_TYPE_GROUP)

VISIBILITY_PRIVATE = "private"
VISIBILITY_TRUST_BOUND = "trust-bound"
VISIBILITIES = (VISIBILITY_PRIVATE, VISIBILITY_TRUST_BOUND)


def direct_pair_key(did_a: str, did_b: str) -> str:
    """Return the order-independent key identifying a direct conversation."""
    first, second = sorted((did_a, did_b))
    return f"{first} {second}"


class Conversation(Base):
    """A direct or group conversation.

    The type is fixed at creation. Direct conversations carry ``direct_key``,
    the sorted participant pair, whose uniqueness guarantees at most one direct
    conversation per pair of identities even under concurrent first contact.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        Index("idx_conversations_type", "type"),
        Index("idx_conversations_created_by", "created_by"),
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar: Mapped[str | None] = mapped_column(Text, nullable=True)

    visibility: Mapped[str] = mapped_column(Text, nullable=False, default=VISIBILITY_PRIVATE)
    # Maximum hop count in the external trust graph; opaque to this service.
    trust_radius: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_by: Mapped[str] = mapped_column(Text, nullable=False)
    direct_key: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_direct(self) -> bool:
        return self.type == CONVERSATION_TYPE_DIRECT


class Participant(Base):
    """Membership of one identity in one conversation."""

    __tablename__ = "participants"
    __table_args__ = (
        Index("idx_participants_did", "did"),
        Index("idx_participants_role", "role"),
    )

    conversation_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    did: Mapped[str] = mapped_column(Text, primary_key=True)

    role: Mapped[str] = mapped_column(Text, nullable=False, default="member")
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    # Null only for the conversation creator.
    invited_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    muted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # DIDs this participant vouched for inside the conversation; informational.
    trust_extended_to: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)


class ReadReceipt(Base):
    """Last message an identity has read in a conversation."""

    __tablename__ = "read_receipts"

    conversation_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    did: Mapped[str] = mapped_column(Text, primary_key=True)
    last_read_message_id: Mapped[str | None] = mapped_column(
        Text,
        ForeignKey("messages.id", ondelete="SET NULL"),
        nullable=True,
    )
    read_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
