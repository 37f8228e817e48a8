# src/conclave/models/message.py
"""Models describing messages stored in conversations."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from conclave.db.session import Base
from conclave.db.time import utcnow

CONTENT_TYPE_TEXT = "text"
CONTENT_TYPE_SYSTEM = "system"
CONTENT_TYPE_INVITE = "invite"
CONTENT_TYPE_TRUST_EXTENDED = "trust-extended"
CONTENT_TYPES = (
    CONTENT_TYPE_TEXT,
    CONTENT_TYPE_SYSTEM,
    CONTENT_TYPE_INVITE,
    CONTENT_TYPE_TRUST_EXTENDED,
)


class Message(Base):
    """Entry in a conversation's append-only ledger.

    Client messages hold an opaque envelope (``ciphertext`` + ``nonce``) the
    server never decrypts; system messages hold ``{"type": "system", "text"}``.
    Deleted rows keep their content and are only tombstoned via ``deleted_at``
    so reply references stay valid.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_conversation", "conversation_id"),
        Index("idx_messages_created", "created_at"),
        Index("idx_messages_from", "from_did"),
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    conversation_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_did: Mapped[str] = mapped_column(Text, nullable=False)

    content: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    content_type: Mapped[str] = mapped_column(Text, nullable=False, default=CONTENT_TYPE_TEXT)

    reply_to: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_system(self) -> bool:
        return self.content_type == CONTENT_TYPE_SYSTEM
