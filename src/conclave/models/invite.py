# src/conclave/models/invite.py
"""SQLAlchemy model for conversation invites."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from conclave.db.session import Base
from conclave.db.time import utcnow

# One century; longer lifetimes overflow datetime arithmetic.
MAX_EXPIRES_IN_HOURS = 24 * 365 * 100


class Invite(Base):
    """Shareable token that lets identities join a group conversation.

    Rows are never deleted by revocation; ``revoked_at`` is set instead so the
    history of who could join stays auditable.
    """

    __tablename__ = "invites"
    __table_args__ = (
        Index("idx_invites_conversation", "conversation_id"),
        Index("idx_invites_for_did", "for_did"),
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    conversation_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )

    created_by: Mapped[str] = mapped_column(Text, nullable=False)
    # When set, only this identity may redeem the invite.
    for_did: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Null means unlimited.
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
