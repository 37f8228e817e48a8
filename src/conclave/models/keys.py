# src/conclave/models/keys.py
"""Public key material published for client-side end-to-end encryption."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from conclave.db.session import Base
from conclave.db.time import utcnow


class PublicKeyBundle(Base):
    """Identity key and signed pre-key for one DID, replaced on every upload."""

    __tablename__ = "public_keys"

    did: Mapped[str] = mapped_column(Text, primary_key=True)
    identity_key: Mapped[str] = mapped_column(Text, nullable=False)
    signed_pre_key: Mapped[str] = mapped_column(Text, nullable=False)
    # Ed25519 signature by the identity key over the signed pre-key bytes.
    signature: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )


class PreKey(Base):
    """One-time pre-key; handed out at most once, then marked used."""

    __tablename__ = "pre_keys"
    __table_args__ = (Index("idx_pre_keys_did", "did"),)

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    did: Mapped[str] = mapped_column(
        Text,
        ForeignKey("public_keys.did", ondelete="CASCADE"),
        nullable=False,
    )
    key: Mapped[str] = mapped_column(Text, nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
