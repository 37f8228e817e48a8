"""Message-related Pydantic schemas."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .common import CamelModel, UtcDatetime


class EncryptedEnvelope(BaseModel):
    """Client-encrypted payload; stored and returned verbatim, never decrypted."""

    ciphertext: str = Field(..., min_length=1, description="Base64 ciphertext")
    nonce: str = Field(..., min_length=1, description="Base64 nonce used for encryption")

    model_config = ConfigDict(extra="allow")


class MessageCreate(CamelModel):
    """Schema for sending a message."""

    content: EncryptedEnvelope
    content_type: str = Field("text", description="text, invite or trust-extended")
    reply_to: str | None = Field(None, description="Id of the message being replied to")


class MessageUpdate(CamelModel):
    """Schema for editing a message's content."""

    content: EncryptedEnvelope


class MessageResponse(CamelModel):
    """Schema for message information returned by the API."""

    id: str
    conversation_id: str
    from_did: str
    content: dict[str, Any]
    content_type: str
    reply_to: str | None = None
    created_at: UtcDatetime
    edited_at: UtcDatetime | None = None
    deleted_at: UtcDatetime | None = None


class MessageEnvelope(CamelModel):
    message: MessageResponse


class MessagePageResponse(CamelModel):
    messages: list[MessageResponse]
    has_more: bool
