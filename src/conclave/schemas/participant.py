"""Participant-related Pydantic schemas."""
from __future__ import annotations

from pydantic import Field

from .common import CamelModel, UtcDatetime


class ParticipantAdd(CamelModel):
    """Schema for adding a participant to a group conversation."""

    did: str = Field(..., description="DID of the identity to add")
    role: str = Field("member", description="Role to grant: readonly, member or admin")


class ParticipantRoleUpdate(CamelModel):
    """Schema for changing a participant's role."""

    did: str = Field(..., description="DID of the participant")
    role: str = Field(..., description="New role: readonly, member or admin")


class ParticipantResponse(CamelModel):
    """Schema for participant information returned by the API."""

    conversation_id: str
    did: str
    role: str
    joined_at: UtcDatetime
    invited_by: str | None = None
    last_read_at: UtcDatetime | None = None
    muted: bool = False
    trust_extended_to: list[str] = Field(default_factory=list)


class ParticipantListResponse(CamelModel):
    participants: list[ParticipantResponse]


class ParticipantEnvelope(CamelModel):
    participant: ParticipantResponse


class ReadMarkRequest(CamelModel):
    """Schema for marking a conversation as read."""

    message_id: str | None = Field(None, description="Last message read; newest if omitted")


class ReadReceiptResponse(CamelModel):
    conversation_id: str
    did: str
    last_read_message_id: str | None = None
    read_at: UtcDatetime


class ReadReceiptEnvelope(CamelModel):
    receipt: ReadReceiptResponse


class MuteRequest(CamelModel):
    muted: bool = Field(..., description="Whether notifications are muted")
