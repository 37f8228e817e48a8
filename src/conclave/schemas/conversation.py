"""Conversation-related Pydantic schemas."""
from __future__ import annotations

from pydantic import Field

from .common import CamelModel, UtcDatetime
from .participant import ParticipantResponse


class ConversationCreate(CamelModel):
    """Schema for creating a direct or group conversation."""

    type: str = Field(..., description='Either "direct" or "group"')
    participant_dids: list[str] = Field(
        default_factory=list,
        description="DIDs to include besides the creator",
    )
    name: str | None = Field(None, description="Group name; required for groups")
    description: str | None = None
    avatar: str | None = None
    visibility: str = Field("private", description='"private" or "trust-bound"')
    trust_radius: int | None = Field(None, ge=0, description="Maximum trust-graph hops")


class ConversationUpdate(CamelModel):
    """Partial update; only fields present in the request are applied."""

    name: str | None = None
    description: str | None = None
    avatar: str | None = None
    visibility: str | None = None
    trust_radius: int | None = Field(None, ge=0)


class ConversationResponse(CamelModel):
    """Schema for conversation information returned by the API."""

    id: str
    type: str
    name: str | None = None
    description: str | None = None
    avatar: str | None = None
    visibility: str
    trust_radius: int | None = None
    created_by: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
    last_message_at: UtcDatetime | None = None


class ConversationSummaryResponse(ConversationResponse):
    """A conversation together with the caller's own membership state."""

    my_role: str
    muted: bool = False
    last_read_at: UtcDatetime | None = None


class ConversationCreatedResponse(CamelModel):
    conversation: ConversationResponse
    existing: bool = False


class ConversationEnvelope(CamelModel):
    conversation: ConversationResponse


class ConversationListResponse(CamelModel):
    conversations: list[ConversationSummaryResponse]


class ConversationDetailResponse(CamelModel):
    conversation: ConversationResponse
    participants: list[ParticipantResponse]
    my_role: str
