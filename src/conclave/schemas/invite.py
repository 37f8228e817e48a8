"""Invite-related Pydantic schemas."""
from __future__ import annotations

from pydantic import Field

from conclave.models.invite import MAX_EXPIRES_IN_HOURS

from .common import CamelModel, UtcDatetime


class InviteCreate(CamelModel):
    """Schema for issuing an invite."""

    conversation_id: str = Field(..., description="Group conversation to invite into")
    for_did: str | None = Field(None, description="Restrict redemption to this DID")
    max_uses: int | None = Field(None, ge=1, description="Omit for unlimited uses")
    expires_in_hours: float | None = Field(
        None, ge=0, le=MAX_EXPIRES_IN_HOURS, description="Omit for no expiry"
    )


class InviteResponse(CamelModel):
    """Schema for invite information returned to conversation admins."""

    id: str
    conversation_id: str
    created_by: str
    for_did: str | None = None
    max_uses: int | None = None
    used_count: int
    expires_at: UtcDatetime | None = None
    created_at: UtcDatetime
    revoked_at: UtcDatetime | None = None
    state: str


class InviteCreatedResponse(CamelModel):
    invite: InviteResponse
    link: str


class InviteListResponse(CamelModel):
    invites: list[InviteResponse]


class InvitePreviewInvite(CamelModel):
    id: str
    conversation_id: str
    for_did: str | None = None
    expires_at: UtcDatetime | None = None


class InvitePreviewConversation(CamelModel):
    id: str
    type: str
    name: str | None = None
    description: str | None = None
    avatar: str | None = None
    participant_count: int


class InvitePreviewResponse(CamelModel):
    """Public preview of an active invite; no membership required."""

    invite: InvitePreviewInvite
    conversation: InvitePreviewConversation


class RedeemResponse(CamelModel):
    conversation_id: str
    joined: bool = False
    already_member: bool = False


class RevokedResponse(CamelModel):
    revoked: bool = True
