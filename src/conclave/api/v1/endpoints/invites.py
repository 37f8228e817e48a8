"""Invite endpoints for the Conclave API."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from conclave.models import Invite
from conclave.schemas.invite import (
    InviteCreate,
    InviteCreatedResponse,
    InviteListResponse,
    InvitePreviewConversation,
    InvitePreviewInvite,
    InvitePreviewResponse,
    InviteResponse,
    RedeemResponse,
    RevokedResponse,
)
from conclave.services.invites import invite_state

from ..dependencies import CurrentIdentityDep, InviteServiceDep

router = APIRouter(prefix="/invites", tags=["invites"])


def _serialize_invite(invite: Invite) -> InviteResponse:
    return InviteResponse(
        id=invite.id,
        conversation_id=invite.conversation_id,
        created_by=invite.created_by,
        for_did=invite.for_did,
        max_uses=invite.max_uses,
        used_count=invite.used_count,
        expires_at=invite.expires_at,
        created_at=invite.created_at,
        revoked_at=invite.revoked_at,
        state=invite_state(invite).value,
    )


@router.post("", response_model=InviteCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_invite(
    payload: InviteCreate,
    identity: CurrentIdentityDep,
    service: InviteServiceDep,
) -> InviteCreatedResponse:
    """Issue an invite to a group conversation."""
    created = service.create(
        identity.did,
        payload.conversation_id,
        for_did=payload.for_did,
        max_uses=payload.max_uses,
        expires_in_hours=payload.expires_in_hours,
    )
    return InviteCreatedResponse(invite=_serialize_invite(created.invite), link=created.link)


@router.get("", response_model=InviteListResponse)
async def list_invites(
    identity: CurrentIdentityDep,
    service: InviteServiceDep,
    conversation_id: str = Query(..., alias="conversationId"),
) -> InviteListResponse:
    """List a conversation's unrevoked invites."""
    invites = service.list(identity.did, conversation_id)
    return InviteListResponse(invites=[_serialize_invite(invite) for invite in invites])


@router.get("/{invite_id}", response_model=InvitePreviewResponse)
async def preview_invite(invite_id: str, service: InviteServiceDep) -> InvitePreviewResponse:
    """Show what an invite leads to; no authentication required."""
    preview = service.preview(invite_id)
    return InvitePreviewResponse(
        invite=InvitePreviewInvite.model_validate(preview.invite),
        conversation=InvitePreviewConversation(
            id=preview.conversation.id,
            type=preview.conversation.type,
            name=preview.conversation.name,
            description=preview.conversation.description,
            avatar=preview.conversation.avatar,
            participant_count=preview.participant_count,
        ),
    )


@router.post("/{invite_id}", response_model=RedeemResponse)
async def redeem_invite(
    invite_id: str,
    identity: CurrentIdentityDep,
    service: InviteServiceDep,
) -> RedeemResponse:
    """Join the invite's conversation."""
    redemption = service.redeem(identity.did, invite_id)
    return RedeemResponse(
        conversation_id=redemption.conversation_id,
        joined=redemption.joined,
        already_member=redemption.already_member,
    )


@router.delete("/{invite_id}", response_model=RevokedResponse)
async def revoke_invite(
    invite_id: str,
    identity: CurrentIdentityDep,
    service: InviteServiceDep,
) -> RevokedResponse:
    """Revoke an invite; its creator or a conversation admin."""
    service.revoke(identity.did, invite_id)
    return RevokedResponse()
