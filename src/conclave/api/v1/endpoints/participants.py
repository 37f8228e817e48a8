"""Participant management endpoints for the Conclave API."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from conclave.schemas.common import RemovedResponse, UpdatedResponse
from conclave.schemas.participant import (
    ParticipantAdd,
    ParticipantEnvelope,
    ParticipantListResponse,
    ParticipantResponse,
    ParticipantRoleUpdate,
)

from ..dependencies import CurrentIdentityDep, ParticipantServiceDep

router = APIRouter(prefix="/conversations/{conversation_id}/participants", tags=["participants"])


@router.get("", response_model=ParticipantListResponse)
async def list_participants(
    conversation_id: str,
    identity: CurrentIdentityDep,
    service: ParticipantServiceDep,
) -> ParticipantListResponse:
    """List everyone in the conversation."""
    participants = service.list(identity.did, conversation_id)
    return ParticipantListResponse(
        participants=[ParticipantResponse.model_validate(p) for p in participants]
    )


@router.post("", response_model=ParticipantEnvelope, status_code=status.HTTP_201_CREATED)
async def add_participant(
    conversation_id: str,
    payload: ParticipantAdd,
    identity: CurrentIdentityDep,
    service: ParticipantServiceDep,
) -> ParticipantEnvelope:
    """Add an identity to a group conversation."""
    participant = service.add(identity.did, conversation_id, payload.did, payload.role)
    return ParticipantEnvelope(participant=ParticipantResponse.model_validate(participant))


@router.patch("", response_model=UpdatedResponse)
async def change_role(
    conversation_id: str,
    payload: ParticipantRoleUpdate,
    identity: CurrentIdentityDep,
    service: ParticipantServiceDep,
) -> UpdatedResponse:
    """Change a participant's role; owner only."""
    service.set_role(identity.did, conversation_id, payload.did, payload.role)
    return UpdatedResponse()


@router.delete("", response_model=RemovedResponse)
async def remove_participant(
    conversation_id: str,
    identity: CurrentIdentityDep,
    service: ParticipantServiceDep,
    did: str = Query(..., description="Participant to remove; your own DID to leave"),
) -> RemovedResponse:
    """Remove a participant, or leave the conversation."""
    service.remove(identity.did, conversation_id, did)
    return RemovedResponse()
