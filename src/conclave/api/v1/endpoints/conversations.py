"""Conversation endpoints for the Conclave API."""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from conclave.schemas.common import DeletedResponse
from conclave.schemas.conversation import (
    ConversationCreate,
    ConversationCreatedResponse,
    ConversationDetailResponse,
    ConversationEnvelope,
    ConversationListResponse,
    ConversationResponse,
    ConversationSummaryResponse,
    ConversationUpdate,
)
from conclave.schemas.participant import (
    MuteRequest,
    ParticipantEnvelope,
    ParticipantResponse,
    ReadMarkRequest,
    ReadReceiptEnvelope,
    ReadReceiptResponse,
)
from conclave.services.conversations import ConversationSummary

from ..dependencies import ConversationServiceDep, CurrentIdentityDep, ParticipantServiceDep

router = APIRouter(prefix="/conversations", tags=["conversations"])


def _serialize_summary(summary: ConversationSummary) -> ConversationSummaryResponse:
    base = ConversationResponse.model_validate(summary.conversation)
    return ConversationSummaryResponse(
        **base.model_dump(),
        my_role=summary.membership.role,
        muted=summary.membership.muted,
        last_read_at=summary.membership.last_read_at,
    )


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    identity: CurrentIdentityDep,
    service: ConversationServiceDep,
) -> ConversationListResponse:
    """List the caller's conversations, most recently active first."""
    summaries = service.list_for(identity.did)
    return ConversationListResponse(conversations=[_serialize_summary(s) for s in summaries])


@router.post(
    "",
    response_model=ConversationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_conversation(
    payload: ConversationCreate,
    response: Response,
    identity: CurrentIdentityDep,
    service: ConversationServiceDep,
) -> ConversationCreatedResponse:
    """Create a conversation, or return the existing direct one."""
    result = service.create(
        identity.did,
        payload.type,
        payload.participant_dids,
        name=payload.name,
        description=payload.description,
        avatar=payload.avatar,
        visibility=payload.visibility,
        trust_radius=payload.trust_radius,
    )
    if result.existing:
        response.status_code = status.HTTP_200_OK
    return ConversationCreatedResponse(
        conversation=ConversationResponse.model_validate(result.conversation),
        existing=result.existing,
    )


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    conversation_id: str,
    identity: CurrentIdentityDep,
    service: ConversationServiceDep,
) -> ConversationDetailResponse:
    """Get a conversation with its participants and the caller's role."""
    detail = service.get(identity.did, conversation_id)
    return ConversationDetailResponse(
        conversation=ConversationResponse.model_validate(detail.conversation),
        participants=[ParticipantResponse.model_validate(p) for p in detail.participants],
        my_role=detail.my_role.value,
    )


@router.patch("/{conversation_id}", response_model=ConversationEnvelope)
async def update_conversation(
    conversation_id: str,
    payload: ConversationUpdate,
    identity: CurrentIdentityDep,
    service: ConversationServiceDep,
) -> ConversationEnvelope:
    """Update conversation settings; admins and the owner only."""
    conversation = service.update(
        identity.did,
        conversation_id,
        payload.model_dump(exclude_unset=True),
    )
    return ConversationEnvelope(conversation=ConversationResponse.model_validate(conversation))


@router.delete("/{conversation_id}", response_model=DeletedResponse)
async def delete_conversation(
    conversation_id: str,
    identity: CurrentIdentityDep,
    service: ConversationServiceDep,
) -> DeletedResponse:
    """Delete a conversation and everything in it; owner only."""
    service.delete(identity.did, conversation_id)
    return DeletedResponse()


@router.put("/{conversation_id}/read", response_model=ReadReceiptEnvelope)
async def mark_read(
    conversation_id: str,
    identity: CurrentIdentityDep,
    service: ParticipantServiceDep,
    payload: ReadMarkRequest | None = None,
) -> ReadReceiptEnvelope:
    """Record the caller's read position."""
    message_id = payload.message_id if payload is not None else None
    receipt = service.mark_read(identity.did, conversation_id, message_id)
    return ReadReceiptEnvelope(receipt=ReadReceiptResponse.model_validate(receipt))


@router.put("/{conversation_id}/mute", response_model=ParticipantEnvelope)
async def set_muted(
    conversation_id: str,
    payload: MuteRequest,
    identity: CurrentIdentityDep,
    service: ParticipantServiceDep,
) -> ParticipantEnvelope:
    """Mute or unmute the conversation for the caller."""
    participant = service.set_muted(identity.did, conversation_id, payload.muted)
    return ParticipantEnvelope(participant=ParticipantResponse.model_validate(participant))
