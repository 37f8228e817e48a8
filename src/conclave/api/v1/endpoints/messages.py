"""Message endpoints for the Conclave API."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from conclave.schemas.common import DeletedResponse
from conclave.schemas.message import (
    MessageCreate,
    MessageEnvelope,
    MessagePageResponse,
    MessageResponse,
    MessageUpdate,
)

from ..dependencies import CurrentIdentityDep, LedgerDep

router = APIRouter(prefix="/conversations/{conversation_id}/messages", tags=["messages"])


@router.get("", response_model=MessagePageResponse)
async def list_messages(
    conversation_id: str,
    identity: CurrentIdentityDep,
    ledger: LedgerDep,
    limit: int | None = Query(None, ge=1, description="Page size, capped at the server maximum"),
    before: str | None = Query(None, description="Return messages older than this message id"),
) -> MessagePageResponse:
    """Page backwards through a conversation's messages."""
    page = ledger.list(identity.did, conversation_id, limit=limit, before=before)
    return MessagePageResponse(
        messages=[MessageResponse.model_validate(m) for m in page.messages],
        has_more=page.has_more,
    )


@router.post("", response_model=MessageEnvelope, status_code=status.HTTP_201_CREATED)
async def send_message(
    conversation_id: str,
    payload: MessageCreate,
    identity: CurrentIdentityDep,
    ledger: LedgerDep,
) -> MessageEnvelope:
    """Send an end-to-end encrypted message."""
    message = ledger.send(
        identity.did,
        conversation_id,
        payload.content.model_dump(),
        content_type=payload.content_type,
        reply_to=payload.reply_to,
    )
    return MessageEnvelope(message=MessageResponse.model_validate(message))


@router.patch("/{message_id}", response_model=MessageEnvelope)
async def edit_message(
    conversation_id: str,
    message_id: str,
    payload: MessageUpdate,
    identity: CurrentIdentityDep,
    ledger: LedgerDep,
) -> MessageEnvelope:
    """Replace the content of one of the caller's messages."""
    message = ledger.edit(identity.did, conversation_id, message_id, payload.content.model_dump())
    return MessageEnvelope(message=MessageResponse.model_validate(message))


@router.delete("/{message_id}", response_model=DeletedResponse)
async def delete_message(
    conversation_id: str,
    message_id: str,
    identity: CurrentIdentityDep,
    ledger: LedgerDep,
) -> DeletedResponse:
    """Delete a message; its author or an admin."""
    ledger.delete(identity.did, conversation_id, message_id)
    return DeletedResponse()
