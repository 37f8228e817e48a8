"""Shared API dependencies for authentication and service construction."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from conclave.core.errors import AuthenticationError
from conclave.core.settings import Settings
from conclave.db.session import get_db
from conclave.services.conversations import ConversationService
from conclave.services.events import EventPublisher
from conclave.services.identity import Identity, IdentityVerifier
from conclave.services.invites import InviteService
from conclave.services.keys import KeyDirectory
from conclave.services.messages import MessageLedger
from conclave.services.participants import ParticipantService

# auto_error is off so a missing header yields 401 rather than FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_event_publisher(request: Request) -> EventPublisher:
    return request.app.state.event_publisher


SettingsDep = Annotated[Settings, Depends(get_settings)]
PublisherDep = Annotated[EventPublisher, Depends(get_event_publisher)]


async def get_current_identity(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Identity:
    """Resolve the bearer credential to a verified identity.

    Raises:
        AuthenticationError: If the header is missing or the credential is rejected.
        UpstreamUnavailableError: If the identity service cannot be reached.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing or invalid Authorization header")
    verifier: IdentityVerifier = request.app.state.identity_verifier
    return await verifier.verify(credentials.credentials)


CurrentIdentityDep = Annotated[Identity, Depends(get_current_identity)]


def get_message_ledger(
    db: SessionDep,
    settings: SettingsDep,
    publisher: PublisherDep,
) -> MessageLedger:
    return MessageLedger(
        db,
        publisher,
        page_default=settings.message_page_default,
        page_max=settings.message_page_max,
    )


LedgerDep = Annotated[MessageLedger, Depends(get_message_ledger)]


def get_conversation_service(
    db: SessionDep,
    ledger: LedgerDep,
    publisher: PublisherDep,
) -> ConversationService:
    return ConversationService(db, ledger, publisher)


def get_participant_service(
    db: SessionDep,
    ledger: LedgerDep,
    publisher: PublisherDep,
) -> ParticipantService:
    return ParticipantService(db, ledger, publisher)


def get_invite_service(
    db: SessionDep,
    ledger: LedgerDep,
    settings: SettingsDep,
    publisher: PublisherDep,
) -> InviteService:
    return InviteService(db, ledger, base_url=settings.invite_base_url, publisher=publisher)


def get_key_directory(db: SessionDep) -> KeyDirectory:
    return KeyDirectory(db)


ConversationServiceDep = Annotated[ConversationService, Depends(get_conversation_service)]
ParticipantServiceDep = Annotated[ParticipantService, Depends(get_participant_service)]
InviteServiceDep = Annotated[InviteService, Depends(get_invite_service)]
KeyDirectoryDep = Annotated[KeyDirectory, Depends(get_key_directory)]
