"""Invite lifecycle: issue, preview, redeem, revoke and list."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from conclave.core.errors import GoneError, NotFoundError, PermissionDeniedError, ValidationError
from conclave.db.time import ensure_utc, utcnow
from conclave.models import Conversation, Invite, Participant
from conclave.models.invite import MAX_EXPIRES_IN_HOURS
from conclave.services import events
from conclave.services.events import EventPublisher, LoggingEventPublisher
from conclave.services.participants import (
    CONVERSATION_NOT_FOUND,
    get_participant,
    require_participant,
    require_role,
)
from conclave.services.roles import Role
from conclave.utils.did import is_valid_did
from conclave.utils.ids import generate_id

if TYPE_CHECKING:
    from conclave.services.messages import MessageLedger

logger = logging.getLogger(__name__)

INVITE_NOT_FOUND = "Invite not found"


class InviteState(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


_GONE_DETAILS = {
    InviteState.REVOKED: "Invite has been revoked",
    InviteState.EXPIRED: "Invite has expired",
    InviteState.EXHAUSTED: "Invite has reached maximum uses",
}


def invite_state(invite: Invite, now: datetime | None = None) -> InviteState:
    """Return whether ``invite`` can still be used, and if not, why.

    Revocation wins over expiry, expiry over exhaustion.
    """
    now = now or utcnow()
    if invite.revoked_at is not None:
        return InviteState.REVOKED
    expires_at = ensure_utc(invite.expires_at)
    if expires_at is not None and now >= expires_at:
        return InviteState.EXPIRED
    if invite.max_uses is not None and invite.used_count >= invite.max_uses:
        return InviteState.EXHAUSTED
    return InviteState.ACTIVE


def invite_link(base_url: str, invite_id: str) -> str:
    return f"{base_url.rstrip('/')}/join/{invite_id}"


@dataclass
class CreatedInvite:
    invite: Invite
    link: str


@dataclass
class InvitePreview:
    invite: Invite
    conversation: Conversation
    participant_count: int


@dataclass
class Redemption:
    conversation_id: str
    joined: bool = False
    already_member: bool = False


class InviteService:
    """Invite operations bound to one request's session."""

    def __init__(
        self,
        db: Session,
        ledger: MessageLedger,
        *,
        base_url: str,
        publisher: EventPublisher | None = None,
    ) -> None:
        self.db = db
        self.ledger = ledger
        self.base_url = base_url
        self.publisher = publisher or LoggingEventPublisher()

    def create(
        self,
        requester: str,
        conversation_id: str,
        *,
        for_did: str | None = None,
        max_uses: int | None = None,
        expires_in_hours: float | None = None,
    ) -> CreatedInvite:
        """Issue an invite to a group conversation; admins and the owner only.

        ``expires_in_hours=0`` yields an invite that is already expired.
        """
        if for_did is not None and not is_valid_did(for_did):
            raise ValidationError("Invalid forDid")
        if max_uses is not None and max_uses < 1:
            raise ValidationError("maxUses must be at least 1")
        if expires_in_hours is not None and not 0 <= expires_in_hours <= MAX_EXPIRES_IN_HOURS:
            raise ValidationError(f"expiresInHours must be between 0 and {MAX_EXPIRES_IN_HOURS}")

        membership = require_participant(self.db, conversation_id, requester)
        require_role(membership, Role.ADMIN)
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise NotFoundError(CONVERSATION_NOT_FOUND)
        if conversation.is_direct:
            raise ValidationError("Invites are only available for group conversations")

        now = utcnow()
        invite = Invite(
            id=generate_id("inv"),
            conversation_id=conversation_id,
            created_by=requester,
            for_did=for_did,
            max_uses=max_uses,
            used_count=0,
            expires_at=now + timedelta(hours=expires_in_hours) if expires_in_hours is not None else None,
            created_at=now,
        )
        self.db.add(invite)
        self.db.commit()

        logger.info("Invite %s issued for %s by %s", invite.id, conversation_id, requester)
        return CreatedInvite(invite, invite_link(self.base_url, invite.id))

    def _load(self, invite_id: str) -> Invite:
        invite = self.db.get(Invite, invite_id)
        if invite is None:
            raise NotFoundError(INVITE_NOT_FOUND)
        return invite

    @staticmethod
    def _ensure_active(invite: Invite) -> None:
        state = invite_state(invite)
        if state is not InviteState.ACTIVE:
            raise GoneError(_GONE_DETAILS[state], reason=state.value)

    def preview(self, invite_id: str) -> InvitePreview:
        """Describe an active invite's conversation; no authentication needed."""
        invite = self._load(invite_id)
        self._ensure_active(invite)
        conversation = self.db.get(Conversation, invite.conversation_id)
        if conversation is None:
            raise NotFoundError(CONVERSATION_NOT_FOUND)
        count = (
            self.db.query(func.count())
            .select_from(Participant)
            .filter(Participant.conversation_id == conversation.id)
            .scalar()
        )
        return InvitePreview(invite, conversation, count or 0)

    def redeem(self, consumer: str, invite_id: str) -> Redemption:
        """Join the invite's conversation as a member.

        The use counter is incremented by a single conditional UPDATE in the
        same transaction as the membership insert, so concurrent redemptions
        can never push ``used_count`` past ``max_uses``.
        """
        invite = self._load(invite_id)
        self._ensure_active(invite)
        conversation_id = invite.conversation_id

        if invite.for_did is not None and invite.for_did != consumer:
            raise PermissionDeniedError("This invite is for a different identity")
        if get_participant(self.db, conversation_id, consumer) is not None:
            return Redemption(conversation_id, already_member=True)

        now = utcnow()
        claimed = self.db.execute(
            update(Invite)
            .where(
                Invite.id == invite_id,
                Invite.revoked_at.is_(None),
                or_(Invite.expires_at.is_(None), Invite.expires_at > now),
                or_(Invite.max_uses.is_(None), Invite.used_count < Invite.max_uses),
            )
            .values(used_count=Invite.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            self.db.rollback()
            invite = self._load(invite_id)
            self._ensure_active(invite)
            raise GoneError(_GONE_DETAILS[InviteState.EXHAUSTED], reason=InviteState.EXHAUSTED.value)

        self.db.add(Participant(
            conversation_id=conversation_id,
            did=consumer,
            role=Role.MEMBER.value,
            invited_by=invite.created_by,
            joined_at=now,
            trust_extended_to=[],
        ))
        self.ledger.append_system(conversation_id, consumer, f"{consumer} joined via invite")
        try:
            self.db.commit()
        except IntegrityError:
            # Joined concurrently by another path; the use is not counted.
            self.db.rollback()
            if get_participant(self.db, conversation_id, consumer) is not None:
                return Redemption(conversation_id, already_member=True)
            raise

        logger.info("%s joined %s via invite %s", consumer, conversation_id, invite_id)
        self.publisher.publish(
            conversation_id,
            events.PARTICIPANT_ADDED,
            {"did": consumer, "role": Role.MEMBER.value, "invite": invite_id},
        )
        return Redemption(conversation_id, joined=True)

    def revoke(self, requester: str, invite_id: str) -> Invite:
        """Revoke an invite; its creator or an admin of the conversation.

        Revoking twice keeps the first revocation time.
        """
        invite = self._load(invite_id)
        if invite.created_by != requester:
            membership = require_participant(self.db, invite.conversation_id, requester)
            require_role(membership, Role.ADMIN)

        if invite.revoked_at is None:
            invite.revoked_at = utcnow()
            self.db.commit()
            logger.info("Invite %s revoked by %s", invite_id, requester)
        return invite

    def list(self, requester: str, conversation_id: str) -> list[Invite]:
        """Return the conversation's unrevoked invites, oldest first."""
        membership = require_participant(self.db, conversation_id, requester)
        require_role(membership, Role.ADMIN)
        return (
            self.db.query(Invite)
            .filter(Invite.conversation_id == conversation_id, Invite.revoked_at.is_(None))
            .order_by(Invite.created_at, Invite.id)
            .all()
        )
