"""Conversation lifecycle: creation, lookup, listing, updates and deletion."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import desc, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from conclave.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from conclave.db.time import utcnow
from conclave.models import Conversation, Participant
from conclave.models.conversation import (
    CONVERSATION_TYPE_DIRECT,
    CONVERSATION_TYPE_GROUP,
    CONVERSATION_TYPES,
    VISIBILITIES,
    VISIBILITY_PRIVATE,
    direct_pair_key,
)
from conclave.services import events
from conclave.services.events import EventPublisher, LoggingEventPublisher
from conclave.services.participants import (
    CONVERSATION_NOT_FOUND,
    require_participant,
    require_role,
)
from conclave.services.roles import Role
from conclave.utils.did import is_valid_did
from conclave.utils.ids import generate_id

if TYPE_CHECKING:
    from conclave.services.messages import MessageLedger

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "description", "avatar", "visibility", "trust_radius")
GROUP_ONLY_FIELDS = ("name", "description", "avatar")


@dataclass
class CreateResult:
    conversation: Conversation
    existing: bool = False


@dataclass
class ConversationDetail:
    conversation: Conversation
    participants: list[Participant]
    my_role: Role


@dataclass
class ConversationSummary:
    """A conversation as seen by one of its participants."""

    conversation: Conversation
    membership: Participant


def touch_last_message(db: Session, conversation_id: str, at: datetime | None = None) -> None:
    """Stamp new activity on a conversation inside the caller's transaction."""
    at = at or utcnow()
    db.execute(
        update(Conversation)
        .where(Conversation.id == conversation_id)
        .values(last_message_at=at, updated_at=at)
        .execution_options(synchronize_session=False)
    )


def _validate_visibility(visibility: str) -> None:
    if visibility not in VISIBILITIES:
        allowed = ", ".join(VISIBILITIES)
        raise ValidationError(f"visibility must be one of: {allowed}")


def _validate_trust_radius(trust_radius: Any) -> None:
    if trust_radius is not None and (not isinstance(trust_radius, int) or trust_radius < 0):
        raise ValidationError("trustRadius must be a non-negative integer")


class ConversationService:
    """Operations on conversations for one request's session."""

    def __init__(
        self,
        db: Session,
        ledger: MessageLedger,
        publisher: EventPublisher | None = None,
    ) -> None:
        self.db = db
        self.ledger = ledger
        self.publisher = publisher or LoggingEventPublisher()

    def create(
        self,
        requester: str,
        type: str,
        participant_dids: Iterable[str],
        *,
        name: str | None = None,
        description: str | None = None,
        avatar: str | None = None,
        visibility: str = VISIBILITY_PRIVATE,
        trust_radius: int | None = None,
    ) -> CreateResult:
        """Create a conversation owned by ``requester``.

        Creating a direct conversation with someone the requester already has
        one with returns the existing conversation with ``existing=True``.
        """
        if type not in CONVERSATION_TYPES:
            raise ValidationError('type must be "direct" or "group"')
        _validate_visibility(visibility)
        _validate_trust_radius(trust_radius)

        dids = list(participant_dids or [])
        if not dids:
            raise ValidationError("participantDids must contain at least one DID")
        for did in dids:
            if not is_valid_did(did):
                raise ValidationError(f"Invalid DID: {did}")

        if type == CONVERSATION_TYPE_DIRECT:
            if any(value for value in (name, description, avatar)):
                raise ValidationError("Direct conversations cannot have a name, description or avatar")
            return self._create_direct(requester, dids, visibility, trust_radius)

        name = (name or "").strip()
        if not name:
            raise ValidationError("Group conversations require a name")
        return self._create_group(
            requester,
            dids,
            name=name,
            description=description,
            avatar=avatar,
            visibility=visibility,
            trust_radius=trust_radius,
        )

    def _find_direct(self, did_a: str, did_b: str) -> Conversation | None:
        return (
            self.db.query(Conversation)
            .filter(Conversation.direct_key == direct_pair_key(did_a, did_b))
            .first()
        )

    def _create_direct(
        self,
        requester: str,
        dids: list[str],
        visibility: str,
        trust_radius: int | None,
    ) -> CreateResult:
        if len(dids) != 1:
            raise ValidationError("Direct conversations take exactly one other participant")
        other = dids[0]
        if other == requester:
            raise ValidationError("Cannot start a direct conversation with yourself")

        existing = self._find_direct(requester, other)
        if existing is not None:
            return CreateResult(existing, existing=True)

        conversation = Conversation(
            id=generate_id("conv"),
            type=CONVERSATION_TYPE_DIRECT,
            visibility=visibility,
            trust_radius=trust_radius,
            created_by=requester,
            direct_key=direct_pair_key(requester, other),
        )
        try:
            self.db.add(conversation)
            self.db.flush()
            self.db.add(Participant(
                conversation_id=conversation.id,
                did=requester,
                role=Role.OWNER.value,
                trust_extended_to=[],
            ))
            self.db.add(Participant(
                conversation_id=conversation.id,
                did=other,
                role=Role.MEMBER.value,
                invited_by=requester,
                trust_extended_to=[],
            ))
            self.db.commit()
        except IntegrityError:
            # Both sides opened the conversation at the same time; the pair key
            # lets exactly one insert win.
            self.db.rollback()
            existing = self._find_direct(requester, other)
            if existing is None:
                raise
            return CreateResult(existing, existing=True)

        logger.info("Direct conversation %s created between %s and %s", conversation.id, requester, other)
        self.publisher.publish(conversation.id, events.CONVERSATION_CREATED, {"by": requester})
        return CreateResult(conversation)

    def _create_group(
        self,
        requester: str,
        dids: list[str],
        **fields: Any,
    ) -> CreateResult:
        members: list[str] = []
        for did in dids:
            if did != requester and did not in members:
                members.append(did)

        conversation = Conversation(
            id=generate_id("conv"),
            type=CONVERSATION_TYPE_GROUP,
            created_by=requester,
            **fields,
        )
        self.db.add(conversation)
        self.db.flush()
        self.db.add(Participant(
            conversation_id=conversation.id,
            did=requester,
            role=Role.OWNER.value,
            trust_extended_to=[],
        ))
        for did in members:
            self.db.add(Participant(
                conversation_id=conversation.id,
                did=did,
                role=Role.MEMBER.value,
                invited_by=requester,
                trust_extended_to=[],
            ))
        self.ledger.append_system(conversation.id, requester, f"{requester} created the group")
        self.db.commit()

        logger.info(
            "Group conversation %s created by %s with %d members",
            conversation.id, requester, len(members) + 1,
        )
        self.publisher.publish(conversation.id, events.CONVERSATION_CREATED, {"by": requester})
        return CreateResult(conversation)

    def _load(self, conversation_id: str) -> Conversation:
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise NotFoundError(CONVERSATION_NOT_FOUND)
        return conversation

    def get(self, requester: str, conversation_id: str) -> ConversationDetail:
        membership = require_participant(self.db, conversation_id, requester)
        conversation = self._load(conversation_id)
        participants = (
            self.db.query(Participant)
            .filter(Participant.conversation_id == conversation_id)
            .order_by(Participant.joined_at, Participant.did)
            .all()
        )
        return ConversationDetail(conversation, participants, Role.parse(membership.role))

    def list_for(self, requester: str) -> list[ConversationSummary]:
        """Return the requester's conversations, most recently active first.

        Conversations without messages sort after those with messages, by
        their last update.
        """
        rows = (
            self.db.query(Conversation, Participant)
            .join(Participant, Participant.conversation_id == Conversation.id)
            .filter(Participant.did == requester)
            .order_by(
                Conversation.last_message_at.desc().nulls_last(),
                desc(Conversation.updated_at),
                desc(Conversation.id),
            )
            .all()
        )
        return [ConversationSummary(conversation, membership) for conversation, membership in rows]

    def update(
        self,
        requester: str,
        conversation_id: str,
        changes: Mapping[str, Any],
    ) -> Conversation:
        """Apply a partial update; admins and the owner only."""
        membership = require_participant(self.db, conversation_id, requester)
        require_role(membership, Role.ADMIN)
        conversation = self._load(conversation_id)

        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update: {', '.join(sorted(unknown))}")

        if conversation.is_direct and any(changes.get(field) for field in GROUP_ONLY_FIELDS):
            raise ValidationError("Direct conversations cannot have a name, description or avatar")
        if "name" in changes and not conversation.is_direct:
            name = (changes["name"] or "").strip()
            if not name:
                raise ValidationError("Group conversations require a name")
            changes = {**changes, "name": name}
        if "visibility" in changes:
            _validate_visibility(changes["visibility"])
        if "trust_radius" in changes:
            _validate_trust_radius(changes["trust_radius"])

        for field, value in changes.items():
            setattr(conversation, field, value)
        conversation.updated_at = utcnow()
        self.db.commit()

        logger.info("Conversation %s updated by %s: %s", conversation_id, requester, sorted(changes))
        self.publisher.publish(
            conversation_id,
            events.CONVERSATION_UPDATED,
            {"by": requester, "fields": sorted(changes)},
        )
        return conversation

    def delete(self, requester: str, conversation_id: str) -> None:
        """Delete a conversation with everything in it; owner only."""
        membership = require_participant(self.db, conversation_id, requester)
        if Role.parse(membership.role) is not Role.OWNER:
            raise PermissionDeniedError("Only the owner can delete a conversation")

        conversation = self._load(conversation_id)
        self.db.delete(conversation)
        self.db.commit()

        logger.info("Conversation %s deleted by %s", conversation_id, requester)
        self.publisher.publish(conversation_id, events.CONVERSATION_DELETED, {"by": requester})

    def touch_last_message(self, conversation_id: str, at: datetime | None = None) -> None:
        touch_last_message(self.db, conversation_id, at)
        self.db.commit()
