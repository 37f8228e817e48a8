"""Participant registry: membership, roles and read state."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from conclave.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from conclave.db.time import utcnow
from conclave.models import Conversation, Message, Participant, ReadReceipt
from conclave.services import events
from conclave.services.events import EventPublisher, LoggingEventPublisher
from conclave.services.roles import Role
from conclave.utils.did import is_valid_did

if TYPE_CHECKING:
    from conclave.services.messages import MessageLedger

logger = logging.getLogger(__name__)

CONVERSATION_NOT_FOUND = "Conversation not found"


def get_participant(db: Session, conversation_id: str, did: str) -> Participant | None:
    """Return the membership row for ``did`` in ``conversation_id``, if any."""
    return db.get(Participant, (conversation_id, did))


def require_participant(db: Session, conversation_id: str, did: str) -> Participant:
    """Return the caller's membership or fail as if the conversation did not exist.

    Non-members and unknown ids get the same error so conversation existence
    never leaks to outsiders.
    """
    participant = get_participant(db, conversation_id, did)
    if participant is None:
        raise NotFoundError(CONVERSATION_NOT_FOUND)
    return participant


def require_role(participant: Participant, required: Role, detail: str = "Permission denied") -> Role:
    """Return the participant's role, failing unless it ranks at least ``required``."""
    role = Role.parse(participant.role)
    if not role.at_least(required):
        raise PermissionDeniedError(detail)
    return role


def _parse_role(value: str) -> Role:
    try:
        return Role.parse(value)
    except ValueError as err:
        raise ValidationError(str(err)) from err


def _validate_did(did: str) -> None:
    if not is_valid_did(did):
        raise ValidationError("Invalid or missing DID")


class ParticipantService:
    """Membership changes for a single request."""

    def __init__(
        self,
        db: Session,
        ledger: MessageLedger,
        publisher: EventPublisher | None = None,
    ) -> None:
        self.db = db
        self.ledger = ledger
        self.publisher = publisher or LoggingEventPublisher()

    def _group_only(self, conversation_id: str) -> Conversation:
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise NotFoundError(CONVERSATION_NOT_FOUND)
        if conversation.is_direct:
            raise ValidationError("Direct conversations have a fixed set of participants")
        return conversation

    def list(self, requester: str, conversation_id: str) -> list[Participant]:
        """Return every participant, oldest membership first."""
        require_participant(self.db, conversation_id, requester)
        return (
            self.db.query(Participant)
            .filter(Participant.conversation_id == conversation_id)
            .order_by(Participant.joined_at, Participant.did)
            .all()
        )

    def add(
        self,
        requester: str,
        conversation_id: str,
        did: str,
        role: str | Role = Role.MEMBER,
    ) -> Participant:
        """Add ``did`` to a group conversation.

        Admins may only add roles below their own; the owner may add any role
        except a second owner.
        """
        _validate_did(did)
        new_role = _parse_role(role)

        actor = require_participant(self.db, conversation_id, requester)
        actor_role = require_role(actor, Role.ADMIN)
        self._group_only(conversation_id)

        if new_role is Role.OWNER:
            raise ValidationError("A conversation has exactly one owner")
        if actor_role is not Role.OWNER and new_role.at_least(actor_role):
            raise PermissionDeniedError("Cannot add participant with equal or higher role")

        if get_participant(self.db, conversation_id, did) is not None:
            raise ConflictError("Already a participant")

        participant = Participant(
            conversation_id=conversation_id,
            did=did,
            role=new_role.value,
            invited_by=requester,
            trust_extended_to=[],
        )
        self.db.add(participant)
        self.ledger.append_system(conversation_id, requester, f"{requester} added {did}")
        try:
            self.db.commit()
        except IntegrityError as err:
            # Lost a race against a concurrent add of the same identity.
            self.db.rollback()
            raise ConflictError("Already a participant") from err

        logger.info("%s added %s to %s as %s", requester, did, conversation_id, new_role.value)
        self.publisher.publish(
            conversation_id,
            events.PARTICIPANT_ADDED,
            {"did": did, "role": new_role.value, "by": requester},
        )
        return participant

    def set_role(
        self,
        requester: str,
        conversation_id: str,
        did: str,
        role: str | Role,
    ) -> Participant:
        """Change another participant's role; owner only."""
        _validate_did(did)
        new_role = _parse_role(role)

        actor = require_participant(self.db, conversation_id, requester)
        if Role.parse(actor.role) is not Role.OWNER:
            raise PermissionDeniedError("Only the owner can change roles")
        self._group_only(conversation_id)

        if new_role is Role.OWNER:
            raise ValidationError("Ownership cannot be granted by a role change")
        if did == requester:
            raise PermissionDeniedError("Cannot change your own role")

        target = get_participant(self.db, conversation_id, did)
        if target is None:
            raise NotFoundError("Participant not found")

        old_role = Role.parse(target.role)
        if old_role is new_role:
            return target

        target.role = new_role.value
        self.ledger.append_system(
            conversation_id,
            requester,
            f"{requester} changed {did}'s role from {old_role.value} to {new_role.value}",
        )
        self.db.commit()

        logger.info(
            "%s changed %s in %s from %s to %s",
            requester, did, conversation_id, old_role.value, new_role.value,
        )
        self.publisher.publish(
            conversation_id,
            events.PARTICIPANT_ROLE_CHANGED,
            {"did": did, "from": old_role.value, "to": new_role.value, "by": requester},
        )
        return target

    def remove(self, requester: str, conversation_id: str, did: str) -> None:
        """Leave a conversation, or remove a strictly lower-ranked participant."""
        _validate_did(did)
        actor = require_participant(self.db, conversation_id, requester)
        actor_role = Role.parse(actor.role)
        self._group_only(conversation_id)

        is_self = did == requester
        if is_self:
            if actor_role is Role.OWNER:
                raise PermissionDeniedError("Owner must transfer ownership before leaving")
            target = actor
        else:
            require_role(actor, Role.ADMIN)
            target = get_participant(self.db, conversation_id, did)
            if target is None:
                raise NotFoundError("Participant not found")
            if not actor_role.outranks(Role.parse(target.role)):
                raise PermissionDeniedError("Cannot remove participant with equal or higher role")

        self.db.delete(target)
        receipt = self.db.get(ReadReceipt, (conversation_id, did))
        if receipt is not None:
            self.db.delete(receipt)

        action = "left the group" if is_self else f"removed {did}"
        self.ledger.append_system(conversation_id, requester, f"{requester} {action}")
        self.db.commit()

        logger.info("%s %s in %s", requester, action, conversation_id)
        self.publisher.publish(
            conversation_id,
            events.PARTICIPANT_REMOVED,
            {"did": did, "by": requester, "left": is_self},
        )

    def mark_read(
        self,
        requester: str,
        conversation_id: str,
        message_id: str | None = None,
    ) -> ReadReceipt:
        """Record how far the requester has read.

        Without ``message_id`` the newest visible message is used.
        """
        participant = require_participant(self.db, conversation_id, requester)

        if message_id is not None:
            message = (
                self.db.query(Message)
                .filter(Message.id == message_id, Message.conversation_id == conversation_id)
                .first()
            )
            if message is None:
                raise NotFoundError("Message not found")
        else:
            message = (
                self.db.query(Message)
                .filter(
                    Message.conversation_id == conversation_id,
                    Message.deleted_at.is_(None),
                )
                .order_by(desc(Message.created_at), desc(Message.id))
                .first()
            )

        now = utcnow()
        receipt = self.db.get(ReadReceipt, (conversation_id, requester))
        if receipt is None:
            receipt = ReadReceipt(conversation_id=conversation_id, did=requester)
            self.db.add(receipt)
        receipt.last_read_message_id = message.id if message is not None else None
        receipt.read_at = now
        participant.last_read_at = now
        self.db.commit()
        return receipt

    def set_muted(self, requester: str, conversation_id: str, muted: bool) -> Participant:
        """Toggle the requester's own mute flag."""
        participant = require_participant(self.db, conversation_id, requester)
        participant.muted = muted
        self.db.commit()
        return participant
