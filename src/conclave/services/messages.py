"""Message ledger: append, page through, edit and tombstone messages."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import and_, desc, or_
from sqlalchemy.orm import Session

from conclave.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from conclave.db.time import utcnow
from conclave.models import Message
from conclave.models.message import (
    CONTENT_TYPE_INVITE,
    CONTENT_TYPE_SYSTEM,
    CONTENT_TYPE_TEXT,
    CONTENT_TYPE_TRUST_EXTENDED,
)
from conclave.services import events
from conclave.services.conversations import touch_last_message
from conclave.services.events import EventPublisher, LoggingEventPublisher
from conclave.services.participants import require_participant, require_role
from conclave.services.roles import Role
from conclave.utils.ids import generate_id

logger = logging.getLogger(__name__)

CLIENT_CONTENT_TYPES = (CONTENT_TYPE_TEXT, CONTENT_TYPE_INVITE, CONTENT_TYPE_TRUST_EXTENDED)
MESSAGE_NOT_FOUND = "Message not found"


@dataclass
class MessagePage:
    """A window of messages in chronological order."""

    messages: list[Message]
    has_more: bool


def _check_content(content: Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(content, Mapping) or not content:
        raise ValidationError("content is required")
    if content.get("type") == CONTENT_TYPE_SYSTEM:
        raise ValidationError("System messages cannot be sent by clients")
    return dict(content)


class MessageLedger:
    """Append-only message store scoped to conversation members."""

    def __init__(
        self,
        db: Session,
        publisher: EventPublisher | None = None,
        *,
        page_default: int = 50,
        page_max: int = 100,
    ) -> None:
        self.db = db
        self.publisher = publisher or LoggingEventPublisher()
        self.page_default = page_default
        self.page_max = page_max

    def append_system(self, conversation_id: str, actor_did: str, text: str) -> Message:
        """Stage a system message in the caller's transaction.

        The caller commits; the message lands or vanishes together with the
        membership change it describes.
        """
        message = Message(
            id=generate_id("msg"),
            conversation_id=conversation_id,
            from_did=actor_did,
            content={"type": CONTENT_TYPE_SYSTEM, "text": text},
            content_type=CONTENT_TYPE_SYSTEM,
        )
        self.db.add(message)
        return message

    def send(
        self,
        requester: str,
        conversation_id: str,
        content: Mapping[str, Any],
        content_type: str = CONTENT_TYPE_TEXT,
        reply_to: str | None = None,
    ) -> Message:
        """Append a client message and bump the conversation's activity time."""
        participant = require_participant(self.db, conversation_id, requester)
        require_role(participant, Role.MEMBER, "Read-only participants cannot send messages")

        if content_type not in CLIENT_CONTENT_TYPES:
            allowed = ", ".join(CLIENT_CONTENT_TYPES)
            raise ValidationError(f"contentType must be one of: {allowed}")
        body = _check_content(content)

        if reply_to is not None:
            target = (
                self.db.query(Message.id)
                .filter(Message.id == reply_to, Message.conversation_id == conversation_id)
                .first()
            )
            if target is None:
                raise NotFoundError("Reply target not found")

        now = utcnow()
        message = Message(
            id=generate_id("msg"),
            conversation_id=conversation_id,
            from_did=requester,
            content=body,
            content_type=content_type,
            reply_to=reply_to,
            created_at=now,
        )
        self.db.add(message)
        touch_last_message(self.db, conversation_id, now)
        self.db.commit()

        logger.info("Message %s sent to %s by %s", message.id, conversation_id, requester)
        self.publisher.publish(
            conversation_id,
            events.MESSAGE_CREATED,
            {"messageId": message.id, "from": requester},
        )
        return message

    def _clamp(self, limit: int | None) -> int:
        if limit is None:
            return self.page_default
        return max(1, min(limit, self.page_max))

    def list(
        self,
        requester: str,
        conversation_id: str,
        limit: int | None = None,
        before: str | None = None,
    ) -> MessagePage:
        """Return up to ``limit`` messages older than ``before``, oldest first.

        A ``before`` id that does not resolve inside this conversation is
        ignored and the newest page is returned.
        """
        require_participant(self.db, conversation_id, requester)
        limit = self._clamp(limit)

        query = self.db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.deleted_at.is_(None),
        )
        if before is not None:
            cursor = (
                self.db.query(Message.created_at, Message.id)
                .filter(Message.id == before, Message.conversation_id == conversation_id)
                .first()
            )
            if cursor is not None:
                query = query.filter(
                    or_(
                        Message.created_at < cursor.created_at,
                        and_(Message.created_at == cursor.created_at, Message.id < cursor.id),
                    )
                )

        rows = (
            query.order_by(desc(Message.created_at), desc(Message.id))
            .limit(limit)
            .all()
        )
        rows.reverse()
        return MessagePage(messages=rows, has_more=len(rows) == limit)

    def _load(self, conversation_id: str, message_id: str) -> Message:
        message = (
            self.db.query(Message)
            .filter(Message.id == message_id, Message.conversation_id == conversation_id)
            .first()
        )
        if message is None:
            raise NotFoundError(MESSAGE_NOT_FOUND)
        return message

    def edit(
        self,
        requester: str,
        conversation_id: str,
        message_id: str,
        content: Mapping[str, Any],
    ) -> Message:
        """Replace the envelope of the requester's own message."""
        participant = require_participant(self.db, conversation_id, requester)
        message = self._load(conversation_id, message_id)
        if message.deleted_at is not None:
            raise NotFoundError(MESSAGE_NOT_FOUND)
        if message.is_system or message.from_did != requester:
            raise PermissionDeniedError("Only the author can edit a message")
        require_role(participant, Role.MEMBER, "Read-only participants cannot edit messages")

        message.content = _check_content(content)
        message.edited_at = utcnow()
        self.db.commit()

        self.publisher.publish(
            conversation_id,
            events.MESSAGE_UPDATED,
            {"messageId": message.id, "from": requester},
        )
        return message

    def delete(self, requester: str, conversation_id: str, message_id: str) -> Message:
        """Tombstone a message; authors and admins may delete, repeats are no-ops."""
        participant = require_participant(self.db, conversation_id, requester)
        message = self._load(conversation_id, message_id)
        if message.deleted_at is not None:
            return message

        is_author = message.from_did == requester and not message.is_system
        if not is_author:
            require_role(participant, Role.ADMIN, "Only the author or an admin can delete a message")

        message.deleted_at = utcnow()
        self.db.commit()

        logger.info("Message %s in %s deleted by %s", message_id, conversation_id, requester)
        self.publisher.publish(
            conversation_id,
            events.MESSAGE_DELETED,
            {"messageId": message.id, "by": requester},
        )
        return message
