"""Notifications for the real-time delivery channel.

The publish/subscribe transport that pushes events to clients lives outside
this service. The core calls :meth:`EventPublisher.publish` after each state
change it owns; deployments plug in a publisher bound to their transport.
Events are lightweight (ids and roles), never message content.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

MESSAGE_CREATED = "message.created"
MESSAGE_UPDATED = "message.updated"
MESSAGE_DELETED = "message.deleted"
PARTICIPANT_ADDED = "participant.added"
PARTICIPANT_REMOVED = "participant.removed"
PARTICIPANT_ROLE_CHANGED = "participant.role_changed"
CONVERSATION_CREATED = "conversation.created"
CONVERSATION_UPDATED = "conversation.updated"
CONVERSATION_DELETED = "conversation.deleted"


class EventPublisher(ABC):
    """Sink for conversation events."""

    @abstractmethod
    def publish(self, conversation_id: str, event: str, payload: Mapping[str, Any]) -> None:
        """Announce ``event`` on the channel of ``conversation_id``.

        Implementations must not raise; delivery is best effort and a failure
        never rolls back the change that triggered it.
        """


class LoggingEventPublisher(EventPublisher):
    """Default publisher: records events in the log only."""

    def publish(self, conversation_id: str, event: str, payload: Mapping[str, Any]) -> None:
        logger.debug("event %s on %s: %s", event, conversation_id, dict(payload))


class RecordingEventPublisher(EventPublisher):
    """Keeps published events in memory; useful for embedding and tests."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def publish(self, conversation_id: str, event: str, payload: Mapping[str, Any]) -> None:
        self.events.append((conversation_id, event, dict(payload)))

    def of_type(self, event: str) -> list[tuple[str, str, dict[str, Any]]]:
        return [entry for entry in self.events if entry[1] == event]
