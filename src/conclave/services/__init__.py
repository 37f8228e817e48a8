# src/conclave/services/__init__.py
"""Business logic services for the Conclave application."""

from .conversations import ConversationService
from .invites import InviteService, InviteState
from .keys import KeyDirectory
from .messages import MessageLedger
from .participants import ParticipantService
from .roles import Role

__all__ = [
    "ConversationService",
    "InviteService",
    "InviteState",
    "KeyDirectory",
    "MessageLedger",
    "ParticipantService",
    "Role",
]
