# src/conclave/models/__init__.py
"""SQLAlchemy models for the Conclave application."""

from .conversation import Conversation, Participant, ReadReceipt
from .invite import Invite
from .keys import PreKey, PublicKeyBundle
from .message import Message

__all__ = [
    "Conversation", "Participant", "ReadReceipt",
    "Invite",
    "Message",
    "PreKey", "PublicKeyBundle",
]
