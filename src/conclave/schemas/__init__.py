"""
Pydantic schemas for API request/response models.

Field names are snake_case in Python and camelCase on the wire.
"""

from .conversation import (
    ConversationCreate,
    ConversationDetailResponse,
    ConversationResponse,
    ConversationUpdate,
)
from .invite import InviteCreate, InviteResponse
from .keys import KeyBundleUpload, PublicKeyBundleResponse
from .message import EncryptedEnvelope, MessageCreate, MessageResponse, MessageUpdate
from .participant import ParticipantAdd, ParticipantResponse, ParticipantRoleUpdate

__all__ = [
    "ConversationCreate", "ConversationDetailResponse", "ConversationResponse", "ConversationUpdate",
    "InviteCreate", "InviteResponse",
    "KeyBundleUpload", "PublicKeyBundleResponse",
    "EncryptedEnvelope", "MessageCreate", "MessageResponse", "MessageUpdate",
    "ParticipantAdd", "ParticipantResponse", "ParticipantRoleUpdate",
]
