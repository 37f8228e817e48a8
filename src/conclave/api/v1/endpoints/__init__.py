"""API endpoint modules for version 1."""

from .conversations import router as conversations_router
from .invites import router as invites_router
from .keys import router as keys_router
from .messages import router as messages_router
from .participants import router as participants_router

__all__ = [
    "conversations_router",
    "participants_router",
    "messages_router",
    "invites_router",
    "keys_router",
]
