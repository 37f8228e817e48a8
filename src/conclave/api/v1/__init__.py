"""Version 1 API endpoints."""

from .endpoints import (
    conversations_router,
    invites_router,
    keys_router,
    messages_router,
    participants_router,
)

__all__ = [
    "conversations_router",
    "participants_router",
    "messages_router",
    "invites_router",
    "keys_router",
]
