# src/tandem_chat/schemas/__init__.py
"""
Pydantic schemas for API request/response models and realtime envelopes.

These schemas define the structure of API data for serialization and validation.
"""

from .conversation import ConversationRef, ConversationResponse
from .message import MessageListResponse, MessageResponse
from .user import (
    AuthResponse,
    LoginRequest,
    PeerListResponse,
    PeerResponse,
    RegisterRequest,
    UserPublic,
)

__all__ = [
    "ConversationRef", "ConversationResponse",
    "MessageListResponse", "MessageResponse",
    "AuthResponse", "LoginRequest", "PeerListResponse", "PeerResponse",
    "RegisterRequest", "UserPublic",
]
