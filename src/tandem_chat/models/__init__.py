# src/tandem_chat/models/__init__.py
"""SQLAlchemy models for the Tandem Chat application."""

from .conversation import Conversation, ConversationMember
from .message import Message
from .user import User

__all__ = [
    "Conversation", "ConversationMember",
    "Message",
    "User",
]
