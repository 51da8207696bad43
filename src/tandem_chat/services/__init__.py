# src/tandem_chat/services/__init__.py
"""Business logic services for the Tandem Chat application."""

from .auth import AuthGateway, TokenClaims
from .conversations import ConversationResolver
from .relay import ConnectionState, MessageRelay
from .sessions import LiveSession, SessionRegistry

__all__ = [
    "AuthGateway",
    "TokenClaims",
    "ConversationResolver",
    "ConnectionState",
    "MessageRelay",
    "LiveSession",
    "SessionRegistry",
]
