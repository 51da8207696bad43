# src/tandem_chat/models/conversation.py
"""SQLAlchemy models for two-party conversations and their membership."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from tandem_chat.db.session import Base
from tandem_chat.db.time import utcnow
from tandem_chat.models.user import new_id


def pair_key_for(first_user_id: str, second_user_id: str) -> str:
    """Return the canonical key of an unordered user pair."""
    low, high = sorted((first_user_id, second_user_id))
    return f"{low}:{high}"


class Conversation(Base):
    """Private channel shared by exactly two users."""

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    # At most one conversation per unordered pair; see pair_key_for().
    pair_key: Mapped[str | None] = mapped_column(String(80), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )


class ConversationMember(Base):
    """Join table mapping users into conversations."""

    __tablename__ = "conversation_members"

    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    # No foreign key: a peer id is not checked for existence.
    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, index=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
