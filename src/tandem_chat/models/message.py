# src/tandem_chat/models/message.py
"""Model describing chat messages exchanged inside a conversation."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tandem_chat.db.session import Base
from tandem_chat.db.time import utcnow
from tandem_chat.models.user import new_id


class Message(Base):
    """Immutable text message.

    ``conversation_id`` is stored as given by the sender; membership of the
    sender or recipient in that conversation is not enforced here.
    """

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    conversation_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    from_user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    # Always the server clock at insert time.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
