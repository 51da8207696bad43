"""Message-related Pydantic schemas shared by HTTP and realtime paths."""

from datetime import datetime

from pydantic import field_validator

from tandem_chat.db.time import as_utc

from .common import CamelModel


class MessageResponse(CamelModel):
    """A persisted message with its sender's username."""

    id: str
    conversation_id: str
    from_user_id: str
    from_username: str | None = None
    body: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return as_utc(v)


class MessageListResponse(CamelModel):
    """Envelope for the message history of one conversation."""

    messages: list[MessageResponse]
