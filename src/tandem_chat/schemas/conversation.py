"""Conversation-related Pydantic schemas."""

from pydantic import Field

from .common import CamelModel


class ConversationRef(CamelModel):
    """Identifier of a resolved conversation."""

    id: str = Field(..., description="Conversation identifier")


class ConversationResponse(CamelModel):
    """Response of the get-or-create conversation operation."""

    conversation: ConversationRef
