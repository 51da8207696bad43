# src/tandem_chat/api/v1/endpoints/messages.py
"""Message history endpoint for the Tandem Chat API."""

from __future__ import annotations

from fastapi import APIRouter, Query
from sqlalchemy import select

from tandem_chat.api.v1.dependencies import CurrentClaimsDep, ResolverDep, SessionDep
from tandem_chat.core.errors import NotFoundError
from tandem_chat.models import Message, User
from tandem_chat.schemas.message import MessageListResponse, MessageResponse

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("", response_model=MessageListResponse)
def list_messages(
    claims: CurrentClaimsDep,
    db: SessionDep,
    resolver: ResolverDep,
    conversation_id: str = Query(..., alias="conversationId", min_length=1, max_length=36),
) -> MessageListResponse:
    """Return a conversation's messages, oldest first.

    Only members of the conversation may read it.
    """
    if not resolver.is_member(db, conversation_id, claims.user_id):
        raise NotFoundError("Conversation not found").to_http()

    rows = db.execute(
        select(Message, User.username)
        .outerjoin(User, User.id == Message.from_user_id)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at, Message.id)
    ).all()

    return MessageListResponse(
        messages=[
            MessageResponse(
                id=message.id,
                conversation_id=message.conversation_id,
                from_user_id=message.from_user_id,
                from_username=username,
                body=message.body,
                created_at=message.created_at,
            )
            for message, username in rows
        ]
    )
