"""Conversation resolution endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Query, Response, status

from tandem_chat.api.v1.dependencies import CurrentClaimsDep, ResolverDep, SessionDep
from tandem_chat.core.errors import ChatError
from tandem_chat.schemas.conversation import ConversationRef, ConversationResponse

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("", response_model=ConversationResponse)
def resolve_conversation(
    claims: CurrentClaimsDep,
    db: SessionDep,
    resolver: ResolverDep,
    response: Response,
    user_id: str = Query(..., alias="userId", min_length=1, max_length=36),
) -> ConversationResponse:
    """Get or create the private conversation between the caller and ``userId``.

    Responds 201 when the conversation was created by this call, 200 otherwise.
    """
    try:
        conversation_id, created = resolver.resolve(db, claims.user_id, user_id)
    except ChatError as err:
        raise err.to_http() from err

    if created:
        response.status_code = status.HTTP_201_CREATED
    return ConversationResponse(conversation=ConversationRef(id=conversation_id))
