"""Peer discovery endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy import select

from tandem_chat.api.v1.dependencies import CurrentClaimsDep, RegistryDep, SessionDep
from tandem_chat.core.errors import NotFoundError
from tandem_chat.models import User
from tandem_chat.schemas.user import PeerListResponse, PeerResponse, UserPublic

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=PeerListResponse)
def list_peers(
    claims: CurrentClaimsDep,
    db: SessionDep,
    registry: RegistryDep,
) -> PeerListResponse:
    """List every other user, ordered by username, with live presence."""
    users = db.scalars(
        select(User).where(User.id != claims.user_id).order_by(User.username)
    ).all()
    return PeerListResponse(
        users=[
            PeerResponse(
                id=user.id,
                username=user.username,
                email=user.email,
                last_seen=user.last_seen,
                online=registry.is_online(user.id),
            )
            for user in users
        ]
    )


@router.get("/me", response_model=UserPublic)
def get_me(claims: CurrentClaimsDep, db: SessionDep) -> UserPublic:
    """Return the caller's own profile."""
    user = db.get(User, claims.user_id)
    if user is None:
        raise NotFoundError("User not found").to_http()
    return UserPublic.model_validate(user)
