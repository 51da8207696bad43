# src/tandem_chat/api/v1/endpoints/auth.py
"""Authentication endpoints for the Tandem Chat API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tandem_chat.api.v1.dependencies import AuthGatewayDep, SessionDep
from tandem_chat.core.errors import ConflictError, PersistenceError
from tandem_chat.db.time import utcnow
from tandem_chat.models import User
from tandem_chat.schemas.user import AuthResponse, LoginRequest, RegisterRequest, UserPublic

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

INVALID_CREDENTIALS = "Invalid credentials"


@router.post(
    "/register",
    summary="Create an account",
    status_code=status.HTTP_201_CREATED,
    response_model=AuthResponse,
)
def register_user(
    payload: RegisterRequest,
    db: SessionDep,
    gateway: AuthGatewayDep,
) -> AuthResponse:
    """Register a user and return a bearer token for the new account."""
    now = utcnow()
    user = User(
        username=payload.username,
        email=payload.email,
        password_hash=gateway.hash_credential(payload.password),
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(user)
        db.commit()
    except IntegrityError as err:
        db.rollback()
        raise ConflictError("Username already taken").to_http() from err
    except SQLAlchemyError as err:
        db.rollback()
        logger.error("Registration failed for %s: %s", payload.username, err)
        raise PersistenceError().to_http() from err
    db.refresh(user)

    logger.info("Registered user %s (%s)", user.username, user.id)
    token = gateway.issue_token(user.id, user.username)
    return AuthResponse(token=token, user=UserPublic.model_validate(user))


@router.post(
    "/login",
    summary="Authenticate with username and password",
    status_code=status.HTTP_200_OK,
    response_model=AuthResponse,
)
def login_user(
    payload: LoginRequest,
    db: SessionDep,
    gateway: AuthGatewayDep,
) -> AuthResponse:
    """Check credentials, stamp ``last_seen`` and return a fresh token."""
    user = db.scalars(select(User).where(User.username == payload.username)).first()
    if user is None or not gateway.check_credential(payload.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS,
        )

    user.last_seen = utcnow()
    try:
        db.commit()
    except SQLAlchemyError as err:
        db.rollback()
        logger.error("Could not update last_seen for %s: %s", user.id, err)
        raise PersistenceError().to_http() from err
    db.refresh(user)

    token = gateway.issue_token(user.id, user.username)
    return AuthResponse(token=token, user=UserPublic.model_validate(user))

