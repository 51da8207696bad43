"""User-related Pydantic schemas."""

import re
from datetime import datetime

from pydantic import Field, field_validator

from tandem_chat.core.security import BCRYPT_MAX_BYTES

from .common import CamelModel

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class RegisterRequest(CamelModel):
    """Schema for account registration."""

    username: str = Field(..., min_length=1, max_length=64, description="Unique login name")
    email: str = Field(..., min_length=3, max_length=320, description="Contact email address")
    password: str = Field(..., min_length=1, description="Plaintext password (hashed server-side)")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Usernames are restricted to a URL-safe character set."""
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username may only contain letters, digits, '.', '_' and '-'")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Email address is not valid")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValueError("Password must not exceed 72 bytes")
        return v


class LoginRequest(CamelModel):
    """Schema for login submissions."""

    username: str = Field(..., min_length=1, description="Login name")
    password: str = Field(..., min_length=1, description="Plaintext password")


class UserPublic(CamelModel):
    """Public view of a user; never includes the credential hash."""

    id: str
    username: str
    email: str
    created_at: datetime | None = None
    last_seen: datetime | None = None


class AuthResponse(CamelModel):
    """Response returned after registration or login."""

    token: str = Field(..., description="JWT bearer token")
    user: UserPublic


class PeerResponse(CamelModel):
    """Another user as listed to the caller, with live presence."""

    id: str
    username: str
    email: str
    last_seen: datetime | None = None
    online: bool = False


class PeerListResponse(CamelModel):
    """Envelope for the peer listing."""

    users: list[PeerResponse]
