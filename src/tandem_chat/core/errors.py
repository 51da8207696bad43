"""Domain exceptions shared by services, the relay and the HTTP layer."""

from __future__ import annotations

from fastapi import HTTPException, status


class ChatError(RuntimeError):
    """Base exception for failures raised by the chat services.

    Every subclass carries the HTTP status code it maps to, so request
    handlers can translate it without knowing the concrete type.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_http(self) -> HTTPException:
        """Return the matching ``HTTPException`` for request-style operations."""
        return HTTPException(status_code=self.status_code, detail=self.detail)


class ValidationError(ChatError):
    """A required field is missing or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class AuthError(ChatError):
    """Token or credential rejected.

    The detail is deliberately identical for every cause.
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Could not validate credentials"

    def to_http(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail=self.detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class TokenMalformedError(AuthError):
    """Token could not be decoded or lacks required claims."""


class TokenSignatureError(AuthError):
    """Token signature does not match the server secret."""


class TokenExpiredError(AuthError):
    """Token is past its expiry time."""


class NotFoundError(ChatError):
    """Unknown resource."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ConflictError(ChatError):
    """Uniqueness constraint violated (e.g. username already taken)."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists"


class PersistenceError(ChatError):
    """Storage collaborator failed or timed out."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Storage temporarily unavailable"
