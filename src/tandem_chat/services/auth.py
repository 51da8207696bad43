"""Bearer token issuing/verification and credential checks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from tandem_chat.core import security
from tandem_chat.core.errors import (
    TokenExpiredError,
    TokenMalformedError,
    TokenSignatureError,
)
from tandem_chat.core.settings import settings


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a verified bearer token."""

    user_id: str
    username: str
    issued_at: datetime
    expires_at: datetime


class AuthGateway:
    """Issues and verifies signed bearer tokens.

    Tokens are HMAC-signed JWTs carrying ``sub`` (user id), ``username``,
    ``iat`` and ``exp``. Verification needs only the secret, never storage,
    and there is no revocation list.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        algorithm: str | None = None,
        lifetime: timedelta | None = None,
    ) -> None:
        self._secret_key = secret_key or settings.secret_key
        self._algorithm = algorithm or settings.jwt_algorithm
        self.lifetime = lifetime or timedelta(seconds=settings.access_token_lifetime_seconds)

    def issue_token(
        self,
        user_id: str,
        username: str,
        *,
        issued_at: datetime | None = None,
    ) -> str:
        """Create a signed token expiring ``lifetime`` after ``issued_at``."""
        issued = issued_at or datetime.now(UTC)
        to_encode: dict[str, Any] = {
            "sub": user_id,
            "username": username,
            "iat": issued,
            "exp": issued + self.lifetime,
        }
        encoded_jwt: str = jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)
        return encoded_jwt

    def verify_token(self, token: str | None) -> TokenClaims:
        """Decode and validate a token.

        Raises:
            TokenMalformedError: The token is missing, undecodable or lacks claims.
            TokenSignatureError: The signature or algorithm does not match.
            TokenExpiredError: The token is past ``exp``.
        """
        if not token:
            raise TokenMalformedError()
        try:
            jwt.get_unverified_claims(token)
        except JWTError as err:
            raise TokenMalformedError() from err

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except ExpiredSignatureError as err:
            raise TokenExpiredError() from err
        except JWTClaimsError as err:
            raise TokenMalformedError() from err
        except JWTError as err:
            raise TokenSignatureError() from err

        subject = payload.get("sub")
        username = payload.get("username")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")
        if not isinstance(subject, str) or not isinstance(username, str):
            raise TokenMalformedError()
        if not isinstance(issued_at, int) or not isinstance(expires_at, int):
            raise TokenMalformedError()

        return TokenClaims(
            user_id=subject,
            username=username,
            issued_at=datetime.fromtimestamp(issued_at, UTC),
            expires_at=datetime.fromtimestamp(expires_at, UTC),
        )

    @staticmethod
    def check_credential(plain: str, stored_hash: str) -> bool:
        """Compare a plaintext password against its stored bcrypt hash."""
        return security.check_credential(plain, stored_hash)

    @staticmethod
    def hash_credential(plain: str) -> str:
        """Hash a plaintext password for storage."""
        return security.hash_credential(plain)


def get_auth_gateway() -> AuthGateway:
    """Return an auth gateway bound to the current settings."""
    return AuthGateway()
