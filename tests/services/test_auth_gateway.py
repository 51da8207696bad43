# tests/services/test_auth_gateway.py
"""Tests for token issuing/verification and credential checks."""

from datetime import UTC, datetime, timedelta

import pytest
from jose import jwt

from tandem_chat.core.errors import (
    AuthError,
    TokenExpiredError,
    TokenMalformedError,
    TokenSignatureError,
)
from tandem_chat.core.security import check_credential, hash_credential
from tandem_chat.services.auth import AuthGateway


def test_issue_and_verify_round_trip(gateway: AuthGateway) -> None:
    token = gateway.issue_token("user-1", "alice")
    claims = gateway.verify_token(token)

    assert claims.user_id == "user-1"
    assert claims.username == "alice"
    assert claims.expires_at - claims.issued_at == timedelta(days=7)


def test_token_valid_just_before_expiry(gateway: AuthGateway) -> None:
    issued = datetime.now(UTC) - timedelta(days=7) + timedelta(minutes=5)
    token = gateway.issue_token("user-1", "alice", issued_at=issued)
    assert gateway.verify_token(token).user_id == "user-1"


def test_token_expires_after_seven_days(gateway: AuthGateway) -> None:
    issued = datetime.now(UTC) - timedelta(days=7, minutes=1)
    token = gateway.issue_token("user-1", "alice", issued_at=issued)

    with pytest.raises(TokenExpiredError):
        gateway.verify_token(token)


@pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c"])
def test_malformed_tokens(gateway: AuthGateway, token) -> None:
    with pytest.raises(TokenMalformedError):
        gateway.verify_token(token)


def test_foreign_signature_rejected(gateway: AuthGateway) -> None:
    other = AuthGateway(secret_key="someone-else")
    token = other.issue_token("user-1", "alice")

    with pytest.raises(TokenSignatureError):
        gateway.verify_token(token)


def test_missing_claims_are_malformed(gateway: AuthGateway) -> None:
    from tandem_chat.core.settings import settings

    token = jwt.encode({"sub": "user-1"}, settings.secret_key, algorithm=settings.jwt_algorithm)
    with pytest.raises(TokenMalformedError):
        gateway.verify_token(token)


@pytest.mark.parametrize(
    "claims",
    [
        {"sub": 123, "username": "alice"},
        {"sub": "user-1", "username": "alice", "iat": "yesterday"},
    ],
)
def test_mistyped_claims_are_malformed(gateway: AuthGateway, claims) -> None:
    from tandem_chat.core.settings import settings

    payload = {**claims, "exp": datetime.now(UTC) + timedelta(hours=1)}
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)

    with pytest.raises(TokenMalformedError):
        gateway.verify_token(token)


def test_all_token_errors_share_one_message(gateway: AuthGateway) -> None:
    """Callers cannot tell which check failed."""
    details = {
        TokenMalformedError().detail,
        TokenSignatureError().detail,
        TokenExpiredError().detail,
    }
    assert details == {AuthError().detail}


def test_credential_check() -> None:
    stored = hash_credential("hunter2", rounds=4)

    assert AuthGateway.check_credential("hunter2", stored) is True
    assert AuthGateway.check_credential("hunter3", stored) is False


def test_credential_check_rejects_non_bcrypt_hash() -> None:
    assert check_credential("hunter2", "plaintext-not-a-hash") is False


def test_hash_rejects_overlong_password() -> None:
    with pytest.raises(ValueError):
        hash_credential("x" * 73, rounds=4)
