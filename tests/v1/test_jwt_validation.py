# tests/v1/test_jwt_validation.py
"""Tests for bearer token validation on protected endpoints."""

import time

from fastapi import status
from jose import jwt

from tandem_chat.core.settings import settings

PROTECTED = "/api/v1/users/me"


def _claims(user_id: str, username: str, *, iat: int, exp: int) -> dict:
    return {"sub": user_id, "username": username, "iat": iat, "exp": exp}


class TestJWTValidationEdgeCases:
    """Every token problem yields the same 401 and no side effect."""

    def test_jwt_without_bearer_prefix(self, client):
        response = client.get(PROTECTED, headers={"Authorization": "InvalidToken123"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_jwt_with_empty_token(self, client):
        response = client.get(PROTECTED, headers={"Authorization": "Bearer "})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_jwt_with_malformed_token(self, client):
        response = client.get(PROTECTED, headers={"Authorization": "Bearer not.a.valid.jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Could not validate credentials"

    def test_jwt_with_wrong_secret(self, client, alice):
        now = int(time.time())
        token = jwt.encode(
            _claims(alice.id, alice.username, iat=now, exp=now + 3600),
            "wrong_secret_key",
            algorithm=settings.jwt_algorithm,
        )
        response = client.get(PROTECTED, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Could not validate credentials"

    def test_jwt_with_wrong_algorithm(self, client, alice):
        now = int(time.time())
        token = jwt.encode(
            _claims(alice.id, alice.username, iat=now, exp=now + 3600),
            settings.secret_key,
            algorithm="HS512",
        )
        response = client.get(PROTECTED, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_jwt_with_expired_token(self, client, alice):
        token = jwt.encode(
            _claims(alice.id, alice.username, iat=1234567890, exp=1234567890 + 3600),
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        response = client.get(PROTECTED, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Could not validate credentials"

    def test_jwt_with_missing_username(self, client, alice):
        now = int(time.time())
        token = jwt.encode(
            {"sub": alice.id, "iat": now, "exp": now + 3600},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        response = client.get(PROTECTED, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_valid_token_is_accepted(self, client, alice, alice_headers):
        response = client.get(PROTECTED, headers=alice_headers)
        assert response.status_code == status.HTTP_200_OK
