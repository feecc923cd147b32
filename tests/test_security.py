"""Tests for password hashing and bearer tokens."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException

from app.pdf_processor.config import get_settings
from app.pdf_processor.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("secret1")
        assert hashed != "secret1"
        assert verify_password("secret1", hashed)
        assert not verify_password("secret2", hashed)

    def test_malformed_hash_does_not_verify(self):
        assert not verify_password("secret1", "not-a-bcrypt-hash")


class TestAccessTokens:
    """Tests for token issuing and validation."""

    def test_claims_round_trip(self):
        token = create_access_token("user-1", "jane@example.com", ["Admin", "User"])
        payload = decode_access_token(token)

        settings = get_settings()
        assert payload["sub"] == "user-1"
        assert payload["email"] == "jane@example.com"
        assert payload["roles"] == ["Admin", "User"]
        assert payload["iss"] == settings.jwt_issuer
        assert payload["aud"] == settings.jwt_audience

    def test_expiry_follows_settings(self):
        now = datetime.now(timezone.utc).replace(microsecond=0)
        token = create_access_token("user-1", "jane@example.com", [], now=now)
        payload = decode_access_token(token)

        expected = now + timedelta(minutes=get_settings().jwt_expiry_minutes)
        assert payload["exp"] == int(expected.timestamp())

    def test_expired_token_rejected(self):
        issued = datetime.now(timezone.utc) - timedelta(days=1)
        token = create_access_token("user-1", "jane@example.com", [], now=issued)

        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(token)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token expired"

    def test_wrong_key_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {
                "sub": "user-1",
                "iss": settings.jwt_issuer,
                "aud": settings.jwt_audience,
                "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
            },
            "a-different-signing-key-of-sufficient-length",
            algorithm="HS256",
        )
        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(token)
        assert exc_info.value.detail == "Invalid token"

    def test_wrong_audience_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {
                "sub": "user-1",
                "iss": settings.jwt_issuer,
                "aud": "someone-else",
                "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
            },
            settings.jwt_key,
            algorithm="HS256",
        )
        with pytest.raises(HTTPException):
            decode_access_token(token)
