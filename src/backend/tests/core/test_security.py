"""
Tests for password hashing and access tokens.
"""

from datetime import timedelta

import pytest
from jose import jwt

from core.config import settings
from core.security import (
    TOKEN_AUDIENCE,
    TOKEN_ISSUER,
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)


@pytest.mark.unit
class TestPasswordHashing:
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("correct horse")

        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong horse", hashed)

    def test_hashes_are_salted(self) -> None:
        assert hash_password("same") != hash_password("same")

    def test_malformed_hash_does_not_verify(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash") is False


@pytest.mark.unit
class TestAccessTokens:
    def test_claims(self) -> None:
        token = create_access_token("user-1", "ADMIN")
        payload = decode_token(token)

        assert payload is not None
        assert payload["sub"] == "user-1"
        assert payload["role"] == "ADMIN"
        assert payload["type"] == "access"
        assert payload["iss"] == TOKEN_ISSUER
        assert payload["aud"] == TOKEN_AUDIENCE
        assert payload["jti"]

    def test_each_token_is_unique(self) -> None:
        assert create_access_token("user-1", "USER") != create_access_token("user-1", "USER")

    def test_expired_token(self) -> None:
        token = create_access_token("user-1", "USER", expires_delta=timedelta(seconds=-1))
        assert decode_token(token) is None

    def test_wrong_signature(self) -> None:
        token = jwt.encode(
            {"sub": "user-1", "type": "access", "iss": TOKEN_ISSUER, "aud": TOKEN_AUDIENCE},
            "some-other-key",
            algorithm=settings.JWT_ALGORITHM,
        )
        assert decode_token(token) is None

    def test_wrong_type(self) -> None:
        token = create_access_token("user-1", "USER")
        assert decode_token(token, expected_type="refresh") is None
