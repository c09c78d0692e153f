"""
BizzyLink Backend: Password and Token Tests
=============================================

What we test:
    ✅ bcrypt hashes verify and reject the wrong password
    ✅ Access and refresh tokens round-trip with their own secrets
    ✅ Token type confusion, tampering and expiry are rejected
"""

import uuid
from datetime import timedelta

import jwt
import pytest

from bizzylink.config import settings
from bizzylink.database import utcnow
from bizzylink.exceptions import AuthenticationError
from bizzylink.security import (
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    token_user_id,
    verify_password,
)


class TestPasswords:

    def test_hash_verifies(self):
        hashed = hash_password("correct horse")
        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed)

    def test_wrong_password_rejected(self):
        hashed = hash_password("correct horse")
        assert not verify_password("battery staple", hashed)

    def test_malformed_hash_is_false_not_error(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestTokens:

    def test_access_token_round_trip(self):
        user_id = uuid.uuid4()
        payload = decode_token(create_access_token(user_id))
        assert payload["type"] == "access"
        assert token_user_id(payload) == user_id

    def test_refresh_token_round_trip(self):
        user_id = uuid.uuid4()
        payload = decode_token(create_refresh_token(user_id), expected_type=REFRESH_TOKEN)
        assert token_user_id(payload) == user_id

    def test_refresh_token_is_not_an_access_token(self):
        with pytest.raises(AuthenticationError):
            decode_token(create_refresh_token(uuid.uuid4()))

    def test_access_token_is_not_a_refresh_token(self):
        with pytest.raises(AuthenticationError):
            decode_token(create_access_token(uuid.uuid4()), expected_type=REFRESH_TOKEN)

    def test_tampered_token_rejected(self):
        token = create_access_token(uuid.uuid4())
        with pytest.raises(AuthenticationError):
            decode_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB"))

    def test_expired_token_rejected(self):
        now = utcnow()
        token = jwt.encode(
            {
                "sub": str(uuid.uuid4()),
                "type": "access",
                "iat": now - timedelta(hours=2),
                "exp": now - timedelta(hours=1),
            },
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(AuthenticationError, match="expired"):
            decode_token(token)

    def test_non_uuid_subject_rejected(self):
        with pytest.raises(AuthenticationError):
            token_user_id({"sub": "not-a-uuid"})
