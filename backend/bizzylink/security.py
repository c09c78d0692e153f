"""
BizzyLink Backend: Password Hashing and Tokens
================================================

What:  bcrypt password hashing and the standard bearer-JWT pattern.
How:   Access and refresh tokens are signed with separate secrets and carry
       `sub` (user id), `type`, `iat` and `exp`. Nothing is stored server
       side; logout simply drops the cookie.
"""

import logging
import uuid
from datetime import timedelta
from typing import Any, Dict

import bcrypt
import jwt

from bizzylink.config import settings
from bizzylink.database import utcnow
from bizzylink.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long input
        logger.warning("Password verification failed on malformed input")
        return False


def _secret_for(token_type: str) -> str:
    return settings.jwt_refresh_secret if token_type == REFRESH_TOKEN else settings.jwt_secret


def _create_token(user_id: Any, token_type: str, lifetime: timedelta) -> str:
    now = utcnow()
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, _secret_for(token_type), algorithm=settings.jwt_algorithm)


def create_access_token(user_id: Any) -> str:
    return _create_token(
        user_id, ACCESS_TOKEN, timedelta(minutes=settings.access_token_expire_minutes)
    )


def create_refresh_token(user_id: Any) -> str:
    return _create_token(
        user_id, REFRESH_TOKEN, timedelta(days=settings.refresh_token_expire_days)
    )


def decode_token(token: str, expected_type: str = ACCESS_TOKEN) -> Dict[str, Any]:
    """
    Verify signature, expiry and token type.

    Raises:
        AuthenticationError: expired, tampered, or the wrong kind of token
    """
    try:
        payload = jwt.decode(
            token,
            _secret_for(expected_type),
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp", "type"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Authentication invalid")

    if payload.get("type") != expected_type:
        raise AuthenticationError("Authentication invalid")
    return payload


def token_user_id(payload: Dict[str, Any]) -> uuid.UUID:
    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise AuthenticationError("Authentication invalid")
