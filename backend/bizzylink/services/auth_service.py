"""
BizzyLink Backend: Authentication Service
===========================================

What:  Registration, login with per-account lockout, and token refresh.
Who:   Called by the /api/auth routes.

Lockout:
    Each wrong password increments `failed_login_count`. Reaching
    `login_max_attempts` sets `lock_until` to now + `login_lock_minutes` and
    resets the counter. While locked, login answers 429 with the seconds left.
    The counter update is committed before the 401 is raised, otherwise the
    request-scoped rollback would discard it.
"""

import logging
import math
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.config import settings
from bizzylink.database import apply_deltas, as_utc, utcnow
from bizzylink.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitExceededError,
)
from bizzylink.models.user import User
from bizzylink.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, TokenPair
from bizzylink.schemas.user import UserPrivate
from bizzylink.security import (
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    token_user_id,
    verify_password,
)
from bizzylink.services.user_service import user_service

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"


def issue_tokens(user: User) -> TokenPair:
    return TokenPair(
        token=create_access_token(user.id),
        refresh_token=create_refresh_token(user.id),
    )


def check_account_status(user: User) -> None:
    if user.account_status == "banned":
        raise PermissionDeniedError("This account has been banned")
    if user.account_status == "suspended":
        raise PermissionDeniedError("This account is suspended")


class AuthService:

    async def register(
        self, db: AsyncSession, data: RegisterRequest, client_ip: Optional[str] = None
    ) -> AuthResponse:
        if await user_service.find_by_username(db, data.username) is not None:
            raise ConflictError("Username is already taken", context={"field": "username"})

        email = str(data.email).lower() if data.email else None
        if email and await user_service.find_by_email(db, email) is not None:
            raise ConflictError("Email is already registered", context={"field": "email"})

        now = utcnow()
        user = User(
            username=data.username,
            email=email,
            password_hash=hash_password(data.password),
            registration_ip=client_ip,
            last_login=now,
            last_login_ip=client_ip,
            last_active=now,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent registration
            raise ConflictError("Username or email is already registered") from e

        logger.info("Registered user %s (%s)", user.username, user.id)
        tokens = issue_tokens(user)
        return AuthResponse(
            token=tokens.token,
            refresh_token=tokens.refresh_token,
            user=UserPrivate.from_user(user),
        )

    async def login(
        self, db: AsyncSession, data: LoginRequest, client_ip: Optional[str] = None
    ) -> AuthResponse:
        user = await user_service.find_by_username(db, data.username)
        if user is None:
            raise AuthenticationError(INVALID_CREDENTIALS)

        now = utcnow()
        lock_until = as_utc(user.lock_until)
        if lock_until is not None and lock_until > now:
            remaining = math.ceil((lock_until - now).total_seconds())
            raise RateLimitExceededError(
                retry_after=remaining,
                message=f"Account temporarily locked. Try again in {remaining} seconds.",
            )

        if not verify_password(data.password, user.password_hash):
            await self._record_failure(db, user)
            raise AuthenticationError(INVALID_CREDENTIALS)

        check_account_status(user)

        user.failed_login_count = 0
        user.lock_until = None
        user.last_login = now
        user.last_login_ip = client_ip
        user.last_active = now
        await db.flush()

        logger.info("User %s logged in", user.id)
        tokens = issue_tokens(user)
        return AuthResponse(
            token=tokens.token,
            refresh_token=tokens.refresh_token,
            user=UserPrivate.from_user(user),
        )

    async def _record_failure(self, db: AsyncSession, user: User) -> None:
        counts = await apply_deltas(db, user, {"failed_login_count": 1})
        if counts["failed_login_count"] >= settings.login_max_attempts:
            user.lock_until = utcnow() + timedelta(minutes=settings.login_lock_minutes)
            user.failed_login_count = 0
            logger.warning(
                "Locked account %s for %d minutes after repeated failed logins",
                user.id,
                settings.login_lock_minutes,
            )
        await db.commit()

    async def refresh(self, db: AsyncSession, refresh_token: str) -> TokenPair:
        payload = decode_token(refresh_token, expected_type=REFRESH_TOKEN)
        try:
            user = await user_service.get_user(db, token_user_id(payload))
        except NotFoundError:
            raise AuthenticationError("Invalid refresh token")
        if user.account_status == "banned":
            raise PermissionDeniedError("This account has been banned")
        return issue_tokens(user)


auth_service = AuthService()
