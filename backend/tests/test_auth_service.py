"""
BizzyLink Backend: Auth Service Tests
=======================================

What we test:
    ✅ Registration hashes the password and rejects duplicate names/emails
    ✅ Login succeeds, records the IP and resets the failure counter
    ✅ Repeated wrong passwords lock the account (429 with seconds left)
    ✅ Banned and suspended accounts cannot log in
    ✅ Refresh tokens mint a new pair; access tokens cannot be used to refresh
"""

from datetime import timedelta

import pytest

from bizzylink.config import settings
from bizzylink.database import as_utc, utcnow
from bizzylink.exceptions import (
    AuthenticationError,
    ConflictError,
    PermissionDeniedError,
    RateLimitExceededError,
)
from bizzylink.schemas.auth import LoginRequest, RegisterRequest
from bizzylink.security import create_access_token, decode_token, verify_password
from bizzylink.services.auth_service import auth_service
from bizzylink.services.user_service import user_service

from conftest import DEFAULT_PASSWORD


class TestRegister:

    @pytest.mark.asyncio
    async def test_register_creates_user(self, db_session):
        result = await auth_service.register(
            db_session,
            RegisterRequest(username="Steve", password="secret1", email="Steve@Example.com"),
            client_ip="10.0.0.1",
        )

        assert result.user.username == "Steve"
        assert result.user.email == "steve@example.com"
        assert result.user.minecraft_linked is False
        assert decode_token(result.token)["sub"] == str(result.user.id)

        user = await _load_user(db_session, "steve")
        assert verify_password("secret1", user.password_hash)
        assert user.registration_ip == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_duplicate_username_is_case_insensitive(self, db_session, make_user):
        await make_user("Alex")
        with pytest.raises(ConflictError):
            await auth_service.register(
                db_session, RegisterRequest(username="alex", password="secret1")
            )

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, db_session, make_user):
        await make_user("Alex", email="alex@example.com")
        with pytest.raises(ConflictError):
            await auth_service.register(
                db_session,
                RegisterRequest(username="Other", password="secret1", email="ALEX@example.com"),
            )


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_success(self, db_session, make_user):
        user = await make_user("Alex", failed_login_count=2)

        result = await auth_service.login(
            db_session,
            LoginRequest(username="alex", password=DEFAULT_PASSWORD),
            client_ip="10.0.0.2",
        )

        assert result.user.id == user.id
        assert user.failed_login_count == 0
        assert user.last_login_ip == "10.0.0.2"

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(AuthenticationError):
            await auth_service.login(db_session, LoginRequest(username="ghost", password="x"))

    @pytest.mark.asyncio
    async def test_wrong_password_counts_failure(self, db_session, make_user):
        user = await make_user("Alex")
        with pytest.raises(AuthenticationError):
            await auth_service.login(db_session, LoginRequest(username="Alex", password="wrong"))
        assert user.failed_login_count == 1
        assert user.lock_until is None

    @pytest.mark.asyncio
    async def test_lockout_after_max_attempts(self, db_session, make_user):
        user = await make_user("Alex")
        for _ in range(settings.login_max_attempts):
            with pytest.raises(AuthenticationError):
                await auth_service.login(db_session, LoginRequest(username="Alex", password="wrong"))

        assert user.lock_until is not None
        assert user.failed_login_count == 0

        # Even the right password is refused while locked
        with pytest.raises(RateLimitExceededError) as exc_info:
            await auth_service.login(
                db_session, LoginRequest(username="Alex", password=DEFAULT_PASSWORD)
            )
        assert 0 < exc_info.value.retry_after <= settings.login_lock_minutes * 60

    @pytest.mark.asyncio
    async def test_expired_lock_allows_login(self, db_session, make_user):
        await make_user("Alex", lock_until=utcnow() - timedelta(minutes=1))
        result = await auth_service.login(
            db_session, LoginRequest(username="Alex", password=DEFAULT_PASSWORD)
        )
        assert result.user.username == "Alex"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["banned", "suspended"])
    async def test_blocked_accounts_cannot_login(self, db_session, make_user, status):
        await make_user("Alex", account_status=status)
        with pytest.raises(PermissionDeniedError):
            await auth_service.login(
                db_session, LoginRequest(username="Alex", password=DEFAULT_PASSWORD)
            )


class TestRefresh:

    @pytest.mark.asyncio
    async def test_refresh_issues_new_pair(self, db_session, make_user):
        await make_user("Alex")
        login = await auth_service.login(
            db_session, LoginRequest(username="Alex", password=DEFAULT_PASSWORD)
        )

        tokens = await auth_service.refresh(db_session, login.refresh_token)
        assert decode_token(tokens.token)["sub"] == str(login.user.id)

    @pytest.mark.asyncio
    async def test_access_token_cannot_refresh(self, db_session, make_user):
        user = await make_user("Alex")
        with pytest.raises(AuthenticationError):
            await auth_service.refresh(db_session, create_access_token(user.id))

    @pytest.mark.asyncio
    async def test_banned_user_cannot_refresh(self, db_session, make_user):
        await make_user("Alex")
        login = await auth_service.login(
            db_session, LoginRequest(username="Alex", password=DEFAULT_PASSWORD)
        )
        user = await _load_user(db_session, "Alex")
        user.account_status = "banned"
        await db_session.flush()

        with pytest.raises(PermissionDeniedError):
            await auth_service.refresh(db_session, login.refresh_token)


async def _load_user(db_session, username):
    user = await user_service.find_by_username(db_session, username)
    assert user is not None
    return user


def test_as_utc_marks_naive_values():
    naive = utcnow().replace(tzinfo=None)
    assert as_utc(naive).tzinfo is not None
