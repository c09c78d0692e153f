"""
BizzyLink Backend: Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Every test gets a fresh in-memory SQLite database (aiosqlite) with all
       tables created from the ORM metadata, so services run real queries.
       Route tests talk to the FastAPI app through httpx's ASGITransport with
       the session dependency pointed at that same database.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── engine:        in-memory SQLite engine with every table created
    ├── session_factory
    ├── db_session:    session used directly by service tests
    ├── mock_db_session: AsyncMock session for failure paths
    ├── make_user:     factory that inserts a user with a known password
    └── test_client:   HTTPX AsyncClient wired to the app
"""

import os
from unittest.mock import AsyncMock, MagicMock

# Settings are read at import time, so the environment is prepared before
# anything from bizzylink is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["JWT_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["SERVER_API_KEY"] = "test-server-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"
os.environ["MINECRAFT_WEBHOOK_URL"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Any, Dict  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import bizzylink.models  # noqa: E402,F401
from bizzylink.database import Base, get_db_session  # noqa: E402
from bizzylink.models.user import User  # noqa: E402
from bizzylink.security import create_access_token, hash_password  # noqa: E402

SERVER_KEY = "test-server-key"
DEFAULT_PASSWORD = "password123"


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    """
    In-memory SQLite shared by every session of one test.

    StaticPool keeps a single connection alive; without it each new
    connection would see an empty database.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """
    AsyncMock standing in for an AsyncSession when a test needs the database
    to fail.

    Usage:
        mock_db_session.commit.side_effect = OperationalError(...)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def make_user(db_session):
    """
    Factory fixture: `await make_user("alice", role="admin")`.

    The password is always DEFAULT_PASSWORD. The user is committed so route
    tests (which use their own sessions) can see it.
    """
    async def _make_user(username: str = "alice", **fields: Any) -> User:
        values: Dict[str, Any] = {
            "email": f"{username.lower()}@example.com",
            "password_hash": hash_password(DEFAULT_PASSWORD),
        }
        values.update(fields)
        user = User(username=username, **values)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    HTTPX AsyncClient routed straight into the ASGI app.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from bizzylink.main import app

    async def _override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
