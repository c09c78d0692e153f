"""
BizzyLink Backend: Database Session Management
================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
How:   Creates an async engine with connection pooling and provides a session
       dependency that commits on success and rolls back on error.
Who:   Used by route handlers via FastAPI's dependency injection system.
When:  Engine is created at module import; sessions are created per-request.

Connection Pooling:
    pool_size=20, max_overflow=10 → at most 30 connections per process
    pool_pre_ping                 → stale connections are replaced before use
    pool_recycle=3600             → connections are recycled every hour
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import case, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm.attributes import set_committed_value

from bizzylink.config import settings
from bizzylink.exceptions import DatabaseError

logger = logging.getLogger(__name__)


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=settings.db_pool_pre_ping,
    pool_recycle=3600,
    echo=settings.log_level == "DEBUG",
)

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: attributes stay readable after commit without
# another round-trip (lazy loads are not allowed in async sessions)
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


# ── Column Helpers ────────────────────────────────────────────────────────
def utcnow() -> datetime:
    """Timezone-aware current time; used as the Python-side column default."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    PostgreSQL returns aware values for TIMESTAMP WITH TIME ZONE; SQLite hands
    back naive ones. Comparisons in Python go through this helper.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def new_id() -> uuid.UUID:
    return uuid.uuid4()


# ── Atomic Counters ───────────────────────────────────────────────────────
async def apply_deltas(
    db: AsyncSession,
    row: Any,
    deltas: Dict[str, int],
    floor: Optional[int] = 0,
) -> Dict[str, int]:
    """
    Add `deltas` to integer columns of one row with a single UPDATE.

    What:  `UPDATE t SET c = c + :delta ... WHERE id = :id RETURNING c`.
    Why:   Reading a counter into Python and writing it back loses updates
           when two requests race; the database does the arithmetic here.
    How:   Results are clamped at `floor` (None for signed totals such as
           reputation). The returned values are stored on `row` as its
           committed state, so the ORM never writes the stale value back.

    Example:
        await apply_deltas(db, category, {"thread_count": 1, "post_count": 1})

    Returns:
        Mapping of column name to its new value
    """
    deltas = {name: delta for name, delta in deltas.items() if delta}
    if not deltas:
        return {}

    model = type(row)
    values = {}
    for name, delta in deltas.items():
        column = getattr(model, name)
        if floor is None:
            values[name] = column + delta
        else:
            values[name] = case((column + delta < floor, floor), else_=column + delta)

    result = await db.execute(
        update(model)
        .where(model.id == row.id)
        .values(values)
        .returning(*(getattr(model, name) for name in deltas))
        .execution_options(synchronize_session=False)
    )
    new_values = dict(zip(deltas, result.one()))
    for name, value in new_values.items():
        set_committed_value(row, name, value)
    return new_values


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back and re-raises for the global error handler;
           SQLAlchemy errors are logged and re-raised as DatabaseError
        5. Always: closes the session (returns connection to pool)

    Services only ever flush; this dependency owns the commit.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("Database error, transaction rolled back: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="A database error occurred. Please try again.",
                context={"original_error": type(e).__name__},
            ) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Closes all pooled connections; called from the lifespan shutdown."""
    await engine.dispose()
