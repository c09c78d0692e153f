"""
BizzyLink Backend: Session Dependency Tests
=============================================

What we test:
    ✅ Commit on success
    ✅ SQLAlchemy failures roll back and surface as DatabaseError
    ✅ Application errors roll back and pass through untouched
"""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from bizzylink.database import get_db_session
from bizzylink.exceptions import DatabaseError, NotFoundError


def _factory_for(session):
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    factory.return_value.__aexit__.return_value = False
    return factory


class TestGetDbSession:

    @pytest.mark.asyncio
    async def test_commits_on_success(self, mock_db_session):
        with patch("bizzylink.database.async_session_factory", _factory_for(mock_db_session)):
            gen = get_db_session()
            assert await gen.__anext__() is mock_db_session
            with pytest.raises(StopAsyncIteration):
                await gen.__anext__()

        mock_db_session.commit.assert_awaited_once()
        mock_db_session.rollback.assert_not_awaited()
        mock_db_session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_commit_failure_becomes_database_error(self, mock_db_session):
        mock_db_session.commit.side_effect = OperationalError("COMMIT", {}, Exception("disk I/O error"))

        with patch("bizzylink.database.async_session_factory", _factory_for(mock_db_session)):
            gen = get_db_session()
            await gen.__anext__()
            with pytest.raises(DatabaseError) as exc_info:
                await gen.__anext__()

        assert exc_info.value.context == {"original_error": "OperationalError"}
        assert "disk" not in exc_info.value.message
        mock_db_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_application_error_passes_through(self, mock_db_session):
        with patch("bizzylink.database.async_session_factory", _factory_for(mock_db_session)):
            gen = get_db_session()
            await gen.__anext__()
            with pytest.raises(NotFoundError):
                await gen.athrow(NotFoundError(resource="user"))

        mock_db_session.commit.assert_not_awaited()
        mock_db_session.rollback.assert_awaited_once()

