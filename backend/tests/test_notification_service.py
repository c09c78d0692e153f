"""
BizzyLink Backend: Notification Service Tests
===============================================
"""

import pytest

from bizzylink.exceptions import NotFoundError, PermissionDeniedError
from bizzylink.services.notification_service import notification_service


class TestNotifications:

    @pytest.mark.asyncio
    async def test_opt_out_skips_write(self, db_session, make_user):
        user = await make_user("Alex", notification_settings={"new_followers": False})
        skipped = await notification_service.notify(
            db_session, user, type="new_follower", message="x", setting="new_followers"
        )
        assert skipped is None

        # System notifications ignore opt-outs
        written = await notification_service.notify(db_session, user, type="system", message="hi")
        assert written is not None

    @pytest.mark.asyncio
    async def test_mark_read_and_all(self, db_session, make_user):
        user = await make_user("Alex")
        first = await notification_service.notify(db_session, user, type="system", message="one")
        await notification_service.notify(db_session, user, type="system", message="two")
        await notification_service.notify(db_session, user, type="system", message="three")
        await db_session.flush()

        await notification_service.mark_read(db_session, user.id, first.id)
        assert (await notification_service.list_for_user(db_session, user.id)).unread_count == 2

        marked = await notification_service.mark_all_read(db_session, user.id)
        assert marked == 2
        assert (await notification_service.list_for_user(db_session, user.id)).unread_count == 0

    @pytest.mark.asyncio
    async def test_cannot_touch_someone_elses(self, db_session, make_user):
        owner = await make_user("Alex")
        other = await make_user("Sam")
        notification = await notification_service.notify(db_session, owner, type="system", message="x")
        await db_session.flush()

        with pytest.raises(PermissionDeniedError):
            await notification_service.mark_read(db_session, other.id, notification.id)
        with pytest.raises(PermissionDeniedError):
            await notification_service.delete(db_session, other.id, notification.id)

    @pytest.mark.asyncio
    async def test_delete(self, db_session, make_user):
        owner = await make_user("Alex")
        notification = await notification_service.notify(db_session, owner, type="system", message="x")
        await db_session.flush()

        await notification_service.delete(db_session, owner.id, notification.id)
        with pytest.raises(NotFoundError):
            await notification_service.mark_read(db_session, owner.id, notification.id)
