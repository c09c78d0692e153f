"""
BizzyLink Backend: User Service Tests
=======================================

What we test:
    ✅ Profile and settings updates (merge, not replace)
    ✅ Public profile visibility: public, friends-only, private, hidden fields
    ✅ Donations move coins, record a transaction and notify the recipient
    ✅ A sender holding a stale balance cannot spend the same coins twice
"""

import uuid

import pytest
from sqlalchemy import select

from bizzylink.exceptions import ConflictError, NotFoundError, ValidationError
from bizzylink.models.social import Friendship
from bizzylink.models.user import User
from bizzylink.schemas.user import NotificationSettingsUpdate, PrivacySettingsUpdate, ProfileUpdate
from bizzylink.services.notification_service import notification_service
from bizzylink.services.user_service import user_service


class TestProfile:

    @pytest.mark.asyncio
    async def test_update_profile(self, db_session, make_user):
        user = await make_user("Alex")
        await user_service.update_profile(
            db_session, user, ProfileUpdate(bio="Builder", email="NEW@example.com")
        )
        assert user.bio == "Builder"
        assert user.email == "new@example.com"

    @pytest.mark.asyncio
    async def test_email_taken_by_someone_else(self, db_session, make_user):
        await make_user("Sam", email="sam@example.com")
        user = await make_user("Alex")
        with pytest.raises(ConflictError):
            await user_service.update_profile(db_session, user, ProfileUpdate(email="sam@example.com"))

    @pytest.mark.asyncio
    async def test_privacy_settings_are_merged(self, db_session, make_user):
        user = await make_user("Alex")
        response = await user_service.update_privacy(
            db_session, user, PrivacySettingsUpdate(show_balance=True)
        )
        assert response.privacy_settings["show_balance"] is True
        assert response.privacy_settings["profile_visibility"] == "public"

    @pytest.mark.asyncio
    async def test_notification_settings_are_merged(self, db_session, make_user):
        user = await make_user("Alex")
        await user_service.update_notification_settings(
            db_session, user, NotificationSettingsUpdate(donations=False)
        )
        assert user.wants_notification("donations") is False
        assert user.wants_notification("reputation") is True

    @pytest.mark.asyncio
    async def test_signature_is_trimmed(self, db_session, make_user):
        user = await make_user("Alex")
        await user_service.update_signature(db_session, user, "  gg  ")
        assert user.signature == "gg"


class TestPublicProfile:

    @pytest.mark.asyncio
    async def test_public_profile_hides_balance_by_default(self, db_session, make_user):
        target = await make_user("Alex", balance=500, reputation=7)
        profile = await user_service.public_profile(db_session, None, target)
        assert profile.restricted is False
        assert profile.reputation == 7
        assert profile.balance is None

    @pytest.mark.asyncio
    async def test_owner_sees_everything(self, db_session, make_user):
        target = await make_user("Alex", balance=500)
        profile = await user_service.public_profile(db_session, target, target)
        assert profile.balance == 500

    @pytest.mark.asyncio
    async def test_private_profile_restricted(self, db_session, make_user):
        viewer = await make_user("Sam")
        target = await make_user(
            "Alex", privacy_settings={"profile_visibility": "private"}, bio="secret"
        )
        profile = await user_service.public_profile(db_session, viewer, target)
        assert profile.restricted is True
        assert profile.bio is None

    @pytest.mark.asyncio
    async def test_friends_only_profile(self, db_session, make_user):
        friend = await make_user("Friend")
        stranger = await make_user("Stranger")
        target = await make_user("Alex", privacy_settings={"profile_visibility": "friends"})
        db_session.add(Friendship(user_id=friend.id, friend_id=target.id))
        db_session.add(Friendship(user_id=target.id, friend_id=friend.id))
        await db_session.flush()

        assert await user_service.can_view_profile(db_session, friend, target)
        assert not await user_service.can_view_profile(db_session, stranger, target)
        assert not await user_service.can_view_profile(db_session, None, target)

    @pytest.mark.asyncio
    async def test_admin_sees_private_profile(self, db_session, make_user):
        admin = await make_user("Admin", role="admin")
        target = await make_user("Alex", privacy_settings={"profile_visibility": "private"})
        assert await user_service.can_view_profile(db_session, admin, target)

    @pytest.mark.asyncio
    async def test_stats_for_missing_user(self, db_session):
        with pytest.raises(NotFoundError):
            await user_service.get_stats(db_session, None, uuid.uuid4())


class TestDonations:

    @pytest.mark.asyncio
    async def test_donation_moves_coins(self, db_session, make_user):
        sender = await make_user("Alex", balance=100)
        recipient = await make_user("Sam", balance=5)

        response = await user_service.donate(db_session, sender, recipient.id, 40, "thanks!")

        assert response.balance == 60
        assert recipient.balance == 45

        sent = await user_service.get_balance(db_session, sender)
        assert sent.transactions[0].direction == "sent"
        assert sent.transactions[0].counterparty_username == "Sam"
        received = await user_service.get_balance(db_session, recipient)
        assert received.transactions[0].direction == "received"

        inbox = await notification_service.list_for_user(db_session, recipient.id)
        assert inbox.notifications[0].type == "donation"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5])
    async def test_non_positive_amount(self, db_session, make_user, amount):
        sender = await make_user("Alex", balance=100)
        recipient = await make_user("Sam")
        with pytest.raises(ValidationError):
            await user_service.donate(db_session, sender, recipient.id, amount)

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, db_session, make_user):
        sender = await make_user("Alex", balance=10)
        recipient = await make_user("Sam")
        with pytest.raises(ValidationError, match="Insufficient"):
            await user_service.donate(db_session, sender, recipient.id, 11)
        assert sender.balance == 10

    @pytest.mark.asyncio
    async def test_stale_balance_cannot_overspend(self, db_session, session_factory, make_user):
        sender = await make_user("Alex", balance=100)
        first = await make_user("Sam")
        second = await make_user("Max")

        async with session_factory() as other:
            stale_sender = await other.get(User, sender.id)
            assert stale_sender.balance == 100

            await user_service.donate(db_session, sender, first.id, 100)
            await db_session.commit()

            with pytest.raises(ValidationError, match="Insufficient"):
                await user_service.donate(other, stale_sender, second.id, 100)
            await other.rollback()

        result = await db_session.execute(select(User.username, User.balance))
        balances = dict(result.all())
        assert balances == {"Alex": 0, "Sam": 100, "Max": 0}

    @pytest.mark.asyncio
    async def test_cannot_donate_to_self(self, db_session, make_user):
        sender = await make_user("Alex", balance=10)
        with pytest.raises(ValidationError):
            await user_service.donate(db_session, sender, sender.id, 1)

    @pytest.mark.asyncio
    async def test_opted_out_recipient_gets_no_notification(self, db_session, make_user):
        sender = await make_user("Alex", balance=10)
        recipient = await make_user("Sam", notification_settings={"donations": False})
        await user_service.donate(db_session, sender, recipient.id, 1)

        inbox = await notification_service.list_for_user(db_session, recipient.id)
        assert inbox.notifications == []
