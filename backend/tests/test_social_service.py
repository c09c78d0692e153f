"""
BizzyLink Backend: Friends and Following Tests
================================================

What we test:
    ✅ Request → accept writes both friendship directions
    ✅ Duplicate, reverse-pending and self requests are refused
    ✅ Only the recipient may answer; answered requests stay answered
    ✅ Privacy switches block requests and followers
    ✅ Follow is idempotent; unfollow reports whether anything changed
"""

import pytest

from bizzylink.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from bizzylink.services.social_service import social_service
from bizzylink.services.user_service import user_service


async def _request_id(db, recipient):
    pending = await social_service.pending_requests(db, recipient)
    assert len(pending.requests) == 1
    return pending.requests[0].id


class TestFriends:

    @pytest.mark.asyncio
    async def test_request_and_accept(self, db_session, make_user):
        alex = await make_user("Alex")
        sam = await make_user("Sam")

        await social_service.send_request(db_session, alex, "sam")
        request_id = await _request_id(db_session, sam)
        response = await social_service.accept_request(db_session, sam, request_id)

        assert "Alex" in response.message
        assert await user_service.are_friends(db_session, alex.id, sam.id)
        assert await user_service.are_friends(db_session, sam.id, alex.id)
        friends = await social_service.list_friends(db_session, alex)
        assert [u.username for u in friends.users] == ["Sam"]

    @pytest.mark.asyncio
    async def test_duplicate_and_reverse_requests(self, db_session, make_user):
        alex = await make_user("Alex")
        sam = await make_user("Sam")
        await social_service.send_request(db_session, alex, "Sam")

        with pytest.raises(ValidationError):
            await social_service.send_request(db_session, alex, "Sam")
        with pytest.raises(ValidationError):
            await social_service.send_request(db_session, sam, "Alex")

    @pytest.mark.asyncio
    async def test_cannot_befriend_self_or_unknown(self, db_session, make_user):
        alex = await make_user("Alex")
        with pytest.raises(ValidationError):
            await social_service.send_request(db_session, alex, "alex")
        with pytest.raises(NotFoundError):
            await social_service.send_request(db_session, alex, "nobody")

    @pytest.mark.asyncio
    async def test_requests_disabled(self, db_session, make_user):
        alex = await make_user("Alex")
        await make_user("Sam", privacy_settings={"allow_friend_requests": False})
        with pytest.raises(PermissionDeniedError):
            await social_service.send_request(db_session, alex, "Sam")

    @pytest.mark.asyncio
    async def test_only_recipient_can_answer(self, db_session, make_user):
        alex = await make_user("Alex")
        sam = await make_user("Sam")
        await social_service.send_request(db_session, alex, "Sam")
        request_id = await _request_id(db_session, sam)

        with pytest.raises(PermissionDeniedError):
            await social_service.accept_request(db_session, alex, request_id)

    @pytest.mark.asyncio
    async def test_rejected_request_cannot_be_accepted(self, db_session, make_user):
        alex = await make_user("Alex")
        sam = await make_user("Sam")
        await social_service.send_request(db_session, alex, "Sam")
        request_id = await _request_id(db_session, sam)
        await social_service.reject_request(db_session, sam, request_id)

        with pytest.raises(ValidationError):
            await social_service.accept_request(db_session, sam, request_id)
        assert not await user_service.are_friends(db_session, alex.id, sam.id)

    @pytest.mark.asyncio
    async def test_remove_friend(self, db_session, make_user):
        alex = await make_user("Alex")
        sam = await make_user("Sam")
        await social_service.send_request(db_session, alex, "Sam")
        await social_service.accept_request(db_session, sam, await _request_id(db_session, sam))

        await social_service.remove_friend(db_session, alex, sam.id)

        assert not await user_service.are_friends(db_session, alex.id, sam.id)
        assert not await user_service.are_friends(db_session, sam.id, alex.id)
        with pytest.raises(ValidationError):
            await social_service.remove_friend(db_session, alex, sam.id)


class TestFollowing:

    @pytest.mark.asyncio
    async def test_follow_is_idempotent(self, db_session, make_user):
        alex = await make_user("Alex")
        sam = await make_user("Sam")

        first = await social_service.follow(db_session, alex, "Sam")
        second = await social_service.follow(db_session, alex, "Sam")

        assert first.already_following is False
        assert second.already_following is True
        followers = await social_service.list_followers(db_session, sam)
        assert followers.count == 1
        following = await social_service.list_following(db_session, alex)
        assert [u.username for u in following.users] == ["Sam"]

    @pytest.mark.asyncio
    async def test_unfollow(self, db_session, make_user):
        alex = await make_user("Alex")
        await make_user("Sam")
        await social_service.follow(db_session, alex, "Sam")

        assert (await social_service.unfollow(db_session, alex, "Sam")).was_following is True
        assert (await social_service.unfollow(db_session, alex, "Sam")).was_following is False

    @pytest.mark.asyncio
    async def test_followers_disabled(self, db_session, make_user):
        alex = await make_user("Alex")
        await make_user("Sam", privacy_settings={"allow_followers": False})
        with pytest.raises(PermissionDeniedError):
            await social_service.follow(db_session, alex, "Sam")

    @pytest.mark.asyncio
    async def test_cannot_follow_self(self, db_session, make_user):
        alex = await make_user("Alex")
        with pytest.raises(ValidationError):
            await social_service.follow(db_session, alex, "Alex")
