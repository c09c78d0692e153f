"""
BizzyLink Backend: Friends and Following Service
==================================================

Friendships are stored as two rows, one per direction, written and removed
together. Follows are one-directional and need no acceptance.
"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from bizzylink.models.social import Follow, FriendRequest, Friendship
from bizzylink.models.user import User
from bizzylink.schemas.common import MessageResponse, UserSummary
from bizzylink.schemas.social import (
    FollowResponse,
    FriendRequestItem,
    FriendRequestList,
    UnfollowResponse,
    UserList,
)
from bizzylink.services.notification_service import notification_service
from bizzylink.services.user_service import user_service

logger = logging.getLogger(__name__)


def _user_list(users) -> UserList:
    summaries = [UserSummary.model_validate(u) for u in users]
    return UserList(users=summaries, count=len(summaries))


class SocialService:

    # ══════════════════════════════════════════════════════════════════════
    # Friends
    # ══════════════════════════════════════════════════════════════════════

    async def list_friends(self, db: AsyncSession, user: User) -> UserList:
        result = await db.execute(
            select(User)
            .join(Friendship, Friendship.friend_id == User.id)
            .where(Friendship.user_id == user.id)
            .order_by(User.username)
        )
        return _user_list(result.scalars().all())

    async def send_request(self, db: AsyncSession, sender: User, username: str) -> MessageResponse:
        target = await user_service.get_by_username(db, username)
        if target.id == sender.id:
            raise ValidationError("You cannot send a friend request to yourself")
        if not target.privacy("allow_friend_requests"):
            raise PermissionDeniedError("This user is not accepting friend requests")
        if await user_service.are_friends(db, sender.id, target.id):
            raise ValidationError("You are already friends with this user")

        result = await db.execute(
            select(FriendRequest.id).where(
                FriendRequest.status == "pending",
                or_(
                    and_(FriendRequest.sender_id == sender.id, FriendRequest.recipient_id == target.id),
                    and_(FriendRequest.sender_id == target.id, FriendRequest.recipient_id == sender.id),
                ),
            )
        )
        if result.first() is not None:
            raise ValidationError("A friend request between you and this user is already pending")

        request = FriendRequest(sender_id=sender.id, recipient_id=target.id, status="pending")
        db.add(request)
        await db.flush()

        await notification_service.notify(
            db,
            target,
            type="friend_request",
            message=f"{sender.username} sent you a friend request",
            sender_id=sender.id,
            data={"request_id": str(request.id)},
            setting="friend_requests",
        )
        await db.flush()

        logger.info("User %s sent a friend request to %s", sender.id, target.id)
        return MessageResponse(message=f"Friend request sent to {target.username}")

    async def _get_pending_for(self, db: AsyncSession, user: User, request_id: UUID) -> FriendRequest:
        result = await db.execute(select(FriendRequest).where(FriendRequest.id == request_id))
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError(resource="friend request", resource_id=str(request_id))
        if request.recipient_id != user.id:
            raise PermissionDeniedError("Only the recipient can respond to this friend request")
        if request.status != "pending":
            raise ValidationError(f"This friend request was already {request.status}")
        return request

    async def accept_request(self, db: AsyncSession, user: User, request_id: UUID) -> MessageResponse:
        request = await self._get_pending_for(db, user, request_id)
        sender = await user_service.get_user(db, request.sender_id)

        request.status = "accepted"
        if not await user_service.are_friends(db, user.id, sender.id):
            db.add(Friendship(user_id=user.id, friend_id=sender.id))
            db.add(Friendship(user_id=sender.id, friend_id=user.id))

        await notification_service.notify(
            db,
            sender,
            type="friend_accepted",
            message=f"{user.username} accepted your friend request",
            sender_id=user.id,
            setting="friend_requests",
        )
        await db.flush()

        logger.info("Users %s and %s are now friends", user.id, sender.id)
        return MessageResponse(message=f"You are now friends with {sender.username}")

    async def reject_request(self, db: AsyncSession, user: User, request_id: UUID) -> MessageResponse:
        request = await self._get_pending_for(db, user, request_id)
        request.status = "rejected"
        await db.flush()
        return MessageResponse(message="Friend request rejected")

    async def pending_requests(self, db: AsyncSession, user: User) -> FriendRequestList:
        result = await db.execute(
            select(FriendRequest, User)
            .join(User, User.id == FriendRequest.sender_id)
            .where(FriendRequest.recipient_id == user.id, FriendRequest.status == "pending")
            .order_by(FriendRequest.created_at.desc())
        )
        return FriendRequestList(
            requests=[
                FriendRequestItem(
                    id=request.id,
                    sender=UserSummary.model_validate(sender),
                    status=request.status,
                    created_at=request.created_at,
                )
                for request, sender in result.all()
            ]
        )

    async def remove_friend(self, db: AsyncSession, user: User, friend_id: UUID) -> MessageResponse:
        if not await user_service.are_friends(db, user.id, friend_id):
            raise ValidationError("You are not friends with this user")

        await db.execute(
            delete(Friendship).where(
                or_(
                    and_(Friendship.user_id == user.id, Friendship.friend_id == friend_id),
                    and_(Friendship.user_id == friend_id, Friendship.friend_id == user.id),
                )
            )
        )
        logger.info("User %s removed friend %s", user.id, friend_id)
        return MessageResponse(message="Friend removed")

    # ══════════════════════════════════════════════════════════════════════
    # Following
    # ══════════════════════════════════════════════════════════════════════

    async def _find_follow(self, db: AsyncSession, follower_id: UUID, followed_id: UUID):
        result = await db.execute(
            select(Follow).where(Follow.follower_id == follower_id, Follow.followed_id == followed_id)
        )
        return result.scalar_one_or_none()

    async def follow(self, db: AsyncSession, user: User, username: str) -> FollowResponse:
        target = await user_service.get_by_username(db, username)
        if target.id == user.id:
            raise ValidationError("You cannot follow yourself")
        if not target.privacy("allow_followers"):
            raise PermissionDeniedError("This user does not allow followers")

        if await self._find_follow(db, user.id, target.id) is not None:
            return FollowResponse(
                message=f"You are already following {target.username}", already_following=True
            )

        db.add(Follow(follower_id=user.id, followed_id=target.id))
        await notification_service.notify(
            db,
            target,
            type="new_follower",
            message=f"{user.username} started following you",
            sender_id=user.id,
            setting="new_followers",
        )
        await db.flush()
        return FollowResponse(message=f"You are now following {target.username}")

    async def unfollow(self, db: AsyncSession, user: User, username: str) -> UnfollowResponse:
        target = await user_service.get_by_username(db, username)
        follow = await self._find_follow(db, user.id, target.id)
        if follow is None:
            return UnfollowResponse(
                message=f"You were not following {target.username}", was_following=False
            )

        await db.delete(follow)
        await db.flush()
        return UnfollowResponse(message=f"You unfollowed {target.username}", was_following=True)

    async def list_following(self, db: AsyncSession, user: User) -> UserList:
        result = await db.execute(
            select(User)
            .join(Follow, Follow.followed_id == User.id)
            .where(Follow.follower_id == user.id)
            .order_by(Follow.created_at.desc())
        )
        return _user_list(result.scalars().all())

    async def list_followers(self, db: AsyncSession, user: User) -> UserList:
        result = await db.execute(
            select(User)
            .join(Follow, Follow.follower_id == User.id)
            .where(Follow.followed_id == user.id)
            .order_by(Follow.created_at.desc())
        )
        return _user_list(result.scalars().all())


social_service = SocialService()
