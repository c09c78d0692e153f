"""
BizzyLink Backend: Friends and Following Routes
=================================================

Two routers: /api/friends (requests need acceptance) and /api/following
(one-directional, no acceptance).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.database import get_db_session
from bizzylink.dependencies import get_current_user
from bizzylink.models.user import User
from bizzylink.schemas.common import ErrorResponse, MessageResponse
from bizzylink.schemas.social import (
    FollowResponse,
    FriendRemoveRequest,
    FriendRequestAction,
    FriendRequestList,
    UnfollowResponse,
    UserList,
    UsernameRequest,
)
from bizzylink.services.social_service import social_service

friends_router = APIRouter(prefix="/api/friends", tags=["Friends"])
following_router = APIRouter(prefix="/api/following", tags=["Following"])


# ── Friends ───────────────────────────────────────────────────────────────


@friends_router.get("", response_model=UserList, summary="List friends")
async def list_friends(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserList:
    return await social_service.list_friends(db, user)


@friends_router.post(
    "/request",
    response_model=MessageResponse,
    responses={
        400: {"description": "Self, already friends or already pending", "model": ErrorResponse},
        403: {"description": "User does not accept requests", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Send a friend request",
)
async def send_request(
    data: UsernameRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await social_service.send_request(db, user, data.username)


@friends_router.post("/accept", response_model=MessageResponse, summary="Accept a friend request")
async def accept_request(
    data: FriendRequestAction,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await social_service.accept_request(db, user, data.request_id)


@friends_router.post("/reject", response_model=MessageResponse, summary="Reject a friend request")
async def reject_request(
    data: FriendRequestAction,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await social_service.reject_request(db, user, data.request_id)


@friends_router.get("/requests", response_model=FriendRequestList, summary="Pending incoming requests")
async def pending_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FriendRequestList:
    return await social_service.pending_requests(db, user)


@friends_router.post("/remove", response_model=MessageResponse, summary="Remove a friend")
async def remove_friend(
    data: FriendRemoveRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await social_service.remove_friend(db, user, data.friend_id)


# ── Following ─────────────────────────────────────────────────────────────


@following_router.get("", response_model=UserList, summary="Users you follow")
async def list_following(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserList:
    return await social_service.list_following(db, user)


@following_router.get("/followers", response_model=UserList, summary="Users following you")
async def list_followers(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserList:
    return await social_service.list_followers(db, user)


@following_router.post(
    "/follow",
    response_model=FollowResponse,
    responses={403: {"description": "User does not allow followers", "model": ErrorResponse}},
    summary="Follow a user",
)
async def follow(
    data: UsernameRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FollowResponse:
    return await social_service.follow(db, user, data.username)


@following_router.post("/unfollow", response_model=UnfollowResponse, summary="Unfollow a user")
async def unfollow(
    data: UsernameRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UnfollowResponse:
    return await social_service.unfollow(db, user, data.username)
