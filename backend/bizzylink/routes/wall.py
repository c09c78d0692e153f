"""
BizzyLink Backend: Profile Wall Routes
========================================

What:  /api/wall endpoints: a user's wall, posting, likes, comments,
       reposts and view counting.
Who:   Reading a wall and counting a view work anonymously (subject to the
       owner's profile visibility). Everything else needs a signed-in user;
       system posts need an admin.

`/{username}/...` paths address a wall; `/post/{post_id}/...` paths address
one post. The bulk-delete route is declared before `/post/{post_id}` so a
user named "post" can still clear their wall.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.config import settings
from bizzylink.database import get_db_session
from bizzylink.dependencies import client_ip, get_current_user, get_optional_user, require_admin
from bizzylink.models.user import User
from bizzylink.schemas.common import ErrorResponse, MessageResponse
from bizzylink.schemas.forum import LikeResponse
from bizzylink.schemas.wall import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    CommentCreate,
    CommentListResponse,
    RepostCreate,
    RepostStatusResponse,
    SystemPostCreate,
    ViewResponse,
    WallPostCreate,
    WallPostListResponse,
    WallPostResponse,
)
from bizzylink.services.wall_service import wall_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/wall", tags=["Wall"])

_NOT_FOUND = {404: {"description": "Not found", "model": ErrorResponse}}
_FORBIDDEN = {403: {"description": "Not allowed", "model": ErrorResponse}}


# ══════════════════════════════════════════════════════════════════════════
# Walls
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "/{username}",
    response_model=WallPostListResponse,
    responses={**_FORBIDDEN, **_NOT_FOUND},
    summary="Posts on a user's wall, newest first",
)
async def list_posts(
    username: str,
    response: Response,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.wall_posts_per_page, ge=1, le=100),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> WallPostListResponse:
    response.headers["Cache-Control"] = "no-store"
    return await wall_service.list_posts(db, viewer, username, page, limit)


@router.post(
    "/{username}",
    response_model=WallPostResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_FORBIDDEN, **_NOT_FOUND},
    summary="Post on a user's wall",
)
async def create_post(
    username: str,
    data: WallPostCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> WallPostResponse:
    return await wall_service.create_post(db, user, username, data)


@router.post(
    "/{username}/system",
    response_model=WallPostResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_FORBIDDEN, **_NOT_FOUND},
    summary="Write an achievement, friend or game post",
)
async def create_system_post(
    username: str,
    data: SystemPostCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> WallPostResponse:
    return await wall_service.create_system_post(db, admin, username, data)


@router.delete(
    "/{username}/bulk-delete",
    response_model=BulkDeleteResponse,
    responses={**_FORBIDDEN, **_NOT_FOUND},
    summary="Delete several posts from a wall",
)
async def bulk_delete(
    username: str,
    data: BulkDeleteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BulkDeleteResponse:
    return await wall_service.bulk_delete(db, user, username, data.post_ids)


# ══════════════════════════════════════════════════════════════════════════
# Posts
# ══════════════════════════════════════════════════════════════════════════


@router.delete(
    "/post/{post_id}",
    response_model=MessageResponse,
    responses={**_FORBIDDEN, **_NOT_FOUND},
    summary="Delete a wall post",
)
async def delete_post(
    post_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await wall_service.delete_post(db, user, post_id)
    return MessageResponse(message="Post deleted")


@router.post("/post/{post_id}/like", response_model=LikeResponse, responses=_NOT_FOUND, summary="Like a post")
async def like_post(
    post_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> LikeResponse:
    return await wall_service.like(db, user, post_id)


@router.post("/post/{post_id}/unlike", response_model=LikeResponse, responses=_NOT_FOUND, summary="Remove a like")
async def unlike_post(
    post_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> LikeResponse:
    return await wall_service.unlike(db, user, post_id)


@router.post(
    "/post/{post_id}/comment",
    response_model=CommentListResponse,
    responses={**_FORBIDDEN, **_NOT_FOUND},
    summary="Comment on a post",
)
async def add_comment(
    post_id: UUID,
    data: CommentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CommentListResponse:
    return await wall_service.add_comment(db, user, post_id, data)


@router.delete(
    "/post/{post_id}/comment/{comment_id}",
    response_model=CommentListResponse,
    responses={**_FORBIDDEN, **_NOT_FOUND},
    summary="Delete a comment",
)
async def delete_comment(
    post_id: UUID,
    comment_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CommentListResponse:
    return await wall_service.delete_comment(db, user, post_id, comment_id)


@router.post(
    "/post/{post_id}/repost",
    response_model=WallPostResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Already reposted", "model": ErrorResponse}, **_NOT_FOUND},
    summary="Repost to your own wall",
)
async def repost(
    post_id: UUID,
    data: Optional[RepostCreate] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> WallPostResponse:
    return await wall_service.repost(db, user, post_id, data.message if data else None)


@router.delete(
    "/post/{post_id}/repost",
    response_model=MessageResponse,
    responses=_NOT_FOUND,
    summary="Remove your repost",
)
async def unrepost(
    post_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await wall_service.unrepost(db, user, post_id)
    return MessageResponse(message="Repost removed")


@router.get(
    "/post/{post_id}/repost-status",
    response_model=RepostStatusResponse,
    responses=_NOT_FOUND,
    summary="Whether you reposted a post",
)
async def repost_status(
    post_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> RepostStatusResponse:
    return await wall_service.repost_status(db, user, post_id)


@router.post("/post/{post_id}/view", response_model=ViewResponse, responses=_NOT_FOUND, summary="Count a view")
async def record_view(
    post_id: UUID,
    request: Request,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> ViewResponse:
    return await wall_service.record_view(db, post_id, viewer, client_ip(request))
