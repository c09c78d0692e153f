"""
BizzyLink Backend: Forum Routes
=================================

What:  Categories, threads, posts, likes and search under /api/forum.
Who:   Read endpoints accept anonymous visitors (categories may still demand
       a login or a forum rank); write endpoints need a signed-in user, and
       category management needs a forum admin.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.config import settings
from bizzylink.database import get_db_session
from bizzylink.dependencies import get_current_user, get_optional_user, require_forum_admin
from bizzylink.models.user import User
from bizzylink.schemas.common import ErrorResponse, MessageResponse
from bizzylink.schemas.forum import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    LikeResponse,
    PostCreate,
    PostResponse,
    PostUpdate,
    SearchResponse,
    ThreadCreate,
    ThreadDetailResponse,
    ThreadItem,
    ThreadListResponse,
    ThreadUpdate,
)
from bizzylink.services.forum_service import forum_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/forum", tags=["Forum"])

_NOT_FOUND = {404: {"description": "Not found", "model": ErrorResponse}}
_FORBIDDEN = {403: {"description": "Not allowed", "model": ErrorResponse}}


# ══════════════════════════════════════════════════════════════════════════
# Categories
# ══════════════════════════════════════════════════════════════════════════


@router.get("/categories", response_model=List[CategoryResponse], summary="List categories")
async def list_categories(
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[CategoryResponse]:
    return await forum_service.list_categories(db, viewer)


@router.post(
    "/categories",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Slug already exists", "model": ErrorResponse}, **_FORBIDDEN},
    summary="Create a category",
)
async def create_category(
    data: CategoryCreate,
    _admin: User = Depends(require_forum_admin),
    db: AsyncSession = Depends(get_db_session),
) -> CategoryResponse:
    return await forum_service.create_category(db, data)


@router.put(
    "/categories/{category_id}",
    response_model=CategoryResponse,
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Update a category",
)
async def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    _admin: User = Depends(require_forum_admin),
    db: AsyncSession = Depends(get_db_session),
) -> CategoryResponse:
    return await forum_service.update_category(db, category_id, data)


@router.delete(
    "/categories/{category_id}",
    response_model=MessageResponse,
    responses={400: {"description": "Category still has threads", "model": ErrorResponse}, **_NOT_FOUND},
    summary="Delete an empty category",
)
async def delete_category(
    category_id: UUID,
    _admin: User = Depends(require_forum_admin),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await forum_service.delete_category(db, category_id)
    return MessageResponse(message="Category deleted")


@router.get(
    "/categories/{category_id}/threads",
    response_model=ThreadListResponse,
    responses={401: {"description": "Login required", "model": ErrorResponse}, **_FORBIDDEN, **_NOT_FOUND},
    summary="Threads of a category, pinned first",
)
async def list_category_threads(
    category_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.threads_per_page, ge=1, le=100),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> ThreadListResponse:
    return await forum_service.list_category_threads(db, category_id, viewer, page, limit)


# ══════════════════════════════════════════════════════════════════════════
# Threads
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/threads",
    response_model=ThreadItem,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Category inactive", "model": ErrorResponse}, **_NOT_FOUND},
    summary="Start a thread",
)
async def create_thread(
    data: ThreadCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ThreadItem:
    return await forum_service.create_thread(db, user, data)


@router.get(
    "/threads/{thread_id}",
    response_model=ThreadDetailResponse,
    responses=_NOT_FOUND,
    summary="A thread with a page of its posts",
)
async def get_thread(
    thread_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.posts_per_page, ge=1, le=100),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> ThreadDetailResponse:
    return await forum_service.get_thread(db, thread_id, viewer, page, limit)


@router.put(
    "/threads/{thread_id}",
    response_model=ThreadItem,
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Edit title, or pin/lock/move as a forum admin",
)
async def update_thread(
    thread_id: UUID,
    data: ThreadUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ThreadItem:
    return await forum_service.update_thread(db, thread_id, user, data)


@router.delete(
    "/threads/{thread_id}",
    response_model=MessageResponse,
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Delete a thread and its posts",
)
async def delete_thread(
    thread_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await forum_service.delete_thread(db, thread_id, user)
    return MessageResponse(message="Thread deleted")


# ══════════════════════════════════════════════════════════════════════════
# Posts
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/threads/{thread_id}/posts",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"description": "Thread locked", "model": ErrorResponse}, **_NOT_FOUND},
    summary="Reply to a thread",
)
async def create_post(
    thread_id: UUID,
    data: PostCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PostResponse:
    return await forum_service.create_post(db, thread_id, user, data.content)


@router.put(
    "/posts/{post_id}",
    response_model=PostResponse,
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Edit a post",
)
async def update_post(
    post_id: UUID,
    data: PostUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PostResponse:
    return await forum_service.update_post(db, post_id, user, data.content)


@router.delete(
    "/posts/{post_id}",
    response_model=MessageResponse,
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Delete a post (the first post takes its thread with it)",
)
async def delete_post(
    post_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    thread_deleted = await forum_service.delete_post(db, post_id, user)
    if thread_deleted:
        return MessageResponse(message="Post and its thread deleted")
    return MessageResponse(message="Post deleted")


@router.post(
    "/posts/{post_id}/like",
    response_model=LikeResponse,
    responses=_NOT_FOUND,
    summary="Like or unlike a post",
)
async def toggle_like(
    post_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> LikeResponse:
    return await forum_service.toggle_like(db, post_id, user)


# ══════════════════════════════════════════════════════════════════════════
# Search
# ══════════════════════════════════════════════════════════════════════════


@router.get("/search", response_model=SearchResponse, summary="Search thread titles and posts")
async def search(
    q: str = Query(min_length=2, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.posts_per_page, ge=1, le=100),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> SearchResponse:
    return await forum_service.search(db, q, viewer, page, limit)
