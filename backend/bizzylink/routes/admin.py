"""
BizzyLink Backend: Admin Dashboard Routes
===========================================

What:  /api/admin endpoints behind the admin panel.
Who:   `check-access` only needs a signed-in user (the frontend uses it to
       decide whether to show the panel). Reads (dashboard, user lists,
       audit log) need `is_admin`. Account changes need a user manager, and
       the service refuses grants above the caller's own rank. Forum tools
       need a forum admin.

Every mutating endpoint passes the caller's IP and user agent to the
service, which records them in the audit log.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.config import settings
from bizzylink.database import get_db_session
from bizzylink.dependencies import (
    get_current_user,
    get_request_meta,
    require_admin,
    require_forum_admin,
    require_user_manager,
)
from bizzylink.models.user import User
from bizzylink.schemas.admin import (
    AccessCheckResponse,
    AccountStatusUpdate,
    AdminUserListResponse,
    AdminUserUpdate,
    AuditLogListResponse,
    DashboardResponse,
    ForumStatsResponse,
    MinecraftPermissionsResponse,
    MinecraftPermissionsUpdate,
    PermissionFlags,
    ThreadModerationRequest,
)
from bizzylink.schemas.common import ErrorResponse, MessageResponse
from bizzylink.schemas.forum import PostResponse, PostUpdate, ThreadItem
from bizzylink.schemas.user import AdminUserResponse
from bizzylink.services.admin_service import RequestMeta, admin_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])

_USER_NOT_FOUND = {
    403: {"description": "Caller may not manage this account", "model": ErrorResponse},
    404: {"description": "User not found", "model": ErrorResponse},
}


@router.get("/check-access", response_model=AccessCheckResponse, summary="Caller's admin access")
async def check_access(user: User = Depends(get_current_user)) -> AccessCheckResponse:
    return admin_service.check_access(user)


@router.get("/dashboard", response_model=DashboardResponse, summary="Site-wide counters")
async def dashboard(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> DashboardResponse:
    return await admin_service.dashboard(db)


# ══════════════════════════════════════════════════════════════════════════
# Users
# ══════════════════════════════════════════════════════════════════════════


@router.get("/users", response_model=AdminUserListResponse, summary="List or search users")
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.users_per_page, ge=1, le=100),
    search: Optional[str] = Query(default=None, max_length=100),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> AdminUserListResponse:
    return await admin_service.list_users(db, page, limit, search)


@router.get(
    "/users/{user_id}",
    response_model=AdminUserResponse,
    responses=_USER_NOT_FOUND,
    summary="One user with security fields",
)
async def get_user(
    user_id: UUID,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> AdminUserResponse:
    return await admin_service.get_user(db, user_id)


@router.put(
    "/users/{user_id}",
    response_model=AdminUserResponse,
    responses={409: {"description": "Username or email taken", "model": ErrorResponse}, **_USER_NOT_FOUND},
    summary="Update a user",
)
async def update_user(
    user_id: UUID,
    data: AdminUserUpdate,
    admin: User = Depends(require_user_manager),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> AdminUserResponse:
    return await admin_service.update_user(db, admin, user_id, data, meta)


@router.put(
    "/users/{user_id}/permissions",
    response_model=AdminUserResponse,
    responses=_USER_NOT_FOUND,
    summary="Set explicit permission flags",
)
async def set_permissions(
    user_id: UUID,
    data: PermissionFlags,
    admin: User = Depends(require_user_manager),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> AdminUserResponse:
    return await admin_service.set_permissions(db, admin, user_id, data, meta)


@router.put(
    "/users/{user_id}/status",
    response_model=AdminUserResponse,
    responses=_USER_NOT_FOUND,
    summary="Activate, suspend or ban a user",
)
async def set_account_status(
    user_id: UUID,
    data: AccountStatusUpdate,
    admin: User = Depends(require_user_manager),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> AdminUserResponse:
    return await admin_service.set_account_status(db, admin, user_id, data, meta)


@router.delete(
    "/users/{user_id}",
    response_model=MessageResponse,
    responses={400: {"description": "Cannot delete yourself", "model": ErrorResponse}, **_USER_NOT_FOUND},
    summary="Delete a user",
)
async def delete_user(
    user_id: UUID,
    admin: User = Depends(require_user_manager),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await admin_service.delete_user(db, admin, user_id, meta)
    return MessageResponse(message="User deleted")


# ══════════════════════════════════════════════════════════════════════════
# Minecraft Permissions
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "/minecraft/{user_id}/permissions",
    response_model=MinecraftPermissionsResponse,
    responses={400: {"description": "User not linked", "model": ErrorResponse}, **_USER_NOT_FOUND},
    summary="LuckPerms group of a linked user",
)
async def get_minecraft_permissions(
    user_id: UUID,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> MinecraftPermissionsResponse:
    return await admin_service.get_minecraft_permissions(db, user_id)


@router.put(
    "/minecraft/{user_id}/permissions",
    response_model=MinecraftPermissionsResponse,
    responses={400: {"description": "User not linked", "model": ErrorResponse}, **_USER_NOT_FOUND},
    summary="Set the LuckPerms group of a linked user",
)
async def set_minecraft_permissions(
    user_id: UUID,
    data: MinecraftPermissionsUpdate,
    admin: User = Depends(require_user_manager),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> MinecraftPermissionsResponse:
    return await admin_service.set_minecraft_permissions(
        db, admin, user_id, data.luckperms_group, meta
    )


# ══════════════════════════════════════════════════════════════════════════
# Forum Moderation
# ══════════════════════════════════════════════════════════════════════════


@router.get("/forum/stats", response_model=ForumStatsResponse, summary="Forum counters and activity")
async def forum_stats(
    _admin: User = Depends(require_forum_admin),
    db: AsyncSession = Depends(get_db_session),
) -> ForumStatsResponse:
    return await admin_service.forum_stats(db)


@router.put("/forum/threads/{thread_id}", response_model=ThreadItem, summary="Pin, lock or move a thread")
async def moderate_thread(
    thread_id: UUID,
    data: ThreadModerationRequest,
    admin: User = Depends(require_forum_admin),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> ThreadItem:
    return await admin_service.moderate_thread(db, admin, thread_id, data, meta)


@router.delete("/forum/threads/{thread_id}", response_model=MessageResponse, summary="Delete a thread")
async def delete_thread(
    thread_id: UUID,
    admin: User = Depends(require_forum_admin),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await admin_service.delete_thread(db, admin, thread_id, meta)
    return MessageResponse(message="Thread deleted")


@router.put("/forum/posts/{post_id}", response_model=PostResponse, summary="Edit any post")
async def edit_post(
    post_id: UUID,
    data: PostUpdate,
    admin: User = Depends(require_forum_admin),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> PostResponse:
    return await admin_service.edit_post(db, admin, post_id, data.content, meta)


@router.delete(
    "/forum/posts/{post_id}",
    response_model=MessageResponse,
    responses={400: {"description": "First post of a thread", "model": ErrorResponse}},
    summary="Delete a reply",
)
async def delete_post(
    post_id: UUID,
    admin: User = Depends(require_forum_admin),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await admin_service.delete_post(db, admin, post_id, meta)
    return MessageResponse(message="Post deleted")


# ══════════════════════════════════════════════════════════════════════════
# Audit Logs
# ══════════════════════════════════════════════════════════════════════════


@router.get("/audit-logs", response_model=AuditLogListResponse, summary="Audit trail, newest first")
async def audit_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    action: Optional[str] = Query(default=None, max_length=50),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> AuditLogListResponse:
    return await admin_service.audit_logs(db, page, limit, action)
