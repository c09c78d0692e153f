"""
BizzyLink Backend: Admin Dashboard Schemas
============================================
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from bizzylink.schemas.common import USERNAME_PATTERN
from bizzylink.schemas.forum import PostSearchItem, ThreadItem
from bizzylink.schemas.user import AdminUserResponse


Role = Literal["user", "moderator", "admin"]
ForumRank = Literal["user", "trusted", "moderator", "admin"]
LuckPermsGroup = Literal["default", "vip", "mvp", "staff", "moderator", "admin", "owner"]


class AccessCheckResponse(BaseModel):
    has_access: bool
    role: str
    forum_rank: str
    permissions: Dict[str, bool]
    luckperms_group: str


class PermissionFlags(BaseModel):
    can_access_admin: bool = False
    can_moderate_forums: bool = False
    can_manage_users: bool = False
    can_edit_server: bool = False


class AdminUserUpdate(BaseModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    forum_rank: Optional[ForumRank] = None
    avatar: Optional[str] = Field(default=None, max_length=500)
    luckperms_group: Optional[LuckPermsGroup] = None
    permissions: Optional[PermissionFlags] = None


class AccountStatusUpdate(BaseModel):
    status: Literal["active", "suspended", "banned"]
    reason: str = Field(default="", max_length=500)


class AdminUserListResponse(BaseModel):
    users: List[AdminUserResponse]
    page: int
    limit: int
    total_users: int
    total_pages: int


class MinecraftPermissionsResponse(BaseModel):
    user_id: uuid.UUID
    username: str
    minecraft_username: Optional[str] = None
    minecraft_uuid: Optional[str] = None
    luckperms_group: str


class MinecraftPermissionsUpdate(BaseModel):
    luckperms_group: LuckPermsGroup


class ThreadModerationRequest(BaseModel):
    is_pinned: Optional[bool] = None
    is_locked: Optional[bool] = None
    category_id: Optional[uuid.UUID] = None


class ActiveUser(BaseModel):
    id: uuid.UUID
    username: str
    post_count: int


class ForumStatsResponse(BaseModel):
    categories: int
    threads: int
    posts: int
    users: int
    recent_threads: List[ThreadItem]
    recent_posts: List[PostSearchItem]
    active_users: List[ActiveUser]


class DashboardResponse(BaseModel):
    total_users: int
    linked_users: int
    banned_users: int
    new_users_7d: int
    total_threads: int
    total_posts: int


class AuditLogItem(BaseModel):
    id: uuid.UUID
    admin_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    action: str
    details: Dict[str, Any]
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogItem]
    page: int
    limit: int
    total: int
