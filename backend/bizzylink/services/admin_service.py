"""
BizzyLink Backend: Admin Dashboard Service
============================================

What:  User management, Minecraft permission groups, forum moderation,
       dashboard counters and the audit trail.
Who:   /api/admin routes (guarded by require_admin, require_user_manager and
       require_forum_admin).

Authority:
    Site admins (role admin) may change any account, though nobody may ban
    or delete themselves.
    Other user managers may not touch admin accounts, and may not grant a
    role, forum rank, permission flag or LuckPerms admin group above what
    they hold themselves. Checks run before anything is written.

Audit trail:
    Every mutation writes one audit_logs row in the same transaction as the
    change: acting admin, target user, action, a details dict, and the
    caller's IP and user agent. If the change rolls back, so does its entry.

Role → permission derivation on update:
    role or forum_rank set to admin      → all four flags
    role or forum_rank set to moderator  → can_access_admin + can_moderate_forums
    both set to user                     → all flags cleared
    Flags sent explicitly in the same request are applied afterwards.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.database import apply_deltas, utcnow
from bizzylink.exceptions import ConflictError, PermissionDeniedError, ValidationError
from bizzylink.models.forum import ForumCategory, ForumPost, ForumThread
from bizzylink.models.notification import AuditLog
from bizzylink.models.user import PERMISSION_FLAGS, ReputationVote, User, Vouch
from bizzylink.schemas.admin import (
    AccessCheckResponse,
    AccountStatusUpdate,
    ActiveUser,
    AdminUserListResponse,
    AdminUserUpdate,
    AuditLogItem,
    AuditLogListResponse,
    DashboardResponse,
    ForumStatsResponse,
    MinecraftPermissionsResponse,
    PermissionFlags,
    ThreadModerationRequest,
)
from bizzylink.schemas.forum import PostResponse, ThreadItem
from bizzylink.schemas.user import AdminUserResponse
from bizzylink.services.forum_service import escape_like, forum_service, total_pages
from bizzylink.services.user_service import user_service
from bizzylink.services.wall_service import wall_service

logger = logging.getLogger(__name__)


@dataclass
class RequestMeta:
    """Caller details recorded with each audit entry."""
    ip: Optional[str] = None
    user_agent: Optional[str] = None


def _derived_flags(role: str, forum_rank: str) -> Optional[Dict[str, bool]]:
    ranks = (role, forum_rank)
    if "admin" in ranks:
        return {flag: True for flag in PERMISSION_FLAGS}
    if "moderator" in ranks:
        return {
            "can_access_admin": True,
            "can_moderate_forums": True,
            "can_manage_users": False,
            "can_edit_server": False,
        }
    if role == "user" and forum_rank == "user":
        return {flag: False for flag in PERMISSION_FLAGS}
    return None


_ROLE_ORDER = ("user", "moderator", "admin")
_FORUM_RANK_ORDER = ("user", "trusted", "moderator", "admin")
_RESERVED_GROUPS = ("admin", "owner")


def _outranks(order, granted: str, held: str) -> bool:
    return order.index(granted) > order.index(held)


def _check_target(admin: User, target: User) -> None:
    """Only site admins may act on an admin account."""
    if admin.role == "admin":
        return
    if "admin" in (target.role, target.forum_rank):
        raise PermissionDeniedError(
            "Only site admins can manage admin accounts", context={"user_id": str(target.id)}
        )


def _check_grants(
    admin: User,
    target: User,
    role: Optional[str] = None,
    forum_rank: Optional[str] = None,
    flags: Optional[Dict[str, bool]] = None,
    group: Optional[str] = None,
) -> None:
    """
    Refuse to give anyone more than the caller holds.

    Site admins are unrestricted. Everyone else may only hand out a role,
    forum rank or permission flag they have themselves, and never a LuckPerms
    admin group. Only changes count: re-sending a value the target already
    has is not a grant.
    """
    if admin.role == "admin":
        return
    if role is not None and role != target.role and _outranks(_ROLE_ORDER, role, admin.role):
        raise PermissionDeniedError("You cannot grant a role above your own", context={"role": role})
    if (
        forum_rank is not None
        and forum_rank != target.forum_rank
        and _outranks(_FORUM_RANK_ORDER, forum_rank, admin.forum_rank)
    ):
        raise PermissionDeniedError(
            "You cannot grant a forum rank above your own", context={"forum_rank": forum_rank}
        )
    held = admin.effective_permissions()
    for flag, value in (flags or {}).items():
        if value and not getattr(target, flag) and not held[flag]:
            raise PermissionDeniedError(
                "You cannot grant a permission you do not hold", context={"flag": flag}
            )
    if group in _RESERVED_GROUPS and group != target.luckperms_group:
        raise PermissionDeniedError(
            "Only site admins can assign staff admin groups", context={"luckperms_group": group}
        )


class AdminService:

    async def _audit(
        self,
        db: AsyncSession,
        admin: User,
        action: str,
        target_id: Optional[UUID] = None,
        details: Optional[Dict[str, Any]] = None,
        meta: Optional[RequestMeta] = None,
    ) -> None:
        meta = meta or RequestMeta()
        db.add(
            AuditLog(
                admin_id=admin.id,
                user_id=target_id,
                action=action,
                details=details or {},
                ip=meta.ip,
                user_agent=(meta.user_agent or "")[:500] or None,
            )
        )
        logger.info("Admin %s performed %s on %s", admin.id, action, target_id)

    def check_access(self, user: User) -> AccessCheckResponse:
        return AccessCheckResponse(
            has_access=user.is_admin,
            role=user.role,
            forum_rank=user.forum_rank,
            permissions=user.effective_permissions(),
            luckperms_group=user.luckperms_group,
        )

    # ══════════════════════════════════════════════════════════════════════
    # Users
    # ══════════════════════════════════════════════════════════════════════

    async def list_users(
        self, db: AsyncSession, page: int = 1, limit: int = 10, search: Optional[str] = None
    ) -> AdminUserListResponse:
        filters = []
        if search and search.strip():
            pattern = f"%{escape_like(search.strip())}%"
            filters.append(
                or_(
                    User.username.ilike(pattern, escape="\\"),
                    User.email.ilike(pattern, escape="\\"),
                )
            )

        count_result = await db.execute(select(func.count()).select_from(User).where(*filters))
        total = count_result.scalar() or 0

        result = await db.execute(
            select(User)
            .where(*filters)
            .order_by(User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return AdminUserListResponse(
            users=[AdminUserResponse.from_user(u) for u in result.scalars().all()],
            page=page,
            limit=limit,
            total_users=total,
            total_pages=total_pages(total, limit),
        )

    async def get_user(self, db: AsyncSession, user_id: UUID) -> AdminUserResponse:
        return AdminUserResponse.from_user(await user_service.get_user(db, user_id))

    async def update_user(
        self,
        db: AsyncSession,
        admin: User,
        user_id: UUID,
        data: AdminUserUpdate,
        meta: Optional[RequestMeta] = None,
    ) -> AdminUserResponse:
        user = await user_service.get_user(db, user_id)
        _check_target(admin, user)
        changes = data.model_dump(exclude_unset=True, exclude={"permissions"})

        role = changes.get("role") or user.role
        forum_rank = changes.get("forum_rank") or user.forum_rank
        new_flags: Dict[str, bool] = {}
        if "role" in changes or "forum_rank" in changes:
            new_flags.update(_derived_flags(role, forum_rank) or {})
        if data.permissions is not None:
            new_flags.update(data.permissions.model_dump())
        _check_grants(
            admin,
            user,
            role=role,
            forum_rank=forum_rank,
            flags=new_flags,
            group=changes.get("luckperms_group"),
        )

        if changes.get("username") and changes["username"].lower() != user.username.lower():
            existing = await user_service.find_by_username(db, changes["username"])
            if existing is not None:
                raise ConflictError("Username is already taken", context={"field": "username"})
        if changes.get("email"):
            changes["email"] = str(changes["email"]).lower()
            existing = await user_service.find_by_email(db, changes["email"])
            if existing is not None and existing.id != user.id:
                raise ConflictError("Email is already in use", context={"field": "email"})

        for field, value in changes.items():
            if value is None and field != "avatar":
                continue
            setattr(user, field, value)

        for flag, value in new_flags.items():
            setattr(user, flag, value)

        await self._audit(
            db,
            admin,
            "update_user",
            target_id=user.id,
            details={
                "changes": {k: str(v) if v is not None else None for k, v in changes.items()},
                "permissions": data.permissions.model_dump() if data.permissions else None,
            },
            meta=meta,
        )
        try:
            await db.flush()
        except IntegrityError as e:
            raise ConflictError("Username or email is already in use") from e
        return AdminUserResponse.from_user(user)

    async def set_permissions(
        self,
        db: AsyncSession,
        admin: User,
        user_id: UUID,
        flags: PermissionFlags,
        meta: Optional[RequestMeta] = None,
    ) -> AdminUserResponse:
        user = await user_service.get_user(db, user_id)
        _check_target(admin, user)
        _check_grants(admin, user, flags=flags.model_dump())
        for flag, value in flags.model_dump().items():
            setattr(user, flag, value)
        await self._audit(
            db, admin, "update_permissions", target_id=user.id, details=flags.model_dump(), meta=meta
        )
        await db.flush()
        return AdminUserResponse.from_user(user)

    async def set_account_status(
        self,
        db: AsyncSession,
        admin: User,
        user_id: UUID,
        data: AccountStatusUpdate,
        meta: Optional[RequestMeta] = None,
    ) -> AdminUserResponse:
        if user_id == admin.id:
            raise ValidationError("You cannot change your own account status")

        user = await user_service.get_user(db, user_id)
        _check_target(admin, user)
        previous = user.account_status
        user.account_status = data.status

        action = {"banned": "ban_user", "suspended": "suspend_user"}.get(data.status, "unban_user")
        await self._audit(
            db,
            admin,
            action,
            target_id=user.id,
            details={"previous": previous, "status": data.status, "reason": data.reason},
            meta=meta,
        )
        await db.flush()
        return AdminUserResponse.from_user(user)

    async def delete_user(
        self, db: AsyncSession, admin: User, user_id: UUID, meta: Optional[RequestMeta] = None
    ) -> None:
        if user_id == admin.id:
            raise ValidationError("You cannot delete your own account")

        user = await user_service.get_user(db, user_id)
        _check_target(admin, user)
        await self._audit(
            db,
            admin,
            "delete_user",
            target_id=user.id,
            details={"username": user.username, "email": user.email},
            meta=meta,
        )
        await self._release_votes(db, user)
        await wall_service.release_user(db, user)
        await db.delete(user)
        await db.flush()

    async def _release_votes(self, db: AsyncSession, user: User) -> None:
        """
        Take the user's reputation votes and vouches off their receivers.

        The rows cascade away with the account; the denormalised totals on
        `users` would otherwise keep counting them.
        """
        reputation = await db.execute(
            select(ReputationVote.receiver_id, func.sum(ReputationVote.value))
            .where(ReputationVote.giver_id == user.id)
            .group_by(ReputationVote.receiver_id)
        )
        for receiver_id, total in reputation.all():
            receiver = await db.get(User, receiver_id)
            if receiver is not None:
                await apply_deltas(db, receiver, {"reputation": -int(total)}, floor=None)

        vouches = await db.execute(select(Vouch.receiver_id).where(Vouch.giver_id == user.id))
        for receiver_id in vouches.scalars().all():
            receiver = await db.get(User, receiver_id)
            if receiver is not None:
                await apply_deltas(db, receiver, {"vouches": -1})

        await db.execute(
            delete(ReputationVote).where(
                or_(ReputationVote.giver_id == user.id, ReputationVote.receiver_id == user.id)
            )
        )
        await db.execute(
            delete(Vouch).where(or_(Vouch.giver_id == user.id, Vouch.receiver_id == user.id))
        )

    # ══════════════════════════════════════════════════════════════════════
    # Minecraft Permissions
    # ══════════════════════════════════════════════════════════════════════

    async def _linked_user(self, db: AsyncSession, user_id: UUID) -> User:
        user = await user_service.get_user(db, user_id)
        if not user.is_linked:
            raise ValidationError("This user has not linked a Minecraft account")
        return user

    def _minecraft_permissions(self, user: User) -> MinecraftPermissionsResponse:
        return MinecraftPermissionsResponse(
            user_id=user.id,
            username=user.username,
            minecraft_username=user.minecraft_username,
            minecraft_uuid=user.minecraft_uuid,
            luckperms_group=user.luckperms_group,
        )

    async def get_minecraft_permissions(
        self, db: AsyncSession, user_id: UUID
    ) -> MinecraftPermissionsResponse:
        return self._minecraft_permissions(await self._linked_user(db, user_id))

    async def set_minecraft_permissions(
        self,
        db: AsyncSession,
        admin: User,
        user_id: UUID,
        group: str,
        meta: Optional[RequestMeta] = None,
    ) -> MinecraftPermissionsResponse:
        user = await self._linked_user(db, user_id)
        _check_target(admin, user)
        _check_grants(admin, user, group=group)
        previous = user.luckperms_group
        user.luckperms_group = group
        await self._audit(
            db,
            admin,
            "update_minecraft_permissions",
            target_id=user.id,
            details={"previous": previous, "luckperms_group": group},
            meta=meta,
        )
        await db.flush()
        return self._minecraft_permissions(user)

    # ══════════════════════════════════════════════════════════════════════
    # Forum
    # ══════════════════════════════════════════════════════════════════════

    async def _count(self, db: AsyncSession, model, *filters) -> int:
        result = await db.execute(select(func.count()).select_from(model).where(*filters))
        return result.scalar() or 0

    async def forum_stats(self, db: AsyncSession) -> ForumStatsResponse:
        active_result = await db.execute(
            select(User.id, User.username, User.post_count)
            .where(User.post_count > 0)
            .order_by(User.post_count.desc())
            .limit(5)
        )
        return ForumStatsResponse(
            categories=await self._count(db, ForumCategory),
            threads=await self._count(db, ForumThread),
            posts=await self._count(db, ForumPost),
            users=await self._count(db, User),
            recent_threads=await forum_service.recent_threads(db, limit=5, all_categories=True),
            recent_posts=await forum_service.recent_posts(db, limit=5, all_categories=True),
            active_users=[
                ActiveUser(id=row[0], username=row[1], post_count=row[2])
                for row in active_result.all()
            ],
        )

    async def moderate_thread(
        self,
        db: AsyncSession,
        admin: User,
        thread_id: UUID,
        data: ThreadModerationRequest,
        meta: Optional[RequestMeta] = None,
    ) -> ThreadItem:
        thread = await forum_service.get_thread_row(db, thread_id)
        previous_category = thread.category_id
        await forum_service.moderate_thread(
            db, thread, is_pinned=data.is_pinned, is_locked=data.is_locked, category_id=data.category_id
        )
        details = data.model_dump(exclude_none=True, mode="json")
        if data.category_id is not None:
            details["previous_category_id"] = str(previous_category)
        await self._audit(
            db,
            admin,
            "forum_moderate_thread",
            target_id=thread.author_id,
            details={"thread_id": str(thread.id), **details},
            meta=meta,
        )
        await db.flush()
        return (await forum_service.thread_items(db, [thread]))[0]

    async def delete_thread(
        self, db: AsyncSession, admin: User, thread_id: UUID, meta: Optional[RequestMeta] = None
    ) -> None:
        thread = await forum_service.get_thread_row(db, thread_id)
        await self._audit(
            db,
            admin,
            "delete_thread",
            target_id=thread.author_id,
            details={"thread_id": str(thread.id), "title": thread.title},
            meta=meta,
        )
        await forum_service.remove_thread(db, thread)

    async def edit_post(
        self,
        db: AsyncSession,
        admin: User,
        post_id: UUID,
        content: str,
        meta: Optional[RequestMeta] = None,
    ) -> PostResponse:
        post = await forum_service.get_post_row(db, post_id)
        await self._audit(
            db,
            admin,
            "edit_post",
            target_id=post.author_id,
            details={"post_id": str(post.id), "thread_id": str(post.thread_id)},
            meta=meta,
        )
        return await forum_service.edit_post(db, post, admin, content)

    async def delete_post(
        self, db: AsyncSession, admin: User, post_id: UUID, meta: Optional[RequestMeta] = None
    ) -> None:
        post = await forum_service.get_post_row(db, post_id)
        if post.is_first_post:
            raise ValidationError("Cannot delete the first post of a thread. Delete the thread instead.")
        await self._audit(
            db,
            admin,
            "delete_post",
            target_id=post.author_id,
            details={"post_id": str(post.id), "thread_id": str(post.thread_id)},
            meta=meta,
        )
        await forum_service.remove_post(db, post)

    # ══════════════════════════════════════════════════════════════════════
    # Dashboard and Audit Logs
    # ══════════════════════════════════════════════════════════════════════

    async def dashboard(self, db: AsyncSession) -> DashboardResponse:
        week_ago = utcnow() - timedelta(days=7)
        return DashboardResponse(
            total_users=await self._count(db, User),
            linked_users=await self._count(db, User, User.minecraft_uuid.is_not(None)),
            banned_users=await self._count(db, User, User.account_status == "banned"),
            new_users_7d=await self._count(db, User, User.created_at >= week_ago),
            total_threads=await self._count(db, ForumThread),
            total_posts=await self._count(db, ForumPost),
        )

    async def audit_logs(
        self, db: AsyncSession, page: int = 1, limit: int = 20, action: Optional[str] = None
    ) -> AuditLogListResponse:
        filters = [AuditLog.action == action] if action else []
        total = await self._count(db, AuditLog, *filters)
        result = await db.execute(
            select(AuditLog)
            .where(*filters)
            .order_by(AuditLog.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return AuditLogListResponse(
            logs=[AuditLogItem.model_validate(log) for log in result.scalars().all()],
            page=page,
            limit=limit,
            total=total,
        )


admin_service = AdminService()
