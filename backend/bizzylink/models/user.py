"""
BizzyLink Backend: User Model
===============================

What:  SQLAlchemy ORM model for the `users` table plus the per-user
       reputation, vouch and coin-transfer tables.
Who:   Used by every service; most requests start by loading a User.

Minecraft link state:
    A user is linked exactly when `minecraft_uuid` is set. There is no
    separate "linked" flag; `is_linked` is derived. The UUID column is unique,
    so one Minecraft identity maps to at most one account.

Authority:
    `role` (site-wide), `forum_rank` (forum-only) and four explicit permission
    flags. When no flag is set the effective permissions are derived from
    role and forum rank (see `effective_permissions`).
"""

import uuid
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from bizzylink.database import Base, new_id, utcnow


ROLES = ("user", "moderator", "admin")
FORUM_RANKS = ("user", "trusted", "moderator", "admin")
LUCKPERMS_GROUPS = ("default", "vip", "mvp", "staff", "moderator", "admin", "owner")
ACCOUNT_STATUSES = ("active", "suspended", "banned")
PROFILE_VISIBILITIES = ("public", "friends", "private")

PERMISSION_FLAGS = (
    "can_access_admin",
    "can_moderate_forums",
    "can_manage_users",
    "can_edit_server",
)

DEFAULT_PRIVACY_SETTINGS: Dict[str, Any] = {
    "profile_visibility": "public",
    "allow_friend_requests": True,
    "allow_followers": True,
    "show_reputation": True,
    "show_vouches": True,
    "show_balance": False,
}

DEFAULT_NOTIFICATION_SETTINGS: Dict[str, bool] = {
    "friend_requests": True,
    "new_followers": True,
    "friend_activity": True,
    "in_game": True,
    "reputation": True,
    "vouches": True,
    "donations": True,
    "wall_activity": True,
}


def _default_privacy() -> Dict[str, Any]:
    return dict(DEFAULT_PRIVACY_SETTINGS)


def _default_notifications() -> Dict[str, bool]:
    return dict(DEFAULT_NOTIFICATION_SETTINGS)


class User(Base):
    """A website account, optionally linked to a Minecraft player."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)

    # ── Identity ──────────────────────────────────────────────────────────
    username: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)

    # ── Authority ─────────────────────────────────────────────────────────
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    forum_rank: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    luckperms_group: Mapped[str] = mapped_column(String(20), nullable=False, default="default")
    can_access_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_moderate_forums: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_manage_users: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_edit_server: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # ── Account State ─────────────────────────────────────────────────────
    account_status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    failed_login_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lock_until: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    last_login: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    last_login_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    registration_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_active: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # ── Minecraft Link ────────────────────────────────────────────────────
    minecraft_uuid: Mapped[str | None] = mapped_column(String(36), nullable=True, unique=True)
    minecraft_username: Mapped[str | None] = mapped_column(String(16), nullable=True)
    linked_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    last_seen: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # ── Forum Profile ─────────────────────────────────────────────────────
    post_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    thread_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reputation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vouches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    signature: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    bio: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)

    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    privacy_settings: Mapped[Dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=_default_privacy
    )
    notification_settings: Mapped[Dict[str, bool]] = mapped_column(
        JSON, nullable=False, default=_default_notifications
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
        Index("idx_users_created_at", "created_at"),
        Index("idx_users_minecraft_username", "minecraft_username"),
    )

    # ── Derived State ─────────────────────────────────────────────────────
    @property
    def is_linked(self) -> bool:
        return self.minecraft_uuid is not None

    @property
    def has_explicit_permissions(self) -> bool:
        return any(getattr(self, flag) for flag in PERMISSION_FLAGS)

    def effective_permissions(self) -> Dict[str, bool]:
        """
        Permission flags as the rest of the app should see them.

        Explicit flags win. Without any, admins (by role or forum rank) get
        everything and moderators get admin-panel access plus forum moderation.
        """
        if self.has_explicit_permissions:
            return {flag: bool(getattr(self, flag)) for flag in PERMISSION_FLAGS}

        perms = {flag: False for flag in PERMISSION_FLAGS}
        if "admin" in (self.role, self.forum_rank):
            perms = {flag: True for flag in PERMISSION_FLAGS}
        elif "moderator" in (self.role, self.forum_rank):
            perms["can_access_admin"] = True
            perms["can_moderate_forums"] = True
        return perms

    @property
    def is_admin(self) -> bool:
        return (
            self.role == "admin"
            or self.forum_rank == "admin"
            or self.can_access_admin
        )

    @property
    def is_user_manager(self) -> bool:
        """May edit, ban or delete other accounts."""
        return self.role == "admin" or self.effective_permissions()["can_manage_users"]

    @property
    def is_forum_admin(self) -> bool:
        return self.forum_rank == "admin" or self.role == "admin"

    @property
    def is_forum_moderator(self) -> bool:
        return (
            self.forum_rank in ("moderator", "admin")
            or self.role == "admin"
            or self.can_moderate_forums
        )

    def privacy(self, key: str) -> Any:
        settings = self.privacy_settings or {}
        return settings.get(key, DEFAULT_PRIVACY_SETTINGS.get(key))

    def wants_notification(self, key: str) -> bool:
        settings = self.notification_settings or {}
        return bool(settings.get(key, DEFAULT_NOTIFICATION_SETTINGS.get(key, True)))

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"


class ReputationVote(Base):
    """One +1/-1 vote from a giver to a receiver; re-voting replaces the value."""

    __tablename__ = "reputation_votes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    giver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("giver_id", "receiver_id", name="uq_reputation_giver_receiver"),
        CheckConstraint("value IN (-1, 1)", name="ck_reputation_value"),
    )


class Vouch(Base):
    __tablename__ = "vouches"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    giver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    context: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("giver_id", "receiver_id", name="uq_vouch_giver_receiver"),
    )


class Transaction(Base):
    """A coin donation from one user to another."""

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    sender_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    recipient_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )
