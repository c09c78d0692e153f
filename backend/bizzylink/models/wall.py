"""
BizzyLink Backend: Profile Wall Models
========================================

Tables: wall_posts, wall_post_likes, wall_comments, wall_post_views.

    wall_posts
    ├── author_id      who wrote it
    ├── recipient_id   whose profile wall it is on
    ├── content        up to 500 chars ("" for a bare repost)
    ├── type           user | system | achievement | friend | game
    ├── original_post_id / is_repost / repost_message
    └── like_count, comment_count, repost_count, view_count

A repost is a post on the reposter's own wall pointing at the original.
Each user reposts a given post at most once. Counters are denormalized and
moved with single UPDATE statements by WallService.
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
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from bizzylink.database import Base, new_id, utcnow

WALL_POST_TYPES = ("user", "system", "achievement", "friend", "game")
SYSTEM_POST_TYPES = WALL_POST_TYPES[1:]


class WallPost(Base):
    __tablename__ = "wall_posts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    # Extra fields for system posts (achievement name, game stats, ...)
    data: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    original_post_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("wall_posts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_repost: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    repost_message: Mapped[str | None] = mapped_column(String(200), nullable=True)

    like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    repost_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "type IN ('user', 'system', 'achievement', 'friend', 'game')",
            name="ck_wall_posts_type",
        ),
        UniqueConstraint("author_id", "original_post_id", name="uq_wall_posts_one_repost"),
        Index("idx_wall_posts_recipient_created", "recipient_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<WallPost(id={self.id}, recipient={self.recipient_id}, repost={self.is_repost})>"


class WallPostLike(Base):
    __tablename__ = "wall_post_likes"

    post_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("wall_posts.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )


class WallComment(Base):
    __tablename__ = "wall_comments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    post_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("wall_posts.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(String(300), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_wall_comments_post_created", "post_id", "created_at"),
    )


class WallPostView(Base):
    """One counted view; a viewer (or anonymous IP) counts once per hour."""

    __tablename__ = "wall_post_views"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    post_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("wall_posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    viewed_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_wall_post_views_post_viewed", "post_id", "viewed_at"),
    )
