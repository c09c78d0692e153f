"""Profile wall

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Adds profile wall posts (with reposts), their likes, comments and
       view records.

Rollback: downgrade() drops the four wall tables (wall data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


UUID = postgresql.UUID(as_uuid=True)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def _fk(name: str, target: str, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(name, UUID, sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def _counter(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), nullable=False, server_default=sa.text("0"))


def upgrade() -> None:
    op.create_table(
        "wall_posts",
        sa.Column("id", UUID, server_default=sa.text("gen_random_uuid()"), nullable=False),
        _fk("author_id", "users.id"),
        _fk("recipient_id", "users.id"),
        sa.Column("content", sa.String(500), nullable=False, server_default=sa.text("''")),
        sa.Column("image", sa.String(500), nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default=sa.text("'user'")),
        sa.Column("data", sa.JSON(), nullable=True),
        _fk("original_post_id", "wall_posts.id", nullable=True, ondelete="SET NULL"),
        sa.Column("is_repost", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("repost_message", sa.String(200), nullable=True),
        _counter("like_count"),
        _counter("comment_count"),
        _counter("repost_count"),
        _counter("view_count"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "type IN ('user', 'system', 'achievement', 'friend', 'game')",
            name="ck_wall_posts_type",
        ),
        sa.UniqueConstraint("author_id", "original_post_id", name="uq_wall_posts_one_repost"),
    )
    op.create_index("idx_wall_posts_recipient_created", "wall_posts", ["recipient_id", "created_at"])
    op.create_index("ix_wall_posts_original_post_id", "wall_posts", ["original_post_id"])

    op.create_table(
        "wall_post_likes",
        _fk("post_id", "wall_posts.id"),
        _fk("user_id", "users.id"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("post_id", "user_id"),
    )

    op.create_table(
        "wall_comments",
        sa.Column("id", UUID, server_default=sa.text("gen_random_uuid()"), nullable=False),
        _fk("post_id", "wall_posts.id"),
        _fk("author_id", "users.id"),
        sa.Column("content", sa.String(300), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_wall_comments_post_created", "wall_comments", ["post_id", "created_at"])

    op.create_table(
        "wall_post_views",
        sa.Column("id", UUID, server_default=sa.text("gen_random_uuid()"), nullable=False),
        _fk("post_id", "wall_posts.id"),
        _fk("user_id", "users.id", nullable=True),
        sa.Column("ip", sa.String(45), nullable=True),
        _timestamp("viewed_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_wall_post_views_post_viewed", "wall_post_views", ["post_id", "viewed_at"])


def downgrade() -> None:
    op.drop_table("wall_post_views")
    op.drop_table("wall_comments")
    op.drop_table("wall_post_likes")
    op.drop_table("wall_posts")
