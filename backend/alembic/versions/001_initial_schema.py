"""Initial BizzyLink schema

Revision ID: 001
Revises: None
Create Date: 2026-01-10 00:00:00.000000+00:00

What:  Creates every table the site needs: accounts and their reputation,
       vouch and coin ledgers; the forum; the social graph; Minecraft link
       codes; notifications and the admin audit log.

Rollback: downgrade() drops all tables (destructive: all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


UUID = postgresql.UUID(as_uuid=True)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.TIMESTAMP(timezone=True), nullable=True)
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def _user_fk(name: str, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(
        name,
        UUID,
        sa.ForeignKey("users.id", ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    # ── Accounts ──────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", UUID, server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("username", sa.String(20), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("password_hash", sa.String(128), nullable=False),

        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'user'")),
        sa.Column("forum_rank", sa.String(20), nullable=False, server_default=sa.text("'user'")),
        sa.Column("luckperms_group", sa.String(20), nullable=False, server_default=sa.text("'default'")),
        sa.Column("can_access_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_moderate_forums", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_manage_users", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_edit_server", sa.Boolean(), nullable=False, server_default=sa.false()),

        sa.Column("account_status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("failed_login_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("lock_until", nullable=True),
        _timestamp("last_login", nullable=True),
        sa.Column("last_login_ip", sa.String(64), nullable=True),
        sa.Column("registration_ip", sa.String(64), nullable=True),
        _timestamp("last_active", nullable=True),

        # Linked exactly when minecraft_uuid is set
        sa.Column("minecraft_uuid", sa.String(36), nullable=True),
        sa.Column("minecraft_username", sa.String(16), nullable=True),
        _timestamp("linked_at", nullable=True),
        _timestamp("last_seen", nullable=True),

        sa.Column("post_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("thread_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reputation", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("vouches", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("signature", sa.String(500), nullable=False, server_default=sa.text("''")),
        sa.Column("bio", sa.String(500), nullable=False, server_default=sa.text("''")),
        sa.Column("avatar", sa.String(500), nullable=True),
        sa.Column("balance", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("privacy_settings", sa.JSON(), nullable=False),
        sa.Column("notification_settings", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),

        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("minecraft_uuid"),
        sa.CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
    )
    op.create_index("idx_users_created_at", "users", ["created_at"])
    op.create_index("idx_users_minecraft_username", "users", ["minecraft_username"])

    op.create_table(
        "reputation_votes",
        sa.Column("id", UUID, nullable=False),
        _user_fk("giver_id"),
        _user_fk("receiver_id"),
        sa.Column("value", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("giver_id", "receiver_id", name="uq_reputation_giver_receiver"),
        sa.CheckConstraint("value IN (-1, 1)", name="ck_reputation_value"),
    )
    op.create_index("ix_reputation_votes_receiver_id", "reputation_votes", ["receiver_id"])

    op.create_table(
        "vouches",
        sa.Column("id", UUID, nullable=False),
        _user_fk("giver_id"),
        _user_fk("receiver_id"),
        sa.Column("context", sa.String(500), nullable=False, server_default=sa.text("''")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("giver_id", "receiver_id", name="uq_vouch_giver_receiver"),
    )
    op.create_index("ix_vouches_receiver_id", "vouches", ["receiver_id"])

    op.create_table(
        "transactions",
        sa.Column("id", UUID, nullable=False),
        _user_fk("sender_id", nullable=True, ondelete="SET NULL"),
        _user_fk("recipient_id", nullable=True, ondelete="SET NULL"),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False, server_default=sa.text("''")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_sender_id", "transactions", ["sender_id"])
    op.create_index("ix_transactions_recipient_id", "transactions", ["recipient_id"])

    # ── Forum ─────────────────────────────────────────────────────────────
    op.create_table(
        "forum_categories",
        sa.Column("id", UUID, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(120), nullable=False),
        sa.Column("description", sa.String(500), nullable=False, server_default=sa.text("''")),
        sa.Column("icon", sa.String(50), nullable=False, server_default=sa.text("'chat'")),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("requires_auth", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("required_rank", sa.String(20), nullable=True),
        sa.Column("thread_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("post_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )

    op.create_table(
        "forum_threads",
        sa.Column("id", UUID, nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(120), nullable=False),
        sa.Column(
            "category_id",
            UUID,
            sa.ForeignKey("forum_categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("author_id", nullable=True, ondelete="SET NULL"),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("views", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reply_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tags", sa.JSON(), nullable=False),
        _user_fk("last_post_author_id", nullable=True, ondelete="SET NULL"),
        _timestamp("last_post_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_forum_threads_author_id", "forum_threads", ["author_id"])
    op.create_index(
        "idx_threads_category_listing",
        "forum_threads",
        ["category_id", "is_pinned", "last_post_at"],
    )

    op.create_table(
        "forum_posts",
        sa.Column("id", UUID, nullable=False),
        sa.Column(
            "thread_id",
            UUID,
            sa.ForeignKey("forum_threads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("author_id", nullable=True, ondelete="SET NULL"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_first_post", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("edited_at", nullable=True),
        _user_fk("edited_by_id", nullable=True, ondelete="SET NULL"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_forum_posts_author_id", "forum_posts", ["author_id"])
    op.create_index("idx_posts_thread_created", "forum_posts", ["thread_id", "created_at"])

    op.create_table(
        "post_likes",
        sa.Column(
            "post_id",
            UUID,
            sa.ForeignKey("forum_posts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("user_id"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("post_id", "user_id"),
    )

    # ── Social Graph ──────────────────────────────────────────────────────
    op.create_table(
        "friend_requests",
        sa.Column("id", UUID, nullable=False),
        _user_fk("sender_id"),
        _user_fk("recipient_id"),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_friend_requests_recipient_status",
        "friend_requests",
        ["recipient_id", "status"],
    )

    op.create_table(
        "friendships",
        _user_fk("user_id"),
        _user_fk("friend_id"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("user_id", "friend_id"),
    )

    op.create_table(
        "follows",
        _user_fk("follower_id"),
        _user_fk("followed_id"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("follower_id", "followed_id"),
    )
    op.create_index("idx_follows_followed", "follows", ["followed_id"])

    # ── Minecraft Linking ─────────────────────────────────────────────────
    op.create_table(
        "link_codes",
        sa.Column("id", UUID, nullable=False),
        sa.Column("code", sa.String(16), nullable=False),
        _user_fk("user_id"),
        sa.Column("minecraft_username", sa.String(16), nullable=True),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_index("ix_link_codes_user_id", "link_codes", ["user_id"])

    # ── Notifications and Audit ───────────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column("id", UUID, nullable=False),
        _user_fk("recipient_id"),
        _user_fk("sender_id", nullable=True, ondelete="SET NULL"),
        sa.Column("type", sa.String(50), nullable=False, server_default=sa.text("'system'")),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_notifications_recipient_created",
        "notifications",
        ["recipient_id", "created_at"],
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", UUID, nullable=False),
        _user_fk("admin_id", nullable=True, ondelete="SET NULL"),
        # Not a foreign key: the entry outlives a deleted target user
        sa.Column("user_id", UUID, nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("idx_audit_logs_action", "audit_logs", ["action"])


def downgrade() -> None:
    """Drop every table, children before parents."""
    op.drop_table("audit_logs")
    op.drop_table("notifications")
    op.drop_table("link_codes")
    op.drop_table("follows")
    op.drop_table("friendships")
    op.drop_table("friend_requests")
    op.drop_table("post_likes")
    op.drop_table("forum_posts")
    op.drop_table("forum_threads")
    op.drop_table("forum_categories")
    op.drop_table("transactions")
    op.drop_table("vouches")
    op.drop_table("reputation_votes")
    op.drop_table("users")
