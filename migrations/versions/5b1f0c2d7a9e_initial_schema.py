"""initial schema

Revision ID: 5b1f0c2d7a9e
Revises:
Create Date: 2026-10-19 09:12:44.503118

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5b1f0c2d7a9e"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _fk(name: str, target: str, *, nullable: bool = False, ondelete: str | None = "CASCADE") -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    """Create every table of the community platform."""
    op.create_table(
        "user_account",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("profile_image", sa.Text(), nullable=True),
        sa.Column("slug", sa.String(80), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("monthly_points", sa.Integer(), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        _ts("last_points_reset", nullable=True),
        sa.Column("subscription_status", sa.String(16), nullable=False),
        _ts("subscription_end_date", nullable=True),
        sa.Column("trial_used", sa.Boolean(), nullable=False),
        _ts("trial_start_date", nullable=True),
        _ts("trial_end_date", nullable=True),
        sa.Column("gateway_customer_id", sa.String(64), nullable=True),
        _ts("created_at"),
        sa.UniqueConstraint("slug"),
    )
    op.create_index("ix_user_account_username", "user_account", ["username"], unique=True)
    op.create_index("ix_user_account_email", "user_account", ["email"], unique=True)

    op.create_table(
        "user_follow",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("follower_id", "user_account.id"),
        _fk("following_id", "user_account.id"),
        _ts("created_at"),
        sa.UniqueConstraint("follower_id", "following_id"),
    )

    op.create_table(
        "community",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        _fk("admin_id", "user_account.id", ondelete=None),
        sa.Column("payment_status", sa.String(16), nullable=False),
        _ts("subscription_end_date", nullable=True),
        sa.Column("subscription_id", sa.String(64), nullable=True),
        sa.Column("subscription_status", sa.String(32), nullable=True),
        sa.Column("trial_activated", sa.Boolean(), nullable=False),
        sa.Column("trial_used", sa.Boolean(), nullable=False),
        sa.Column("trial_cancelled", sa.Boolean(), nullable=False),
        _ts("trial_start_date", nullable=True),
        _ts("trial_end_date", nullable=True),
        sa.Column("suspended", sa.Boolean(), nullable=False),
        _ts("suspended_at", nullable=True),
        sa.Column("suspension_reason", sa.Text(), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False),
        sa.Column("payment_enabled", sa.Boolean(), nullable=False),
        sa.Column("subscription_required", sa.Boolean(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("questions", sa.JSON(), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_community_slug", "community", ["slug"], unique=True)
    op.create_index("ix_community_admin_id", "community", ["admin_id"])

    op.create_table(
        "community_member",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("community_id", "community.id"),
        _fk("user_id", "user_account.id"),
        sa.Column("role", sa.String(16), nullable=False),
        _ts("joined_at"),
        sa.UniqueConstraint("community_id", "user_id"),
    )

    op.create_table(
        "join_request",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("community_id", "community.id"),
        _fk("user_id", "user_account.id"),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("answers", sa.JSON(), nullable=False),
        _ts("created_at"),
        _ts("decided_at", nullable=True),
    )

    op.create_table(
        "post",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("community_id", "community.id"),
        _fk("author_id", "user_account.id"),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_pinned", sa.Boolean(), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_post_community_id", "post", ["community_id"])

    op.create_table(
        "post_like",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("post_id", "post.id"),
        _fk("user_id", "user_account.id"),
        _ts("created_at"),
        sa.UniqueConstraint("post_id", "user_id"),
    )

    op.create_table(
        "comment",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("post_id", "post.id"),
        _fk("author_id", "user_account.id"),
        _fk("parent_id", "comment.id", nullable=True),
        sa.Column("text", sa.Text(), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_comment_post_id", "comment", ["post_id"])
    op.create_index("ix_comment_parent_id", "comment", ["parent_id"])

    op.create_table(
        "comment_like",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("comment_id", "comment.id"),
        _fk("user_id", "user_account.id"),
        _ts("created_at"),
        sa.UniqueConstraint("comment_id", "user_id"),
    )

    op.create_table(
        "course",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("community_id", "community.id"),
        _fk("created_by", "user_account.id", ondelete=None),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("cover_image", sa.Text(), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        _ts("created_at"),
    )

    op.create_table(
        "course_enrollment",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("course_id", "course.id"),
        _fk("user_id", "user_account.id"),
        _ts("enrolled_at"),
        sa.UniqueConstraint("course_id", "user_id"),
    )

    op.create_table(
        "course_module",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("course_id", "course.id"),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False),
    )

    op.create_table(
        "lesson",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("module_id", "course_module.id"),
        _fk("course_id", "course.id"),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False),
    )

    op.create_table(
        "user_progress",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("user_id", "user_account.id"),
        _fk("course_id", "course.id"),
        sa.Column("completed_lessons", sa.JSON(), nullable=False),
        sa.Column("last_accessed_lesson_id", sa.Integer(), nullable=True),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False),
        _ts("completed_at", nullable=True),
        _ts("updated_at"),
        sa.UniqueConstraint("user_id", "course_id"),
    )

    op.create_table(
        "direct_message",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("sender_id", "user_account.id"),
        _fk("recipient_id", "user_account.id"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_image", sa.Boolean(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False),
        _ts("read_at", nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_direct_message_recipient_id", "direct_message", ["recipient_id"])

    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("recipient_id", "user_account.id"),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=True),
        sa.Column("source_type", sa.String(32), nullable=True),
        _fk("community_id", "community.id", nullable=True),
        _fk("created_by", "user_account.id", nullable=True, ondelete="SET NULL"),
        sa.Column("read", sa.Boolean(), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_notification_recipient_id", "notification", ["recipient_id"])

    op.create_table(
        "community_event",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("community_id", "community.id"),
        _fk("created_by", "user_account.id", ondelete=None),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        _ts("start"),
        _ts("end"),
        sa.Column("all_day", sa.Boolean(), nullable=False),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("color", sa.String(16), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_community_event_start", "community_event", ["start"])

    op.create_table(
        "level_config",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("community_id", "community.id"),
        sa.Column("levels", sa.JSON(), nullable=False),
        sa.UniqueConstraint("community_id"),
    )

    op.create_table(
        "payment_plan",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("interval", sa.String(16), nullable=False),
        sa.Column("interval_count", sa.Integer(), nullable=False),
        _fk("community_id", "community.id", nullable=True),
        _fk("created_by", "user_account.id", ondelete=None),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("features", sa.JSON(), nullable=False),
        _ts("created_at"),
    )

    op.create_table(
        "payment_transaction",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.String(64), nullable=True),
        sa.Column("payment_id", sa.String(64), nullable=True),
        sa.Column("signature", sa.String(128), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("payment_type", sa.String(32), nullable=False),
        _fk("payer_id", "user_account.id", ondelete=None),
        _fk("payee_id", "user_account.id", nullable=True, ondelete=None),
        _fk("community_id", "community.id", nullable=True, ondelete="SET NULL"),
        _fk("plan_id", "payment_plan.id", nullable=True, ondelete="SET NULL"),
        sa.Column("metadata", sa.JSON(), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("order_id"),
        sa.UniqueConstraint("payment_id"),
    )

    op.create_table(
        "community_subscription",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("gateway_subscription_id", sa.String(64), nullable=False),
        sa.Column("gateway_plan_id", sa.String(64), nullable=True),
        sa.Column("gateway_customer_id", sa.String(64), nullable=True),
        _fk("admin_id", "user_account.id", ondelete=None),
        _fk("community_id", "community.id"),
        sa.Column("status", sa.String(16), nullable=False),
        _ts("current_start", nullable=True),
        _ts("current_end", nullable=True),
        _ts("ended_at", nullable=True),
        _ts("trial_end_date", nullable=True),
        sa.Column("paid_count", sa.Integer(), nullable=False),
        sa.Column("total_count", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("retry_attempts", sa.Integer(), nullable=False),
        sa.Column("max_retry_attempts", sa.Integer(), nullable=False),
        _ts("next_retry_at", nullable=True),
        sa.Column("failure_count", sa.Integer(), nullable=False),
        sa.Column("consecutive_failures", sa.Integer(), nullable=False),
        sa.Column("last_failure_reason", sa.Text(), nullable=True),
        _ts("last_webhook_at", nullable=True),
        sa.Column("suspended", sa.Boolean(), nullable=False),
        _ts("suspended_at", nullable=True),
        sa.Column("suspension_reason", sa.Text(), nullable=True),
        sa.Column("reminders_sent", sa.JSON(), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index(
        "ix_community_subscription_gateway_subscription_id",
        "community_subscription",
        ["gateway_subscription_id"],
        unique=True,
    )

    op.create_table(
        "subscription_event",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("subscription_id", "community_subscription.id"),
        sa.Column("event", sa.String(64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        _ts("received_at"),
    )

    op.create_table(
        "trial_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("user_id", "user_account.id"),
        _fk("community_id", "community.id", nullable=True),
        sa.Column("trial_type", sa.String(16), nullable=False),
        _ts("start_date"),
        _ts("end_date"),
        sa.Column("status", sa.String(16), nullable=False),
        _ts("cancelled_at", nullable=True),
        _ts("converted_at", nullable=True),
        sa.Column("reminders_sent", sa.JSON(), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_trial_history_end_date", "trial_history", ["end_date"])


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    for table in (
        "trial_history",
        "subscription_event",
        "community_subscription",
        "payment_transaction",
        "payment_plan",
        "level_config",
        "community_event",
        "notification",
        "direct_message",
        "user_progress",
        "lesson",
        "course_module",
        "course_enrollment",
        "course",
        "comment_like",
        "comment",
        "post_like",
        "post",
        "join_request",
        "community_member",
        "community",
        "user_follow",
        "user_account",
    ):
        op.drop_table(table)
