"""Gateway-backed recurring community subscriptions."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tribelab_stage.db.session import Base
from tribelab_stage.db.time import utcnow
from tribelab_stage.db.types import UTCDateTime

SUB_CREATED = "created"
SUB_AUTHENTICATED = "authenticated"
SUB_ACTIVE = "active"
SUB_PENDING = "pending"
SUB_HALTED = "halted"
SUB_CANCELLED = "cancelled"
SUB_COMPLETED = "completed"
SUB_EXPIRED = "expired"

# Statuses in which the gateway has not yet charged: the subscription is still in trial.
SUB_TRIAL_STATUSES = (SUB_CREATED, SUB_AUTHENTICATED)
SUB_LIVE_STATUSES = (SUB_CREATED, SUB_AUTHENTICATED, SUB_ACTIVE)


class CommunitySubscription(Base):
    """Recurring subscription paying for a community."""

    __tablename__ = "community_subscription"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    gateway_subscription_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    gateway_plan_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    gateway_customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    admin_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False, index=True
    )
    community_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("community.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=SUB_CREATED)
    current_start: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    current_end: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    trial_end_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    paid_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Minor currency units.
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="INR")

    retry_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retry_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    next_retry_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    consecutive_failures: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_webhook_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    suspended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    suspended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    suspension_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reminders_sent: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )


class SubscriptionEvent(Base):
    """Webhook event recorded against a subscription."""

    __tablename__ = "subscription_event"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subscription_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("community_subscription.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    received_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
