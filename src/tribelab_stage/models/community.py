"""SQLAlchemy models for communities, membership and the join queue."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tribelab_stage.db.session import Base
from tribelab_stage.db.time import utcnow
from tribelab_stage.db.types import UTCDateTime

PAYMENT_STATUS_UNPAID = "unpaid"
PAYMENT_STATUS_TRIAL = "trial"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_EXPIRED = "expired"
PAYMENT_STATUS_SUSPENDED = "suspended"
PAYMENT_STATUSES = (
    PAYMENT_STATUS_UNPAID,
    PAYMENT_STATUS_TRIAL,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_EXPIRED,
    PAYMENT_STATUS_SUSPENDED,
)

MEMBER_ROLE_MEMBER = "member"
MEMBER_ROLE_SUB_ADMIN = "sub_admin"

JOIN_REQUEST_PENDING = "pending"
JOIN_REQUEST_APPROVED = "approved"
JOIN_REQUEST_REJECTED = "rejected"


class Community(Base):
    """Community owned by a single admin, with billing and trial state."""

    __tablename__ = "community"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    admin_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False, index=True
    )

    payment_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=PAYMENT_STATUS_UNPAID
    )
    subscription_end_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    subscription_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    subscription_status: Mapped[str | None] = mapped_column(String(32), nullable=True)

    trial_activated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    trial_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    trial_cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    trial_start_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    trial_end_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    suspended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    suspended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    suspension_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    subscription_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Minor currency units.
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="INR")
    questions: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class CommunityMember(Base):
    """Membership row; sub-admins are members with an elevated role."""

    __tablename__ = "community_member"
    __table_args__ = (UniqueConstraint("community_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    community_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("community.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=MEMBER_ROLE_MEMBER)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class JoinRequest(Base):
    """Queued request to join a community, with answers to its questions."""

    __tablename__ = "join_request"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    community_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("community.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=JOIN_REQUEST_PENDING)
    answers: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    decided_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
