"""Payment plans and gateway-mirrored transactions."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tribelab_stage.db.session import Base
from tribelab_stage.db.time import utcnow
from tribelab_stage.db.types import UTCDateTime

PLAN_INTERVAL_MONTHLY = "monthly"
PLAN_INTERVAL_YEARLY = "yearly"
PLAN_INTERVAL_ONE_TIME = "one_time"
PLAN_INTERVALS = (PLAN_INTERVAL_MONTHLY, PLAN_INTERVAL_YEARLY, PLAN_INTERVAL_ONE_TIME)

TX_CREATED = "created"
TX_AUTHORIZED = "authorized"
TX_CAPTURED = "captured"
TX_REFUNDED = "refunded"
TX_FAILED = "failed"

PAYMENT_TYPE_PLATFORM = "platform"
PAYMENT_TYPE_COMMUNITY = "community"
PAYMENT_TYPE_COMMUNITY_SUBSCRIPTION = "community_subscription"


class PaymentPlan(Base):
    """Purchasable plan for platform access or a paid community."""

    __tablename__ = "payment_plan"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Minor currency units.
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="INR")
    interval: Mapped[str] = mapped_column(String(16), nullable=False, default=PLAN_INTERVAL_MONTHLY)
    interval_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    community_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("community.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    features: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class Transaction(Base):
    """Local mirror of a gateway order and its payment."""

    __tablename__ = "payment_transaction"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    payment_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    signature: Mapped[str | None] = mapped_column(String(128), nullable=True)
    # Minor currency units.
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="INR")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=TX_CREATED)
    payment_type: Mapped[str] = mapped_column(String(32), nullable=False)
    payer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False, index=True
    )
    payee_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=True, index=True
    )
    community_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("community.id", ondelete="SET NULL"), nullable=True
    )
    plan_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("payment_plan.id", ondelete="SET NULL"), nullable=True
    )
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )
