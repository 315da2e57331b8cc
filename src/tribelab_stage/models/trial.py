"""Trial activation history used for eligibility and expiry."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tribelab_stage.db.session import Base
from tribelab_stage.db.time import utcnow
from tribelab_stage.db.types import UTCDateTime

TRIAL_TYPE_USER = "user"
TRIAL_TYPE_COMMUNITY = "community"

TRIAL_ACTIVE = "active"
TRIAL_EXPIRED = "expired"
TRIAL_CANCELLED = "cancelled"
TRIAL_CONVERTED = "converted"


class TrialHistory(Base):
    """One row per trial ever activated."""

    __tablename__ = "trial_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True
    )
    community_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("community.id", ondelete="CASCADE"), nullable=True, index=True
    )
    trial_type: Mapped[str] = mapped_column(String(16), nullable=False)
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=TRIAL_ACTIVE)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    converted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    reminders_sent: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    # Audit only; not used for eligibility decisions.
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
