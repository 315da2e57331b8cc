"""In-app notification records."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tribelab_stage.db.session import Base
from tribelab_stage.db.time import utcnow
from tribelab_stage.db.types import UTCDateTime

NOTIFICATION_TYPES = (
    "post",
    "admin-post",
    "mention",
    "comment",
    "like",
    "join-request",
    "follow",
    "trial_started",
    "trial_reminder",
    "trial_expired",
    "trial_cancelled",
    "subscription",
)
SOURCE_TYPES = ("post", "comment", "community", "user", "subscription")


class Notification(Base):
    """Notification delivered to a single recipient."""

    __tablename__ = "notification"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    source_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    source_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    community_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("community.id", ondelete="CASCADE"), nullable=True
    )
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="SET NULL"), nullable=True
    )
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
