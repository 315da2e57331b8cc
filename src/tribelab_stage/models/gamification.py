"""Per-community level tables."""
from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from tribelab_stage.db.session import Base


class LevelConfig(Base):
    """Custom level names and thresholds overriding the platform defaults."""

    __tablename__ = "level_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    community_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("community.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    # List of {"level", "name", "points_required"} dicts.
    levels: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
