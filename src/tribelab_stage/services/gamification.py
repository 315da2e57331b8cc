"""Points, levels and leaderboards."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from tribelab_stage.db.time import utcnow
from tribelab_stage.models import CommunityMember, LevelConfig, User

logger = logging.getLogger(__name__)

LEADERBOARD_ALLTIME = "alltime"
LEADERBOARD_30DAY = "30day"


@dataclass(frozen=True)
class Level:
    level: int
    name: str
    points_required: int


DEFAULT_LEVELS: tuple[Level, ...] = (
    Level(1, "Newbie", 0),
    Level(2, "Contributor", 5),
    Level(3, "Active Member", 20),
    Level(4, "Engaged User", 65),
    Level(5, "Community Helper", 155),
    Level(6, "Expert", 515),
    Level(7, "Mentor", 2015),
    Level(8, "Leader", 8015),
    Level(9, "Legend", 33015),
)


@dataclass(frozen=True)
class LevelStatus:
    level: int
    name: str
    points_required: int
    points_to_next: int
    progress: int


@dataclass(frozen=True)
class PointsAward:
    points_awarded: int
    total_points: int
    monthly_points: int
    level: LevelStatus
    leveled_up: bool


class LevelTableError(ValueError):
    """Raised when a custom level table is malformed."""


def calculate_level(points: int, levels: tuple[Level, ...] | list[Level] = DEFAULT_LEVELS) -> LevelStatus:
    """Place ``points`` in a level table.

    ``progress`` is the rounded percentage of the way from the current
    level's threshold to the next one, and 100 at the top level.
    """
    current = levels[0]
    for level in levels:
        if points >= level.points_required:
            current = level
        else:
            break

    next_level = next((lvl for lvl in levels if lvl.level == current.level + 1), None)
    if next_level is None:
        return LevelStatus(current.level, current.name, current.points_required, 0, 100)

    in_range = points - current.points_required
    span = next_level.points_required - current.points_required
    progress = (200 * in_range + span) // (2 * span)
    return LevelStatus(
        level=current.level,
        name=current.name,
        points_required=current.points_required,
        points_to_next=next_level.points_required - points,
        progress=progress,
    )


def validate_levels(levels: list[Level]) -> list[Level]:
    """Require strictly increasing level numbers and thresholds, starting at 0 points."""
    if not levels:
        raise LevelTableError("At least one level is required")
    ordered = sorted(levels, key=lambda lvl: lvl.level)
    if ordered[0].points_required != 0:
        raise LevelTableError("The first level must require 0 points")
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.level != prev.level + 1:
            raise LevelTableError("Level numbers must be consecutive")
        if cur.points_required <= prev.points_required:
            raise LevelTableError("Points required must strictly increase")
    return ordered


def _to_levels(raw: list[dict[str, Any]]) -> list[Level]:
    return [Level(int(r["level"]), str(r["name"]), int(r["points_required"])) for r in raw]


def get_levels(db: Session, community_id: int | None) -> list[Level]:
    """Return the community's custom level table, or the defaults."""
    if community_id is not None:
        config = db.query(LevelConfig).filter(LevelConfig.community_id == community_id).first()
        if config and config.levels:
            return _to_levels(config.levels)
    return list(DEFAULT_LEVELS)


def set_levels(db: Session, community_id: int, levels: list[Level]) -> list[Level]:
    ordered = validate_levels(levels)
    payload = [
        {"level": lvl.level, "name": lvl.name, "points_required": lvl.points_required}
        for lvl in ordered
    ]
    config = db.query(LevelConfig).filter(LevelConfig.community_id == community_id).first()
    if config is None:
        config = LevelConfig(community_id=community_id, levels=payload)
        db.add(config)
    else:
        config.levels = payload
    return ordered


def award_points(
    db: Session,
    user: User,
    points: int,
    community_id: int | None = None,
) -> PointsAward:
    """Add (or with a negative value, remove) points. Totals never drop below zero."""
    previous_level = user.level or 1
    user.points = max(0, (user.points or 0) + points)
    user.monthly_points = max(0, (user.monthly_points or 0) + points)

    status = calculate_level(user.points, get_levels(db, community_id))
    user.level = status.level
    leveled_up = status.level > previous_level
    if leveled_up:
        logger.info("User %s reached level %s (%s)", user.id, status.level, status.name)
    return PointsAward(
        points_awarded=points,
        total_points=user.points,
        monthly_points=user.monthly_points,
        level=status,
        leveled_up=leveled_up,
    )


def leaderboard(
    db: Session,
    community_id: int,
    admin_id: int,
    period: str = LEADERBOARD_ALLTIME,
    limit: int = 10,
) -> list[tuple[int, User]]:
    """Return ``(rank, user)`` pairs for members with positive points."""
    column = User.monthly_points if period == LEADERBOARD_30DAY else User.points
    member_ids = {
        row.user_id
        for row in db.query(CommunityMember.user_id).filter(
            CommunityMember.community_id == community_id
        )
    }
    member_ids.add(admin_id)
    users = (
        db.query(User)
        .filter(User.id.in_(member_ids), column > 0)
        .order_by(column.desc(), User.id)
        .limit(limit)
        .all()
    )
    return [(index + 1, user) for index, user in enumerate(users)]


def reset_monthly_points(db: Session) -> int:
    """Zero every user's monthly points. Returns the number of users reset."""
    now = utcnow()
    count = (
        db.query(User)
        .filter(User.monthly_points != 0)
        .update(
            {User.monthly_points: 0, User.last_points_reset: now},
            synchronize_session=False,
        )
    )
    db.commit()
    logger.info("Reset monthly points for %s users", count)
    return count
