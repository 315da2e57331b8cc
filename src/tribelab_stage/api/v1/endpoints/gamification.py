# src/tribelab_stage/api/v1/endpoints/gamification.py
"""Levels, leaderboards and per-user points."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, HTTPException, Query, status

from tribelab_stage.models import User
from tribelab_stage.schemas.gamification import (
    LeaderboardEntry,
    LevelDefinition,
    LevelProgress,
    LevelsUpdate,
    UserGamificationResponse,
)
from tribelab_stage.services import gamification

from ..dependencies import (
    CurrentUserDep,
    SessionDep,
    ensure_not_suspended,
    get_community_or_404,
    require_admin,
)

router = APIRouter(tags=["gamification"])


def _definitions(levels: list[gamification.Level]) -> list[LevelDefinition]:
    return [
        LevelDefinition(level=lvl.level, name=lvl.name, points_required=lvl.points_required)
        for lvl in levels
    ]


@router.get("/communities/{slug}/levels", response_model=list[LevelDefinition])
async def get_levels(slug: str, _current_user: CurrentUserDep, db: SessionDep) -> list[LevelDefinition]:
    """The community's level table, or the platform defaults."""
    community = get_community_or_404(db, slug)
    return _definitions(gamification.get_levels(db, community.id))


@router.put("/communities/{slug}/levels", response_model=list[LevelDefinition])
async def set_levels(
    slug: str,
    data: LevelsUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> list[LevelDefinition]:
    community = get_community_or_404(db, slug)
    require_admin(community, current_user, "Only the community admin can change levels")
    levels = [
        gamification.Level(lvl.level, lvl.name, lvl.points_required) for lvl in data.levels
    ]
    try:
        saved = gamification.set_levels(db, community.id, levels)
    except gamification.LevelTableError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    return _definitions(saved)


@router.get("/communities/{slug}/leaderboard", response_model=list[LeaderboardEntry])
async def leaderboard(
    slug: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    period: Literal["alltime", "30day"] = Query(gamification.LEADERBOARD_ALLTIME),
    limit: int = Query(10, ge=1, le=100),
) -> list[LeaderboardEntry]:
    """Members ranked by all-time or monthly points."""
    community = get_community_or_404(db, slug)
    ensure_not_suspended(community, current_user)
    ranked = gamification.leaderboard(db, community.id, community.admin_id, period, limit)
    levels = gamification.get_levels(db, community.id)
    return [
        LeaderboardEntry(
            rank=rank,
            user_id=user.id,
            username=user.username,
            name=user.name,
            profile_image=user.profile_image,
            points=user.monthly_points if period == gamification.LEADERBOARD_30DAY else user.points,
            level=gamification.calculate_level(user.points, levels).level,
        )
        for rank, user in ranked
    ]


@router.get("/users/{user_id}/gamification", response_model=UserGamificationResponse)
async def user_gamification(
    user_id: int,
    _current_user: CurrentUserDep,
    db: SessionDep,
    community_slug: str | None = Query(None, description="Use this community's level table"),
) -> UserGamificationResponse:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    community_id = get_community_or_404(db, community_slug).id if community_slug else None
    level = gamification.calculate_level(user.points, gamification.get_levels(db, community_id))
    return UserGamificationResponse(
        user_id=user.id,
        points=user.points,
        monthly_points=user.monthly_points,
        level=LevelProgress(
            level=level.level,
            name=level.name,
            points_required=level.points_required,
            points_to_next=level.points_to_next,
            progress=level.progress,
        ),
    )
