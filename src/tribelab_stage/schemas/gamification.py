"""Gamification schemas: levels, progress and leaderboards."""

from pydantic import BaseModel, Field


class LevelDefinition(BaseModel):
    """One step of a level table."""

    level: int = Field(..., ge=1)
    name: str = Field(..., min_length=1, max_length=64)
    points_required: int = Field(..., ge=0)


class LevelsUpdate(BaseModel):
    levels: list[LevelDefinition] = Field(..., min_length=1)


class LevelProgress(BaseModel):
    """Where a point total sits in a level table."""

    level: int
    name: str
    points_required: int
    points_to_next: int
    progress: int


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    username: str
    name: str | None
    profile_image: str | None
    points: int
    level: int


class UserGamificationResponse(BaseModel):
    user_id: int
    points: int
    monthly_points: int
    level: LevelProgress
