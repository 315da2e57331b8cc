# mypy: ignore-errors
# tests/services/test_levels.py
"""Tests for level calculation and point awards."""

import pytest

from tests.conftest import make_user
from tribelab_stage.services.gamification import (
    DEFAULT_LEVELS,
    Level,
    LevelTableError,
    award_points,
    calculate_level,
    validate_levels,
)


@pytest.mark.parametrize(
    ("points", "level", "points_to_next", "progress"),
    [
        (0, 1, 5, 0),
        (4, 1, 1, 80),
        (5, 2, 15, 0),
        (10, 2, 10, 33),
        (20, 3, 45, 0),
        (33015, 9, 0, 100),
        (50000, 9, 0, 100),
    ],
)
def test_calculate_level(points, level, points_to_next, progress) -> None:
    status = calculate_level(points)
    assert status.level == level
    assert status.points_to_next == points_to_next
    assert status.progress == progress


def test_calculate_level_with_custom_table() -> None:
    levels = [Level(1, "Seed", 0), Level(2, "Sprout", 100)]
    status = calculate_level(50, levels)
    assert (status.name, status.points_to_next, status.progress) == ("Seed", 50, 50)


def test_validate_levels_sorts_by_level() -> None:
    shuffled = [Level(2, "Two", 10), Level(1, "One", 0)]
    assert [lvl.level for lvl in validate_levels(shuffled)] == [1, 2]
    assert validate_levels(list(DEFAULT_LEVELS)) == list(DEFAULT_LEVELS)


@pytest.mark.parametrize(
    "levels",
    [
        [],
        [Level(1, "One", 5)],
        [Level(1, "One", 0), Level(3, "Three", 10)],
        [Level(1, "One", 0), Level(2, "Two", 0)],
    ],
)
def test_validate_levels_rejects_bad_tables(levels) -> None:
    with pytest.raises(LevelTableError):
        validate_levels(levels)


def test_award_points_levels_up(db_session) -> None:
    user = make_user(db_session)
    award = award_points(db_session, user, 5)
    assert award.leveled_up is True
    assert award.level.name == "Contributor"
    assert (user.points, user.monthly_points, user.level) == (5, 5, 2)


def test_award_points_never_negative(db_session) -> None:
    user = make_user(db_session, points=2, monthly_points=1)
    award = award_points(db_session, user, -5)
    assert award.total_points == 0
    assert award.monthly_points == 0
    assert award.leveled_up is False
