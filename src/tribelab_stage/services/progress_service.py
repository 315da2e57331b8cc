"""Lesson completion and course progress."""
from __future__ import annotations

from sqlalchemy.orm import Session

from tribelab_stage.db.time import utcnow
from tribelab_stage.models import CourseEnrollment, Lesson, Module, UserProgress

COMPLETE = 100


class NotEnrolledError(PermissionError):
    """Raised when progress is recorded for a course the user is not enrolled in."""


def is_enrolled(db: Session, user_id: int, course_id: int) -> bool:
    return (
        db.query(CourseEnrollment.id)
        .filter(CourseEnrollment.user_id == user_id, CourseEnrollment.course_id == course_id)
        .first()
        is not None
    )


def published_lesson_ids(db: Session, course_id: int) -> set[int]:
    """Ids of lessons that count towards completion: published lessons in published modules."""
    rows = (
        db.query(Lesson.id)
        .join(Module, Module.id == Lesson.module_id)
        .filter(
            Lesson.course_id == course_id,
            Lesson.is_published.is_(True),
            Module.is_published.is_(True),
        )
        .all()
    )
    return {row.id for row in rows}


def percentage(completed: int, total: int) -> int:
    """Whole-number percentage, rounding halves up."""
    if total <= 0:
        return 0
    return min(COMPLETE, (200 * completed + total) // (2 * total))


def get_progress(db: Session, user_id: int, course_id: int) -> UserProgress | None:
    return (
        db.query(UserProgress)
        .filter(UserProgress.user_id == user_id, UserProgress.course_id == course_id)
        .first()
    )


def complete_lesson(db: Session, user_id: int, lesson: Lesson) -> UserProgress:
    """Mark ``lesson`` complete. Repeating the call leaves the record unchanged."""
    if not is_enrolled(db, user_id, lesson.course_id):
        raise NotEnrolledError("You are not enrolled in this course")

    progress = get_progress(db, user_id, lesson.course_id)
    if progress is None:
        progress = UserProgress(user_id=user_id, course_id=lesson.course_id, completed_lessons=[])
        db.add(progress)

    completed = list(progress.completed_lessons or [])
    if lesson.id not in completed:
        completed.append(lesson.id)
        progress.completed_lessons = completed
    progress.last_accessed_lesson_id = lesson.id

    countable = published_lesson_ids(db, lesson.course_id)
    progress.progress = percentage(len(countable.intersection(completed)), len(countable))
    if progress.progress >= COMPLETE and not progress.is_completed:
        progress.is_completed = True
        progress.completed_at = utcnow()

    db.commit()
    db.refresh(progress)
    return progress


def forget_lessons(db: Session, course_id: int, lesson_ids: set[int]) -> None:
    """Drop deleted lessons from every progress record of the course and recompute.

    The caller commits. A record reaching 100% becomes completed; one that drops
    below keeps its completion flag.
    """
    if not lesson_ids:
        return
    countable = published_lesson_ids(db, course_id) - lesson_ids
    for progress in db.query(UserProgress).filter(UserProgress.course_id == course_id).all():
        completed = [lesson_id for lesson_id in progress.completed_lessons or [] if lesson_id not in lesson_ids]
        progress.completed_lessons = completed
        if progress.last_accessed_lesson_id in lesson_ids:
            progress.last_accessed_lesson_id = None
        progress.progress = percentage(len(countable.intersection(completed)), len(countable))
        if progress.progress >= COMPLETE and not progress.is_completed:
            progress.is_completed = True
            progress.completed_at = utcnow()
