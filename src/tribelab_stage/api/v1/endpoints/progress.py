# src/tribelab_stage/api/v1/endpoints/progress.py
"""Lesson completion and course progress."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from tribelab_stage.models import UserProgress
from tribelab_stage.schemas.course import ProgressResponse
from tribelab_stage.services import progress_service

from ..dependencies import CurrentUserDep, SessionDep
from .courses import load_course, load_lesson

router = APIRouter(tags=["progress"])


def _to_response(course_id: int, progress: UserProgress | None) -> ProgressResponse:
    if progress is None:
        return ProgressResponse(
            course_id=course_id,
            completed_lessons=[],
            last_accessed_lesson_id=None,
            progress=0,
            is_completed=False,
            completed_at=None,
        )
    return ProgressResponse(
        course_id=progress.course_id,
        completed_lessons=list(progress.completed_lessons or []),
        last_accessed_lesson_id=progress.last_accessed_lesson_id,
        progress=progress.progress,
        is_completed=progress.is_completed,
        completed_at=progress.completed_at,
    )


@router.post("/lessons/{lesson_id}/complete", response_model=ProgressResponse)
async def complete_lesson(lesson_id: int, current_user: CurrentUserDep, db: SessionDep) -> ProgressResponse:
    """Mark a lesson complete for the caller; repeating the call changes nothing."""
    lesson, _community, _manager = load_lesson(db, lesson_id, current_user)
    try:
        progress = progress_service.complete_lesson(db, current_user.id, lesson)
    except progress_service.NotEnrolledError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    return _to_response(lesson.course_id, progress)


@router.get("/courses/{course_id}/progress", response_model=ProgressResponse)
async def course_progress(course_id: int, current_user: CurrentUserDep, db: SessionDep) -> ProgressResponse:
    course, _community, _manager = load_course(db, course_id, current_user)
    return _to_response(course.id, progress_service.get_progress(db, current_user.id, course.id))
