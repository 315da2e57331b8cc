# src/tribelab_stage/api/v1/endpoints/courses.py
"""Courses, their modules and lessons, and enrollment."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Response, status
from sqlalchemy.orm import Session

from tribelab_stage.models import (
    Community,
    Course,
    CourseEnrollment,
    Lesson,
    Module,
    User,
    UserProgress,
)
from tribelab_stage.schemas.common import StatusResponse
from tribelab_stage.schemas.course import (
    CourseCreate,
    CourseDetailResponse,
    CourseResponse,
    CourseUpdate,
    LessonCreate,
    LessonResponse,
    LessonUpdate,
    ModuleCreate,
    ModuleResponse,
    ModuleUpdate,
)
from tribelab_stage.services import membership
from tribelab_stage.services.progress_service import forget_lessons, is_enrolled

from ..dependencies import (
    CurrentUserDep,
    SessionDep,
    ensure_not_suspended,
    get_community_by_id_or_404,
    get_community_or_404,
    require_manager,
    require_member,
)

router = APIRouter(tags=["courses"])
logger = logging.getLogger(__name__)


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


def load_course(db: Session, course_id: int, user: User) -> tuple[Course, Community, bool]:
    """Return the course, its community and whether ``user`` manages it.

    Unpublished courses look missing to everyone but managers.
    """
    course = db.get(Course, course_id)
    if course is None:
        raise _not_found("Course")
    community = get_community_by_id_or_404(db, course.community_id)
    ensure_not_suspended(community, user)
    manager = membership.is_manager(db, community, user.id)
    if not course.is_published and not manager:
        raise _not_found("Course")
    return course, community, manager


def _load_module(db: Session, module_id: int, user: User) -> tuple[Module, Community]:
    module = db.get(Module, module_id)
    if module is None:
        raise _not_found("Module")
    _course, community, _manager = load_course(db, module.course_id, user)
    return module, community


def load_lesson(db: Session, lesson_id: int, user: User) -> tuple[Lesson, Community, bool]:
    lesson = db.get(Lesson, lesson_id)
    if lesson is None:
        raise _not_found("Lesson")
    _course, community, manager = load_course(db, lesson.course_id, user)
    module = db.get(Module, lesson.module_id)
    hidden = not lesson.is_published or module is None or not module.is_published
    if hidden and not manager:
        raise _not_found("Lesson")
    return lesson, community, manager


def _course_detail(db: Session, course: Course, user: User, manager: bool) -> CourseDetailResponse:
    modules = (
        db.query(Module).filter(Module.course_id == course.id).order_by(Module.order, Module.id).all()
    )
    lessons = (
        db.query(Lesson).filter(Lesson.course_id == course.id).order_by(Lesson.order, Lesson.id).all()
    )
    by_module: dict[int, list[LessonResponse]] = {}
    for lesson in lessons:
        if lesson.is_published or manager:
            by_module.setdefault(lesson.module_id, []).append(LessonResponse.model_validate(lesson))

    module_responses = [
        ModuleResponse.model_validate(module).model_copy(
            update={"lessons": by_module.get(module.id, [])}
        )
        for module in modules
        if module.is_published or manager
    ]
    return CourseDetailResponse.model_validate(course).model_copy(
        update={"modules": module_responses, "is_enrolled": is_enrolled(db, user.id, course.id)}
    )


@router.get("/communities/{slug}/courses", response_model=list[CourseResponse])
async def list_courses(slug: str, current_user: CurrentUserDep, db: SessionDep) -> list[Course]:
    """Published courses of a community; managers also see drafts."""
    community = get_community_or_404(db, slug)
    ensure_not_suspended(community, current_user)
    query = db.query(Course).filter(Course.community_id == community.id)
    if not membership.is_manager(db, community, current_user.id):
        query = query.filter(Course.is_published.is_(True))
    return query.order_by(Course.created_at.desc(), Course.id.desc()).all()


@router.post(
    "/communities/{slug}/courses",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_course(
    slug: str,
    data: CourseCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Course:
    community = get_community_or_404(db, slug)
    ensure_not_suspended(community, current_user)
    require_manager(db, community, current_user)
    course = Course(community_id=community.id, created_by=current_user.id, **data.model_dump())
    db.add(course)
    db.commit()
    db.refresh(course)
    logger.info("User %s created course %s in community %s", current_user.id, course.id, community.id)
    return course


@router.get("/courses/{course_id}", response_model=CourseDetailResponse)
async def get_course(course_id: int, current_user: CurrentUserDep, db: SessionDep) -> CourseDetailResponse:
    """Course with its ordered modules and lessons."""
    course, _community, manager = load_course(db, course_id, current_user)
    return _course_detail(db, course, current_user, manager)


@router.patch("/courses/{course_id}", response_model=CourseResponse)
async def update_course(
    course_id: int,
    data: CourseUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Course:
    course, community, _manager = load_course(db, course_id, current_user)
    require_manager(db, community, current_user)
    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(course, key, value)
    db.commit()
    db.refresh(course)
    return course


@router.delete("/courses/{course_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_course(course_id: int, current_user: CurrentUserDep, db: SessionDep) -> Response:
    course, community, _manager = load_course(db, course_id, current_user)
    require_manager(db, community, current_user)
    for model in (UserProgress, CourseEnrollment, Lesson, Module):
        db.query(model).filter(model.course_id == course.id).delete(synchronize_session=False)
    db.delete(course)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/courses/{course_id}/enroll", response_model=StatusResponse)
async def enroll(course_id: int, current_user: CurrentUserDep, db: SessionDep) -> StatusResponse:
    """Enroll in a course; community members only, repeat calls are no-ops."""
    course, community, _manager = load_course(db, course_id, current_user)
    require_member(db, community, current_user)
    if not is_enrolled(db, current_user.id, course.id):
        db.add(CourseEnrollment(course_id=course.id, user_id=current_user.id))
        db.commit()
    return StatusResponse(status="enrolled")


@router.delete("/courses/{course_id}/enroll", response_model=StatusResponse)
async def unenroll(course_id: int, current_user: CurrentUserDep, db: SessionDep) -> StatusResponse:
    course, _community, _manager = load_course(db, course_id, current_user)
    db.query(CourseEnrollment).filter(
        CourseEnrollment.course_id == course.id,
        CourseEnrollment.user_id == current_user.id,
    ).delete(synchronize_session=False)
    db.commit()
    return StatusResponse(status="unenrolled")


@router.post(
    "/courses/{course_id}/modules",
    response_model=ModuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_module(
    course_id: int,
    data: ModuleCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Module:
    course, community, _manager = load_course(db, course_id, current_user)
    require_manager(db, community, current_user)
    module = Module(course_id=course.id, **data.model_dump())
    db.add(module)
    db.commit()
    db.refresh(module)
    return module


@router.patch("/modules/{module_id}", response_model=ModuleResponse)
async def update_module(
    module_id: int,
    data: ModuleUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> ModuleResponse:
    module, community = _load_module(db, module_id, current_user)
    require_manager(db, community, current_user)
    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(module, key, value)
    db.commit()
    db.refresh(module)
    lessons = (
        db.query(Lesson).filter(Lesson.module_id == module.id).order_by(Lesson.order, Lesson.id).all()
    )
    return ModuleResponse.model_validate(module).model_copy(
        update={"lessons": [LessonResponse.model_validate(lesson) for lesson in lessons]}
    )


@router.delete("/modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_module(module_id: int, current_user: CurrentUserDep, db: SessionDep) -> Response:
    """Delete a module together with its lessons."""
    module, community = _load_module(db, module_id, current_user)
    require_manager(db, community, current_user)
    lesson_ids = {row.id for row in db.query(Lesson.id).filter(Lesson.module_id == module.id).all()}
    forget_lessons(db, module.course_id, lesson_ids)
    db.query(Lesson).filter(Lesson.module_id == module.id).delete(synchronize_session=False)
    db.delete(module)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/modules/{module_id}/lessons",
    response_model=LessonResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_lesson(
    module_id: int,
    data: LessonCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Lesson:
    module, community = _load_module(db, module_id, current_user)
    require_manager(db, community, current_user)
    lesson = Lesson(module_id=module.id, course_id=module.course_id, **data.model_dump())
    db.add(lesson)
    db.commit()
    db.refresh(lesson)
    return lesson


@router.get("/lessons/{lesson_id}", response_model=LessonResponse)
async def get_lesson(lesson_id: int, current_user: CurrentUserDep, db: SessionDep) -> Lesson:
    lesson, community, _manager = load_lesson(db, lesson_id, current_user)
    require_member(db, community, current_user)
    return lesson


@router.patch("/lessons/{lesson_id}", response_model=LessonResponse)
async def update_lesson(
    lesson_id: int,
    data: LessonUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Lesson:
    lesson, community, _manager = load_lesson(db, lesson_id, current_user)
    require_manager(db, community, current_user)
    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(lesson, key, value)
    db.commit()
    db.refresh(lesson)
    return lesson


@router.delete("/lessons/{lesson_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_lesson(lesson_id: int, current_user: CurrentUserDep, db: SessionDep) -> Response:
    lesson, community, _manager = load_lesson(db, lesson_id, current_user)
    require_manager(db, community, current_user)
    forget_lessons(db, lesson.course_id, {lesson.id})
    db.delete(lesson)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
