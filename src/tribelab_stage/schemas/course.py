"""Course, module, lesson and progress schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CourseCreate(BaseModel):
    """Schema for creating a course inside a community."""

    title: str = Field(..., min_length=1, max_length=300)
    description: str = ""
    cover_image: str | None = None
    is_published: bool = False


class CourseUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = None
    cover_image: str | None = None
    is_published: bool | None = None


class CourseResponse(BaseModel):
    id: int
    community_id: int
    created_by: int
    title: str
    description: str
    cover_image: str | None
    is_published: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ModuleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: str = ""
    order: int = Field(0, ge=0)
    is_published: bool = True


class ModuleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = None
    order: int | None = Field(None, ge=0)
    is_published: bool | None = None


class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    content: str = ""
    video_url: str | None = None
    order: int = Field(0, ge=0)
    is_published: bool = True


class LessonUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    content: str | None = None
    video_url: str | None = None
    order: int | None = Field(None, ge=0)
    is_published: bool | None = None


class LessonResponse(BaseModel):
    id: int
    module_id: int
    course_id: int
    title: str
    content: str
    video_url: str | None
    order: int
    is_published: bool

    model_config = ConfigDict(from_attributes=True)


class ModuleResponse(BaseModel):
    id: int
    course_id: int
    title: str
    description: str
    order: int
    is_published: bool
    lessons: list[LessonResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class CourseDetailResponse(CourseResponse):
    """Course with its ordered modules and lessons."""

    modules: list[ModuleResponse] = Field(default_factory=list)
    is_enrolled: bool = False


class ProgressResponse(BaseModel):
    """Caller's progress through a course."""

    course_id: int
    completed_lessons: list[int]
    last_accessed_lesson_id: int | None
    progress: int
    is_completed: bool
    completed_at: datetime | None
