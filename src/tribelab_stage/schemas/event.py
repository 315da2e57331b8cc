"""Calendar event schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: str = ""
    start: datetime
    end: datetime
    all_day: bool = False
    location: str | None = None
    color: str = Field("#3788d8", pattern=r"^#[0-9A-Fa-f]{6}$")


class EventUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    all_day: bool | None = None
    location: str | None = None
    color: str | None = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


class EventResponse(BaseModel):
    id: int
    community_id: int
    created_by: int
    title: str
    description: str
    start: datetime
    end: datetime
    all_day: bool
    location: str | None
    color: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
