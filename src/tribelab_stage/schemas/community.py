# src/tribelab_stage/schemas/community.py
"""Community-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CommunityCreate(BaseModel):
    """Schema for creating a new community."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    image_url: str | None = None
    is_private: bool = False
    payment_enabled: bool = False
    subscription_required: bool = False
    price: int = Field(0, ge=0, description="Price in minor currency units")
    currency: str = Field("INR", min_length=3, max_length=8)
    questions: list[str] = Field(default_factory=list)


class CommunitySettingsUpdate(BaseModel):
    """Partial update of community settings (admin only)."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, min_length=1)
    image_url: str | None = None
    is_private: bool | None = None
    payment_enabled: bool | None = None
    subscription_required: bool | None = None
    price: int | None = Field(None, ge=0)
    currency: str | None = Field(None, min_length=3, max_length=8)
    questions: list[str] | None = None


class SlugUpdate(BaseModel):
    """Request to change a community's slug."""

    slug: str = Field(..., min_length=1, max_length=120)


class CommunityResponse(BaseModel):
    """Schema for community information returned by the API."""

    id: int
    name: str
    slug: str
    description: str
    image_url: str | None
    admin_id: int
    payment_status: str
    subscription_end_date: datetime | None
    trial_end_date: datetime | None
    suspended: bool
    is_private: bool
    payment_enabled: bool
    subscription_required: bool
    price: int
    currency: str
    questions: list[str]
    created_at: datetime
    member_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class MemberResponse(BaseModel):
    """Member of a community with their effective role."""

    user_id: int
    username: str
    name: str | None
    profile_image: str | None
    role: str
    joined_at: datetime | None


class JoinRequestCreate(BaseModel):
    """Answers submitted with a join request."""

    answers: list[str] = Field(default_factory=list)


class JoinRequestResponse(BaseModel):
    """Queued join request."""

    id: int
    community_id: int
    user_id: int
    username: str | None = None
    status: str
    answers: list[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class JoinRequestDecision(BaseModel):
    """Admin decision on a pending join request."""

    action: str = Field(..., description="'approve' or 'reject'")


class JoinPaidRequest(BaseModel):
    """Join a paid community with a captured transaction."""

    transaction_id: int


class SubAdminRequest(BaseModel):
    """Target member for a sub-admin change."""

    user_id: int
