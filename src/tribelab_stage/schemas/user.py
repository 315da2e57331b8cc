"""User-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    """Schema for account registration."""

    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str | None = Field(None, max_length=255)

    @field_validator("email")
    @classmethod
    def normalise_email(cls, v: str) -> str:
        return v.strip().lower()


class LoginRequest(BaseModel):
    """Login with either an email address or a username."""

    identifier: str = Field(..., min_length=1, description="Email or username")
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Response returned after successful login."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field("bearer", description="Token type")


class UserResponse(BaseModel):
    """Public user information."""

    id: int
    username: str
    name: str | None
    bio: str | None
    profile_image: str | None
    slug: str
    role: str
    points: int
    level: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CurrentUserResponse(UserResponse):
    """The authenticated user's own account, including billing state."""

    email: str
    monthly_points: int
    subscription_status: str
    subscription_end_date: datetime | None
    trial_used: bool
    trial_start_date: datetime | None
    trial_end_date: datetime | None


class UserSettingsUpdate(BaseModel):
    """Partial update of the caller's profile settings."""

    username: str | None = Field(None, min_length=3, max_length=30)
    name: str | None = Field(None, max_length=255)
    bio: str | None = Field(None, max_length=2000)
    profile_image: str | None = None


class PasswordChangeRequest(BaseModel):
    """Change password after confirming the current one."""

    current_password: str
    new_password: str = Field(..., min_length=8, max_length=128)


class ProfilePost(BaseModel):
    """Compact post entry shown on a profile page."""

    id: int
    title: str
    content: str
    community_id: int
    community_name: str
    community_slug: str
    created_at: datetime


class UserProfileResponse(BaseModel):
    """Public profile with recent posts and follow counts."""

    user: UserResponse
    posts: list[ProfilePost]
    followers_count: int
    following_count: int


class FollowStatusResponse(BaseModel):
    """Follow relationship between the caller and another user."""

    following: bool
    followers_count: int
    following_count: int
