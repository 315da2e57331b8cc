# src/tribelab_stage/schemas/post.py
"""Post-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class PostCreate(BaseModel):
    """Schema for creating a new post."""

    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1, max_length=20000)


class PostUpdate(BaseModel):
    """Partial post update (author only)."""

    title: str | None = Field(None, min_length=1, max_length=300)
    content: str | None = Field(None, min_length=1, max_length=20000)


class PostResponse(BaseModel):
    """Schema for post information returned by the API."""

    id: int
    community_id: int
    author_id: int
    author_username: str | None
    title: str
    content: str
    is_pinned: bool
    like_count: int
    liked_by_me: bool
    comment_count: int
    created_at: datetime
    updated_at: datetime


class LikeResponse(BaseModel):
    """Like state after a like or unlike."""

    liked: bool
    like_count: int


class PinRequest(BaseModel):
    """Pin or unpin a post."""

    pinned: bool = True


class CommentCreate(BaseModel):
    """Schema for a new comment or reply."""

    text: str = Field(..., min_length=1, max_length=5000)
    parent_id: int | None = Field(None, description="Comment being replied to")


class CommentResponse(BaseModel):
    """Comment as returned by the API."""

    id: int
    post_id: int
    author_id: int
    author_username: str | None
    parent_id: int | None
    parent_author_id: int | None = None
    text: str
    like_count: int
    reply_count: int
    created_at: datetime
