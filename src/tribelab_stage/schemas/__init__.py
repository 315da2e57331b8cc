# src/tribelab_stage/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .community import CommunityCreate, CommunityResponse
from .course import CourseCreate, CourseResponse
from .message import MessageCreate, MessageResponse
from .post import CommentCreate, CommentResponse, PostCreate, PostResponse
from .user import RegisterRequest, UserResponse

__all__ = [
    "CommunityCreate", "CommunityResponse",
    "CourseCreate", "CourseResponse",
    "MessageCreate", "MessageResponse",
    "CommentCreate", "CommentResponse", "PostCreate", "PostResponse",
    "RegisterRequest", "UserResponse",
]
