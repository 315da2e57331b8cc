# src/tribelab_stage/models/__init__.py
"""SQLAlchemy models for the TribeLab application."""

from .community import Community, CommunityMember, JoinRequest
from .course import Course, CourseEnrollment, Lesson, Module, UserProgress
from .event import Event
from .gamification import LevelConfig
from .message import Message
from .notification import Notification
from .payment import PaymentPlan, Transaction
from .post import Comment, CommentLike, Post, PostLike
from .subscription import CommunitySubscription, SubscriptionEvent
from .trial import TrialHistory
from .user import User, UserFollow

__all__ = [
    "Community", "CommunityMember", "JoinRequest",
    "Course", "CourseEnrollment", "Lesson", "Module", "UserProgress",
    "Event",
    "LevelConfig",
    "Message",
    "Notification",
    "PaymentPlan", "Transaction",
    "Comment", "CommentLike", "Post", "PostLike",
    "CommunitySubscription", "SubscriptionEvent",
    "TrialHistory",
    "User", "UserFollow",
]
