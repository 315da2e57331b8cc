# src/tribelab_stage/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .comments import router as comments_router
from .communities import router as communities_router
from .courses import router as courses_router
from .cron import router as cron_router
from .events import router as events_router
from .gamification import router as gamification_router
from .messages import router as messages_router
from .notifications import router as notifications_router
from .payments import router as payments_router
from .posts import router as posts_router
from .progress import router as progress_router
from .subscriptions import router as subscriptions_router
from .trials import router as trials_router
from .users import router as users_router
from .webhooks import router as webhooks_router

__all__ = [
    "auth_router",
    "users_router",
    "communities_router",
    "posts_router",
    "comments_router",
    "courses_router",
    "progress_router",
    "events_router",
    "gamification_router",
    "messages_router",
    "notifications_router",
    "trials_router",
    "payments_router",
    "subscriptions_router",
    "webhooks_router",
    "cron_router",
]
