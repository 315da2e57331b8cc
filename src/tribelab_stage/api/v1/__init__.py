# src/tribelab_stage/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    auth_router,
    comments_router,
    communities_router,
    courses_router,
    cron_router,
    events_router,
    gamification_router,
    messages_router,
    notifications_router,
    payments_router,
    posts_router,
    progress_router,
    subscriptions_router,
    trials_router,
    users_router,
    webhooks_router,
)

ROUTERS = (
    auth_router,
    users_router,
    communities_router,
    posts_router,
    comments_router,
    courses_router,
    progress_router,
    events_router,
    gamification_router,
    messages_router,
    notifications_router,
    trials_router,
    payments_router,
    subscriptions_router,
    webhooks_router,
    cron_router,
)

__all__ = [
    "ROUTERS",
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
