"""In-app notification dispatch."""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from tribelab_stage.models import Notification

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    *,
    recipient_id: int,
    type: str,
    title: str,
    content: str = "",
    source_id: int | None = None,
    source_type: str | None = None,
    community_id: int | None = None,
    created_by: int | None = None,
) -> Notification | None:
    """Queue a notification on the session; the caller commits.

    Users are never notified about their own actions.
    """
    if created_by is not None and created_by == recipient_id:
        return None

    notification = Notification(
        recipient_id=recipient_id,
        type=type,
        title=title,
        content=content,
        source_id=source_id,
        source_type=source_type,
        community_id=community_id,
        created_by=created_by,
    )
    db.add(notification)
    logger.debug("Queued %s notification for user %s", type, recipient_id)
    return notification
