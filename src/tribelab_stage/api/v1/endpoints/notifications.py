# src/tribelab_stage/api/v1/endpoints/notifications.py
"""In-app notification inbox."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from tribelab_stage.models import Notification
from tribelab_stage.schemas.common import StatusResponse
from tribelab_stage.schemas.notification import NotificationResponse, UnreadCountResponse

from ..dependencies import CurrentUserDep, SessionDep

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=list[NotificationResponse])
async def list_notifications(
    current_user: CurrentUserDep,
    db: SessionDep,
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> list[Notification]:
    query = db.query(Notification).filter(Notification.recipient_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(current_user: CurrentUserDep, db: SessionDep) -> UnreadCountResponse:
    count = (
        db.query(Notification)
        .filter(Notification.recipient_id == current_user.id, Notification.read.is_(False))
        .count()
    )
    return UnreadCountResponse(unread=count)


@router.put("/read-all", response_model=StatusResponse)
async def mark_all_read(current_user: CurrentUserDep, db: SessionDep) -> StatusResponse:
    db.query(Notification).filter(
        Notification.recipient_id == current_user.id,
        Notification.read.is_(False),
    ).update({Notification.read: True}, synchronize_session=False)
    db.commit()
    return StatusResponse(status="marked_as_read")


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(notification_id: int, current_user: CurrentUserDep, db: SessionDep) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.recipient_id == current_user.id)
        .first()
    )
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification
