# src/tribelab_stage/api/v1/endpoints/events.py
"""Community calendar events."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from tribelab_stage.db.time import ensure_aware
from tribelab_stage.models import Community, Event, User
from tribelab_stage.schemas.event import EventCreate, EventResponse, EventUpdate

from ..dependencies import (
    CurrentUserDep,
    SessionDep,
    ensure_not_suspended,
    get_community_by_id_or_404,
    get_community_or_404,
    require_manager,
)

router = APIRouter(tags=["events"])


def _check_range(start: datetime, end: datetime) -> None:
    if ensure_aware(end) < ensure_aware(start):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event end must not be before its start",
        )


def _load_event(db: Session, event_id: int, user: User) -> tuple[Event, Community]:
    event = db.get(Event, event_id)
    if event is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    community = get_community_by_id_or_404(db, event.community_id)
    ensure_not_suspended(community, user)
    return event, community


@router.get("/communities/{slug}/events", response_model=list[EventResponse])
async def list_events(
    slug: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    start: datetime | None = Query(None, description="Only events ending at or after this time"),
    end: datetime | None = Query(None, description="Only events starting at or before this time"),
) -> list[Event]:
    """Events of a community, earliest first."""
    community = get_community_or_404(db, slug)
    ensure_not_suspended(community, current_user)
    query = db.query(Event).filter(Event.community_id == community.id)
    if start is not None:
        query = query.filter(Event.end >= ensure_aware(start))
    if end is not None:
        query = query.filter(Event.start <= ensure_aware(end))
    return query.order_by(Event.start, Event.id).all()


@router.post(
    "/communities/{slug}/events",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_event(
    slug: str,
    data: EventCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Event:
    community = get_community_or_404(db, slug)
    ensure_not_suspended(community, current_user)
    require_manager(db, community, current_user)
    _check_range(data.start, data.end)
    event = Event(community_id=community.id, created_by=current_user.id, **data.model_dump())
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


@router.patch("/events/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: int,
    data: EventUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Event:
    event, community = _load_event(db, event_id, current_user)
    require_manager(db, community, current_user)
    changes = data.model_dump(exclude_unset=True)
    _check_range(changes.get("start") or event.start, changes.get("end") or event.end)
    for key, value in changes.items():
        if value is not None:
            setattr(event, key, value)
    db.commit()
    db.refresh(event)
    return event


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_event(event_id: int, current_user: CurrentUserDep, db: SessionDep) -> Response:
    event, community = _load_event(db, event_id, current_user)
    require_manager(db, community, current_user)
    db.delete(event)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
