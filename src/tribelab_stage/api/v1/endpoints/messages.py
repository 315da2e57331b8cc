# src/tribelab_stage/api/v1/endpoints/messages.py
"""Direct message endpoints for the TribeLab API."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import and_, desc, or_

from tribelab_stage.db.time import utcnow
from tribelab_stage.models import Message, User
from tribelab_stage.schemas.common import StatusResponse
from tribelab_stage.schemas.message import ConversationSummary, MessageCreate, MessageResponse

from ..dependencies import CurrentUserDep, SessionDep

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("/", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    message_data: MessageCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Message:
    """Send a direct message to another user."""
    if message_data.recipient_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot message yourself",
        )
    recipient = db.get(User, message_data.recipient_id)
    if recipient is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Recipient not found",
        )

    message = Message(
        sender_id=current_user.id,
        recipient_id=recipient.id,
        content=message_data.content,
        is_image=message_data.is_image,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


@router.get("/conversations", response_model=list[ConversationSummary])
async def list_conversations(current_user: CurrentUserDep, db: SessionDep) -> list[ConversationSummary]:
    """One entry per conversation partner, most recent first."""
    messages = (
        db.query(Message)
        .filter(or_(Message.sender_id == current_user.id, Message.recipient_id == current_user.id))
        .order_by(desc(Message.created_at), desc(Message.id))
        .all()
    )

    latest: dict[int, Message] = {}
    unread: dict[int, int] = {}
    for message in messages:
        partner_id = message.recipient_id if message.sender_id == current_user.id else message.sender_id
        latest.setdefault(partner_id, message)
        if message.recipient_id == current_user.id and not message.read:
            unread[partner_id] = unread.get(partner_id, 0) + 1

    partners = {u.id: u for u in db.query(User).filter(User.id.in_(latest)).all()} if latest else {}
    return [
        ConversationSummary(
            partner_id=partner_id,
            partner_username=partners[partner_id].username,
            partner_profile_image=partners[partner_id].profile_image,
            last_message=MessageResponse.model_validate(message),
            unread_count=unread.get(partner_id, 0),
        )
        for partner_id, message in latest.items()
        if partner_id in partners
    ]


@router.get("/with/{user_id}", response_model=list[MessageResponse])
async def get_conversation(
    user_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: int = Query(50, ge=1, le=100),
    before: int | None = Query(None, description="Return messages older than this message id"),
) -> list[Message]:
    """Messages exchanged with ``user_id``, newest first.

    Incoming messages in the returned page are marked read.
    """
    query = db.query(Message).filter(
        or_(
            and_(Message.sender_id == current_user.id, Message.recipient_id == user_id),
            and_(Message.sender_id == user_id, Message.recipient_id == current_user.id),
        )
    )
    if before is not None:
        query = query.filter(Message.id < before)
    messages = query.order_by(desc(Message.id)).limit(limit).all()

    now = utcnow()
    changed = False
    for message in messages:
        if message.recipient_id == current_user.id and not message.read:
            message.read = True
            message.read_at = now
            changed = True
    if changed:
        db.commit()
    return messages


@router.put("/{message_id}/read", response_model=StatusResponse)
async def mark_message_read(
    message_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> StatusResponse:
    """Mark a direct message as read."""
    message = (
        db.query(Message)
        .filter(Message.id == message_id, Message.recipient_id == current_user.id)
        .first()
    )
    if message is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        )

    if not message.read:
        message.read = True
        message.read_at = utcnow()
        db.commit()
    return StatusResponse(status="marked_as_read")
