"""Direct message-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MessageCreate(BaseModel):
    """Schema for sending a direct message."""

    recipient_id: int
    content: str = Field(..., min_length=1, max_length=5000)
    is_image: bool = False


class MessageResponse(BaseModel):
    """Schema for direct message information returned by the API."""

    id: int
    sender_id: int
    recipient_id: int
    content: str
    is_image: bool
    read: bool
    read_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationSummary(BaseModel):
    """Latest message exchanged with one partner."""

    partner_id: int
    partner_username: str
    partner_profile_image: str | None
    last_message: MessageResponse
    unread_count: int
