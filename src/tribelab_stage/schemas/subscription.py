"""Community subscription schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SubscriptionCreate(BaseModel):
    community_slug: str


class SubscriptionVerifyRequest(BaseModel):
    subscription_id: str
    payment_id: str
    signature: str


class SubscriptionCancelRequest(BaseModel):
    community_slug: str
    cancel_at_cycle_end: bool = True


class SubscriptionResponse(BaseModel):
    """Local view of a gateway subscription."""

    id: int
    gateway_subscription_id: str
    community_id: int
    status: str
    amount: int
    currency: str
    current_start: datetime | None
    current_end: datetime | None
    ended_at: datetime | None
    trial_end_date: datetime | None
    paid_count: int
    total_count: int
    key_id: str | None = None

    model_config = ConfigDict(from_attributes=True)
