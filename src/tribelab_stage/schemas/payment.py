"""Payment plan, order and transaction schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class PlanCreate(BaseModel):
    """Schema for creating a payment plan.

    Plans with a ``community_slug`` are sold by that community's admin;
    plans without one are platform plans.
    """

    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    amount: int = Field(..., gt=0, description="Minor currency units")
    currency: str = Field("INR", min_length=3, max_length=8)
    interval: Literal["monthly", "yearly", "one_time"] = "monthly"
    interval_count: int = Field(1, ge=1)
    community_slug: str | None = None
    features: list[str] = Field(default_factory=list)


class PlanUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    amount: int | None = Field(None, gt=0)
    is_active: bool | None = None
    features: list[str] | None = None


class PlanResponse(BaseModel):
    id: int
    name: str
    description: str
    amount: int
    currency: str
    interval: str
    interval_count: int
    community_id: int | None
    created_by: int
    is_active: bool
    features: list[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderCreate(BaseModel):
    """Request to open a gateway order."""

    amount: int = Field(..., description="Minor currency units")
    currency: str = Field("INR", min_length=3, max_length=8)
    payment_type: str = Field(..., description="'platform' or 'community'")
    plan_id: int | None = None
    community_slug: str | None = None


class OrderResponse(BaseModel):
    """Order details the client needs to open the gateway checkout."""

    order_id: str
    amount: int
    currency: str
    key_id: str | None
    transaction_id: int


class PaymentVerifyRequest(BaseModel):
    """Checkout callback fields returned by the gateway."""

    order_id: str
    payment_id: str
    signature: str


class TransactionResponse(BaseModel):
    id: int
    order_id: str | None
    payment_id: str | None
    amount: int
    currency: str
    status: str
    payment_type: str
    payer_id: int
    payee_id: int | None
    community_id: int | None
    plan_id: int | None
    metadata: dict[str, Any] = Field(validation_alias="metadata_")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
