# src/tribelab_stage/api/v1/endpoints/webhooks.py
"""Inbound payment gateway webhooks."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Header, HTTPException, Request, status

from tribelab_stage.schemas.common import StatusResponse
from tribelab_stage.services import subscription_service

from ..dependencies import PaymentGatewayDep, SessionDep

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/razorpay", response_model=StatusResponse)
async def razorpay_webhook(
    request: Request,
    db: SessionDep,
    gateway: PaymentGatewayDep,
    x_razorpay_signature: Annotated[str | None, Header()] = None,
) -> StatusResponse:
    """Apply a subscription event after checking its HMAC signature over the raw body."""
    body = await request.body()
    try:
        outcome = await subscription_service.handle_webhook(db, gateway, body, x_razorpay_signature)
    except subscription_service.SubscriptionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return StatusResponse(status=outcome)
