# src/tribelab_stage/api/v1/endpoints/subscriptions.py
"""Recurring community subscriptions billed through the payment gateway."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from tribelab_stage.models import CommunitySubscription
from tribelab_stage.schemas.subscription import (
    SubscriptionCancelRequest,
    SubscriptionCreate,
    SubscriptionResponse,
    SubscriptionVerifyRequest,
)
from tribelab_stage.services import subscription_service
from tribelab_stage.services.payment_gateway import PaymentGatewayError

from ..dependencies import CurrentUserDep, PaymentGatewayDep, SessionDep, get_community_or_404
from .payments import gateway_http_error

router = APIRouter(prefix="/community-subscriptions", tags=["subscriptions"])


def _subscription_http_error(exc: subscription_service.SubscriptionError) -> HTTPException:
    if isinstance(exc, subscription_service.SubscriptionNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, subscription_service.SubscriptionPermissionError):
        code = status.HTTP_403_FORBIDDEN
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(exc))


def _to_response(subscription: CommunitySubscription, key_id: str | None = None) -> SubscriptionResponse:
    return SubscriptionResponse.model_validate(subscription).model_copy(update={"key_id": key_id})


@router.post("/", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    data: SubscriptionCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    gateway: PaymentGatewayDep,
) -> SubscriptionResponse:
    """Start a subscription whose first charge falls at the end of the trial period."""
    community = get_community_or_404(db, data.community_slug)
    try:
        subscription = await subscription_service.create_subscription(db, gateway, current_user, community)
    except subscription_service.SubscriptionError as exc:
        raise _subscription_http_error(exc) from exc
    except PaymentGatewayError as exc:
        raise gateway_http_error(exc) from exc
    return _to_response(subscription, gateway.key_id)


@router.post("/verify", response_model=SubscriptionResponse)
async def verify_subscription(
    data: SubscriptionVerifyRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    gateway: PaymentGatewayDep,
) -> SubscriptionResponse:
    try:
        subscription = subscription_service.verify_subscription(
            db,
            gateway,
            current_user,
            subscription_id=data.subscription_id,
            payment_id=data.payment_id,
            signature=data.signature,
        )
    except subscription_service.SubscriptionError as exc:
        raise _subscription_http_error(exc) from exc
    return _to_response(subscription)


@router.post("/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    data: SubscriptionCancelRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    gateway: PaymentGatewayDep,
) -> SubscriptionResponse:
    community = get_community_or_404(db, data.community_slug)
    try:
        subscription = await subscription_service.cancel_subscription(
            db,
            gateway,
            current_user,
            community,
            cancel_at_cycle_end=data.cancel_at_cycle_end,
        )
    except subscription_service.SubscriptionError as exc:
        raise _subscription_http_error(exc) from exc
    except PaymentGatewayError as exc:
        raise gateway_http_error(exc) from exc
    return _to_response(subscription)


@router.get("/{slug}", response_model=SubscriptionResponse)
async def get_subscription(slug: str, current_user: CurrentUserDep, db: SessionDep) -> SubscriptionResponse:
    """Latest subscription of a community (admin only)."""
    community = get_community_or_404(db, slug)
    if community.admin_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the community admin can view its subscription",
        )
    subscription = subscription_service.get_latest_subscription(db, community.id)
    if subscription is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription not found")
    return _to_response(subscription)
