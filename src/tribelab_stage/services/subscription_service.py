"""Recurring community subscriptions and gateway webhook handling.

Local state mirrors the gateway. Outbound calls happen before local writes.
If a local write fails after the gateway accepted a change, the failure is
logged and re-raised; nothing is compensated.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tribelab_stage.core.settings import settings
from tribelab_stage.db.time import utcnow
from tribelab_stage.models import Community, CommunitySubscription, SubscriptionEvent, Transaction, User
from tribelab_stage.models.community import PAYMENT_STATUS_EXPIRED, PAYMENT_STATUS_PAID
from tribelab_stage.models.payment import PAYMENT_TYPE_COMMUNITY_SUBSCRIPTION, TX_CAPTURED
from tribelab_stage.models.subscription import (
    SUB_ACTIVE,
    SUB_CANCELLED,
    SUB_COMPLETED,
    SUB_CREATED,
    SUB_HALTED,
    SUB_LIVE_STATUSES,
    SUB_PENDING,
)
from tribelab_stage.services.notifications import create_notification
from tribelab_stage.services.payment_gateway import (
    PaymentGatewayClient,
    PaymentGatewayDisabledError,
)
from tribelab_stage.services.trial_service import clear_trial_state, is_valid_date

logger = logging.getLogger(__name__)

COMMUNITY_PAST_DUE = "past_due"
DEFAULT_PERIOD = timedelta(days=30)
RETRY_DELAY = timedelta(hours=24)


class SubscriptionError(RuntimeError):
    """Raised when a subscription request cannot be honoured."""


class SubscriptionNotFoundError(SubscriptionError):
    """Raised when no matching subscription exists."""


class SubscriptionPermissionError(SubscriptionError):
    """Raised when the caller does not administer the community."""


class WebhookSignatureError(SubscriptionError):
    """Raised when a webhook body does not match its signature."""


def _from_timestamp(value: Any) -> datetime | None:
    """Convert a gateway unix timestamp; placeholders near the epoch become None."""
    if not value:
        return None
    try:
        converted = datetime.fromtimestamp(int(value), UTC)
    except (TypeError, ValueError, OverflowError):
        return None
    return converted if is_valid_date(converted) else None


def _record_event(
    db: Session,
    subscription: CommunitySubscription,
    event: str,
    payload: dict[str, Any],
    now: datetime,
) -> None:
    db.add(SubscriptionEvent(subscription_id=subscription.id, event=event, payload=payload))
    subscription.last_webhook_at = now


def _mark_community_paid(
    db: Session,
    subscription: CommunitySubscription,
    now: datetime,
) -> Community | None:
    community = db.get(Community, subscription.community_id)
    if community is None:
        logger.warning("Community %s missing for subscription %s", subscription.community_id, subscription.id)
        return None
    community.payment_status = PAYMENT_STATUS_PAID
    community.subscription_end_date = subscription.current_end or (now + DEFAULT_PERIOD)
    community.subscription_id = subscription.gateway_subscription_id
    community.subscription_status = subscription.status
    clear_trial_state(db, community, now=now)
    return community


def get_latest_subscription(db: Session, community_id: int) -> CommunitySubscription | None:
    return (
        db.query(CommunitySubscription)
        .filter(CommunitySubscription.community_id == community_id)
        .order_by(CommunitySubscription.id.desc())
        .first()
    )


async def create_subscription(
    db: Session,
    gateway: PaymentGatewayClient,
    admin: User,
    community: Community,
    *,
    now: datetime | None = None,
) -> CommunitySubscription:
    """Start a gateway subscription whose first charge lands when the trial ends."""
    if community.admin_id != admin.id:
        raise SubscriptionPermissionError("Only the community admin can manage its subscription")

    existing = (
        db.query(CommunitySubscription)
        .filter(
            CommunitySubscription.community_id == community.id,
            CommunitySubscription.status.in_(SUB_LIVE_STATUSES),
        )
        .first()
    )
    if existing is not None:
        raise SubscriptionError("Community already has an active subscription")

    plan_id = gateway.config.community_plan_id
    if not plan_id:
        raise PaymentGatewayDisabledError("Community subscription plan is not configured")

    now = now or utcnow()
    if not admin.gateway_customer_id:
        customer = await gateway.create_customer(admin.name or admin.username, admin.email)
        admin.gateway_customer_id = customer["id"]

    trial_end = now + timedelta(days=settings.trial_period_days)
    remote = await gateway.create_subscription(
        plan_id=plan_id,
        customer_id=admin.gateway_customer_id,
        total_count=settings.community_subscription_total_count,
        start_at=int(trial_end.timestamp()),
        notes={"community_id": str(community.id), "admin_id": str(admin.id)},
    )

    subscription = CommunitySubscription(
        gateway_subscription_id=remote["id"],
        gateway_plan_id=plan_id,
        gateway_customer_id=admin.gateway_customer_id,
        admin_id=admin.id,
        community_id=community.id,
        status=remote.get("status") or SUB_CREATED,
        trial_end_date=trial_end,
        total_count=settings.community_subscription_total_count,
        amount=settings.community_subscription_amount,
        currency=settings.community_subscription_currency,
        max_retry_attempts=settings.subscription_max_retries,
    )
    db.add(subscription)
    community.subscription_id = subscription.gateway_subscription_id
    community.subscription_status = subscription.status
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(
            "Gateway subscription %s created but local save failed for community %s",
            remote["id"],
            community.id,
        )
        raise
    db.refresh(subscription)
    logger.info("Created subscription %s for community %s", subscription.gateway_subscription_id, community.id)
    return subscription


def verify_subscription(
    db: Session,
    gateway: PaymentGatewayClient,
    admin: User,
    *,
    subscription_id: str,
    payment_id: str,
    signature: str,
    now: datetime | None = None,
) -> CommunitySubscription:
    """Confirm the checkout authorisation and activate the community."""
    subscription = (
        db.query(CommunitySubscription)
        .filter(
            CommunitySubscription.gateway_subscription_id == subscription_id,
            CommunitySubscription.admin_id == admin.id,
        )
        .first()
    )
    if subscription is None:
        raise SubscriptionNotFoundError("Subscription not found")
    if not gateway.verify_subscription_signature(subscription_id, payment_id, signature):
        logger.warning("Invalid subscription signature for %s", subscription_id)
        raise SubscriptionError("Invalid payment signature")

    now = now or utcnow()
    subscription.status = SUB_ACTIVE
    subscription.paid_count += 1
    subscription.retry_attempts = 0
    subscription.consecutive_failures = 0
    subscription.suspended = False
    if subscription.current_start is None:
        subscription.current_start = now
    if subscription.current_end is None:
        subscription.current_end = now + DEFAULT_PERIOD
    _record_event(
        db,
        subscription,
        "subscription.authenticated",
        {"subscription_id": subscription_id, "payment_id": payment_id},
        now,
    )
    _mark_community_paid(db, subscription, now)
    db.commit()
    db.refresh(subscription)
    return subscription


async def cancel_subscription(
    db: Session,
    gateway: PaymentGatewayClient,
    admin: User,
    community: Community,
    *,
    cancel_at_cycle_end: bool = True,
    now: datetime | None = None,
) -> CommunitySubscription:
    """Cancel at the gateway, then mirror the cancellation locally."""
    if community.admin_id != admin.id:
        raise SubscriptionPermissionError("Only the community admin can manage its subscription")
    subscription = get_latest_subscription(db, community.id)
    if subscription is None:
        raise SubscriptionNotFoundError("No subscription found for this community")
    if subscription.status == SUB_CANCELLED:
        raise SubscriptionError("Subscription is already cancelled")

    await gateway.cancel_subscription(
        subscription.gateway_subscription_id,
        cancel_at_cycle_end=cancel_at_cycle_end,
    )

    now = now or utcnow()
    try:
        subscription.status = SUB_CANCELLED
        subscription.ended_at = subscription.current_end if cancel_at_cycle_end and subscription.current_end else now
        community.subscription_status = SUB_CANCELLED
        if not cancel_at_cycle_end:
            community.payment_status = PAYMENT_STATUS_EXPIRED
            community.subscription_end_date = now
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(
            "Subscription %s cancelled at gateway but local update failed",
            subscription.gateway_subscription_id,
        )
        raise
    db.refresh(subscription)
    logger.info(
        "Cancelled subscription %s (at cycle end: %s)",
        subscription.gateway_subscription_id,
        cancel_at_cycle_end,
    )
    return subscription


async def _on_charged(
    db: Session,
    subscription: CommunitySubscription,
    entity: dict[str, Any],
    payload: dict[str, Any],
    now: datetime,
) -> None:
    subscription.status = entity.get("status") or SUB_ACTIVE
    subscription.current_start = _from_timestamp(entity.get("current_start")) or subscription.current_start or now
    subscription.current_end = _from_timestamp(entity.get("current_end")) or (
        subscription.current_start + DEFAULT_PERIOD
    )
    subscription.paid_count = int(entity.get("paid_count") or subscription.paid_count + 1)
    subscription.consecutive_failures = 0
    subscription.retry_attempts = 0
    subscription.next_retry_at = None
    subscription.suspended = False
    _mark_community_paid(db, subscription, now)

    payment = _payload_entity(payload, "payment")
    payment_id = payment.get("id")
    if payment_id and db.query(Transaction).filter(Transaction.payment_id == payment_id).first() is None:
        db.add(
            Transaction(
                payment_id=payment_id,
                order_id=payment.get("order_id"),
                amount=int(payment.get("amount") or subscription.amount),
                currency=payment.get("currency") or subscription.currency,
                status=TX_CAPTURED,
                payment_type=PAYMENT_TYPE_COMMUNITY_SUBSCRIPTION,
                payer_id=subscription.admin_id,
                community_id=subscription.community_id,
                metadata_={"subscription_id": subscription.gateway_subscription_id},
            )
        )


async def _on_activated(
    db: Session,
    subscription: CommunitySubscription,
    entity: dict[str, Any],
    payload: dict[str, Any],
    now: datetime,
) -> None:
    subscription.status = SUB_ACTIVE
    subscription.current_start = _from_timestamp(entity.get("current_start")) or subscription.current_start
    subscription.current_end = _from_timestamp(entity.get("current_end")) or subscription.current_end
    _mark_community_paid(db, subscription, now)


async def _on_failed(
    db: Session,
    subscription: CommunitySubscription,
    entity: dict[str, Any],
    payload: dict[str, Any],
    now: datetime,
) -> None:
    payment = _payload_entity(payload, "payment")
    subscription.failure_count += 1
    subscription.consecutive_failures += 1
    subscription.last_failure_reason = payment.get("error_description") or "Payment failed"
    if subscription.retry_attempts < subscription.max_retry_attempts:
        subscription.retry_attempts += 1
        subscription.next_retry_at = now + RETRY_DELAY
    else:
        subscription.next_retry_at = None
    subscription.status = SUB_PENDING

    community = db.get(Community, subscription.community_id)
    if community is not None:
        community.subscription_status = COMMUNITY_PAST_DUE
        create_notification(
            db,
            recipient_id=subscription.admin_id,
            type="subscription",
            title=f"Payment failed for {community.name}",
            content=subscription.last_failure_reason or "",
            source_id=community.id,
            source_type="subscription",
            community_id=community.id,
        )


async def _on_cancelled(
    db: Session,
    subscription: CommunitySubscription,
    entity: dict[str, Any],
    payload: dict[str, Any],
    now: datetime,
) -> None:
    subscription.status = SUB_CANCELLED
    subscription.ended_at = _from_timestamp(entity.get("ended_at")) or now
    community = db.get(Community, subscription.community_id)
    if community is not None:
        community.subscription_status = SUB_CANCELLED


async def _on_completed(
    db: Session,
    subscription: CommunitySubscription,
    entity: dict[str, Any],
    payload: dict[str, Any],
    now: datetime,
) -> None:
    subscription.status = SUB_COMPLETED
    subscription.ended_at = _from_timestamp(entity.get("ended_at")) or now
    community = db.get(Community, subscription.community_id)
    if community is not None:
        community.subscription_status = SUB_COMPLETED


async def _on_halted(
    db: Session,
    subscription: CommunitySubscription,
    entity: dict[str, Any],
    payload: dict[str, Any],
    now: datetime,
) -> None:
    subscription.status = SUB_HALTED
    community = db.get(Community, subscription.community_id)
    if community is not None:
        community.subscription_status = COMMUNITY_PAST_DUE


async def _on_invoice_issued(
    db: Session,
    subscription: CommunitySubscription,
    entity: dict[str, Any],
    payload: dict[str, Any],
    now: datetime,
) -> None:
    logger.info("Invoice %s issued for subscription %s", entity.get("id"), subscription.gateway_subscription_id)


def _invoice_summary(invoice: dict[str, Any]) -> dict[str, Any]:
    due_date = _from_timestamp(invoice.get("due_date"))
    return {
        "subscription_id": invoice.get("subscription_id"),
        "invoice_id": invoice.get("id"),
        "amount": invoice.get("amount"),
        "due_date": due_date.isoformat() if due_date else None,
    }


WebhookHandler = Callable[
    [Session, CommunitySubscription, dict[str, Any], dict[str, Any], datetime],
    Awaitable[None],
]

WEBHOOK_HANDLERS: dict[str, WebhookHandler] = {
    "subscription.charged": _on_charged,
    "subscription.activated": _on_activated,
    "subscription.failed": _on_failed,
    "subscription.cancelled": _on_cancelled,
    "subscription.completed": _on_completed,
    "subscription.halted": _on_halted,
    "invoice.issued": _on_invoice_issued,
}


def _payload_entity(payload: dict[str, Any], key: str) -> dict[str, Any]:
    """Return ``payload[key]["entity"]``, or an empty dict when absent."""
    wrapper = payload.get(key)
    if wrapper is None:
        return {}
    if not isinstance(wrapper, dict):
        raise SubscriptionError("Malformed webhook payload")
    entity = wrapper.get("entity")
    if entity is None:
        return {}
    if not isinstance(entity, dict):
        raise SubscriptionError("Malformed webhook payload")
    return entity


async def handle_webhook(
    db: Session,
    gateway: PaymentGatewayClient,
    body: bytes,
    signature: str | None,
    *,
    now: datetime | None = None,
) -> str:
    """Verify and apply a gateway webhook. Returns ``processed`` or ``ignored``."""
    if not signature:
        raise WebhookSignatureError("Missing webhook signature")
    if not gateway.verify_webhook_signature(body, signature):
        logger.warning("Rejected webhook with invalid signature")
        raise WebhookSignatureError("Invalid webhook signature")

    try:
        event = json.loads(body)
    except ValueError as exc:
        raise SubscriptionError("Malformed webhook payload") from exc
    if not isinstance(event, dict):
        raise SubscriptionError("Malformed webhook payload")

    name = event.get("event", "")
    payload = event.get("payload")
    if payload is None:
        payload = {}
    if not isinstance(name, str) or not isinstance(payload, dict):
        raise SubscriptionError("Malformed webhook payload")

    handler = WEBHOOK_HANDLERS.get(name)
    if handler is None:
        logger.info("Ignoring webhook event %s", name)
        return "ignored"

    if name == "invoice.issued":
        entity = _payload_entity(payload, "invoice")
        reference = entity.get("subscription_id")
        record = _invoice_summary(entity)
    else:
        entity = _payload_entity(payload, "subscription")
        _payload_entity(payload, "payment")
        reference = entity.get("id")
        record = payload
    if not reference:
        logger.info("Ignoring webhook event %s without a subscription reference", name)
        return "ignored"

    subscription = (
        db.query(CommunitySubscription)
        .filter(CommunitySubscription.gateway_subscription_id == str(reference))
        .first()
    )
    if subscription is None:
        logger.info("Webhook %s for unknown subscription %s", name, reference)
        return "ignored"

    now = now or utcnow()
    _record_event(db, subscription, name, record, now)
    await handler(db, subscription, entity, payload, now)
    db.commit()
    logger.info("Processed webhook %s for subscription %s", name, subscription.gateway_subscription_id)
    return "processed"
