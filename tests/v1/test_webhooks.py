# mypy: ignore-errors
# tests/v1/test_webhooks.py
"""Tests for the payment gateway webhook receiver."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from fastapi import status

from tribelab_stage.core.security import hmac_sha256_hex
from tribelab_stage.db.time import utcnow
from tribelab_stage.models import CommunitySubscription, SubscriptionEvent, Transaction
from tribelab_stage.services import subscription_service

WEBHOOK = "/api/v1/webhooks/razorpay"


def _post(client, gateway, event, signature=None):
    body = json.dumps(event).encode()
    headers = {"Content-Type": "application/json"}
    headers["X-Razorpay-Signature"] = signature or hmac_sha256_hex(gateway.config.webhook_secret, body)
    return client.post(WEBHOOK, content=body, headers=headers)


def _subscription_id(client, community, auth_token):
    response = client.post(
        "/api/v1/community-subscriptions/",
        json={"community_slug": community.slug},
        headers=auth_token,
    )
    return response.json()["gateway_subscription_id"]


def _charged(subscription_id, current_end, payment_id="pay_w1"):
    return {
        "event": "subscription.charged",
        "payload": {
            "subscription": {
                "entity": {
                    "id": subscription_id,
                    "status": "active",
                    "current_start": int(utcnow().timestamp()),
                    "current_end": current_end,
                    "paid_count": 1,
                }
            },
            "payment": {
                "entity": {"id": payment_id, "amount": 240000, "currency": "INR", "order_id": "order_w1"}
            },
        },
    }


def test_missing_signature_rejected(client, gateway) -> None:
    response = client.post(WEBHOOK, content=b"{}", headers={"Content-Type": "application/json"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_invalid_signature_rejected(client, gateway) -> None:
    response = _post(client, gateway, {"event": "subscription.charged"}, signature="0" * 64)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_malformed_body_rejected(client, gateway) -> None:
    body = b"not json"
    response = client.post(
        WEBHOOK,
        content=body,
        headers={"X-Razorpay-Signature": hmac_sha256_hex(gateway.config.webhook_secret, body)},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_charged_marks_community_paid(client, db_session, gateway, community, test_user, auth_token) -> None:
    subscription_id = _subscription_id(client, community, auth_token)
    current_end = int((utcnow() + timedelta(days=30)).timestamp())

    response = _post(client, gateway, _charged(subscription_id, current_end))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "processed"

    db_session.refresh(community)
    assert community.payment_status == "paid"
    assert community.subscription_end_date == datetime.fromtimestamp(current_end, UTC)
    assert community.suspended is False

    transaction = db_session.query(Transaction).filter(Transaction.payment_id == "pay_w1").one()
    assert transaction.status == "captured"
    assert transaction.payment_type == "community_subscription"
    assert transaction.payer_id == test_user.id
    assert transaction.amount == 240000


def test_charged_is_idempotent_per_payment(client, db_session, gateway, community, auth_token) -> None:
    subscription_id = _subscription_id(client, community, auth_token)
    current_end = int((utcnow() + timedelta(days=30)).timestamp())
    event = _charged(subscription_id, current_end)

    assert _post(client, gateway, event).json()["status"] == "processed"
    assert _post(client, gateway, event).json()["status"] == "processed"

    assert db_session.query(Transaction).filter(Transaction.payment_id == "pay_w1").count() == 1
    assert db_session.query(SubscriptionEvent).filter(SubscriptionEvent.event == "subscription.charged").count() == 2


def test_unknown_subscription_ignored(client, gateway) -> None:
    current_end = int((utcnow() + timedelta(days=30)).timestamp())
    response = _post(client, gateway, _charged("sub_unknown", current_end))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "ignored"


def test_unhandled_event_ignored(client, gateway) -> None:
    response = _post(client, gateway, {"event": "payment.captured", "payload": {}})
    assert response.json()["status"] == "ignored"


def test_failed_charge_notifies_admin(client, db_session, gateway, community, test_user, auth_token) -> None:
    subscription_id = _subscription_id(client, community, auth_token)
    event = {
        "event": "subscription.failed",
        "payload": {
            "subscription": {"entity": {"id": subscription_id}},
            "payment": {"entity": {"id": "pay_fail", "error_description": "Card declined"}},
        },
    }
    assert _post(client, gateway, event).json()["status"] == "processed"

    db_session.refresh(community)
    assert community.subscription_status == "past_due"

    notifications = client.get("/api/v1/notifications/", headers=auth_token).json()
    assert notifications[0]["title"] == f"Payment failed for {community.name}"
    assert notifications[0]["content"] == "Card declined"


def _lifecycle(name, subscription_id, **entity):
    return {"event": name, "payload": {"subscription": {"entity": {"id": subscription_id, **entity}}}}


def _stored(db_session, subscription_id):
    subscription = (
        db_session.query(CommunitySubscription)
        .filter(CommunitySubscription.gateway_subscription_id == subscription_id)
        .one()
    )
    db_session.refresh(subscription)
    return subscription


def test_activated_marks_community_paid(client, db_session, gateway, community, auth_token) -> None:
    subscription_id = _subscription_id(client, community, auth_token)
    current_end = int((utcnow() + timedelta(days=30)).timestamp())

    event = _lifecycle("subscription.activated", subscription_id, current_end=current_end)
    assert _post(client, gateway, event).json()["status"] == "processed"

    assert _stored(db_session, subscription_id).status == "active"
    db_session.refresh(community)
    assert community.payment_status == "paid"
    assert community.subscription_end_date == datetime.fromtimestamp(current_end, UTC)


def test_cancelled_records_end(client, db_session, gateway, community, auth_token) -> None:
    subscription_id = _subscription_id(client, community, auth_token)
    ended_at = int((utcnow() + timedelta(days=2)).timestamp())

    event = _lifecycle("subscription.cancelled", subscription_id, ended_at=ended_at)
    assert _post(client, gateway, event).json()["status"] == "processed"

    subscription = _stored(db_session, subscription_id)
    assert subscription.status == "cancelled"
    assert subscription.ended_at == datetime.fromtimestamp(ended_at, UTC)
    db_session.refresh(community)
    assert community.subscription_status == "cancelled"


def test_completed_defaults_end_to_now(client, db_session, gateway, community, auth_token) -> None:
    subscription_id = _subscription_id(client, community, auth_token)

    assert _post(client, gateway, _lifecycle("subscription.completed", subscription_id)).json()["status"] == "processed"

    subscription = _stored(db_session, subscription_id)
    assert subscription.status == "completed"
    assert subscription.ended_at is not None
    db_session.refresh(community)
    assert community.subscription_status == "completed"


def test_halted_marks_community_past_due(client, db_session, gateway, community, auth_token) -> None:
    subscription_id = _subscription_id(client, community, auth_token)

    assert _post(client, gateway, _lifecycle("subscription.halted", subscription_id)).json()["status"] == "processed"

    assert _stored(db_session, subscription_id).status == "halted"
    db_session.refresh(community)
    assert community.subscription_status == "past_due"


@pytest.mark.asyncio
async def test_failed_charges_schedule_retries_until_cap(db_session, gateway, community, test_user) -> None:
    subscription = await subscription_service.create_subscription(db_session, gateway, test_user, community)
    subscription.max_retry_attempts = 2
    db_session.commit()

    body = json.dumps(_lifecycle("subscription.failed", subscription.gateway_subscription_id)).encode()
    signature = hmac_sha256_hex(gateway.config.webhook_secret, body)
    now = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    for attempt in (1, 2):
        await subscription_service.handle_webhook(db_session, gateway, body, signature, now=now)
        db_session.refresh(subscription)
        assert subscription.retry_attempts == attempt
        assert subscription.next_retry_at == now + timedelta(hours=24)

    await subscription_service.handle_webhook(db_session, gateway, body, signature, now=now)
    db_session.refresh(subscription)
    assert subscription.retry_attempts == 2
    assert subscription.next_retry_at is None
    assert subscription.failure_count == 3
    assert subscription.consecutive_failures == 3
    assert subscription.status == "pending"
    assert subscription.last_failure_reason == "Payment failed"


def test_invoice_issued_recorded(client, db_session, gateway, community, auth_token) -> None:
    subscription_id = _subscription_id(client, community, auth_token)
    due_date = int((utcnow() + timedelta(days=3)).timestamp())
    event = {
        "event": "invoice.issued",
        "payload": {
            "invoice": {
                "entity": {
                    "id": "inv_1",
                    "subscription_id": subscription_id,
                    "amount": 240000,
                    "due_date": due_date,
                }
            }
        },
    }
    assert _post(client, gateway, event).json()["status"] == "processed"

    recorded = db_session.query(SubscriptionEvent).filter(SubscriptionEvent.event == "invoice.issued").one()
    assert recorded.payload == {
        "subscription_id": subscription_id,
        "invoice_id": "inv_1",
        "amount": 240000,
        "due_date": datetime.fromtimestamp(due_date, UTC).isoformat(),
    }
    assert _stored(db_session, subscription_id).last_webhook_at is not None


def test_invoice_for_unknown_subscription_ignored(client, gateway) -> None:
    event = {"event": "invoice.issued", "payload": {"invoice": {"entity": {"id": "inv_2", "subscription_id": "sub_x"}}}}
    assert _post(client, gateway, event).json()["status"] == "ignored"


def test_signed_non_object_bodies_rejected(client, gateway) -> None:
    bodies = [
        [],
        {"event": "subscription.charged", "payload": []},
        {"event": "subscription.charged", "payload": {"subscription": {"entity": "sub_1"}}},
        {"event": "subscription.charged", "payload": {"subscription": {"entity": {"id": "sub_1"}}, "payment": []}},
        {"event": ["subscription.charged"], "payload": {}},
    ]
    for event in bodies:
        response = _post(client, gateway, event)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Malformed webhook payload"
