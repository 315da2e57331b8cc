# mypy: ignore-errors
# tests/v1/test_subscriptions.py
"""Tests for recurring community subscriptions."""

import logging

import pytest
from fastapi import status
from sqlalchemy.exc import SQLAlchemyError

from tribelab_stage.core.security import hmac_sha256_hex
from tribelab_stage.models import CommunitySubscription
from tribelab_stage.services import subscription_service

SUBSCRIPTIONS = "/api/v1/community-subscriptions"


def _subscribe(client, community, headers):
    return client.post(f"{SUBSCRIPTIONS}/", json={"community_slug": community.slug}, headers=headers)


def test_create_subscription(client, db_session, gateway, community, test_user, auth_token) -> None:
    response = _subscribe(client, community, auth_token)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["status"] == "created"
    assert data["amount"] == 240000
    assert data["key_id"] == "rzp_test_key"
    assert data["trial_end_date"] is not None

    assert gateway.subscriptions[0]["plan_id"] == "plan_test"
    assert community.subscription_id == data["gateway_subscription_id"]
    db_session.refresh(test_user)
    assert test_user.gateway_customer_id.startswith("cust_")


def test_create_subscription_requires_admin(client, gateway, community, member, other_auth_token) -> None:
    response = _subscribe(client, community, other_auth_token)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert gateway.subscriptions == []


def test_second_live_subscription_rejected(client, gateway, community, auth_token) -> None:
    assert _subscribe(client, community, auth_token).status_code == status.HTTP_201_CREATED
    second = _subscribe(client, community, auth_token)
    assert second.status_code == status.HTTP_400_BAD_REQUEST
    assert len(gateway.subscriptions) == 1


def test_verify_subscription_marks_community_paid(client, db_session, gateway, community, auth_token) -> None:
    subscription_id = _subscribe(client, community, auth_token).json()["gateway_subscription_id"]
    signature = hmac_sha256_hex(gateway.config.key_secret, f"pay_sub|{subscription_id}")

    bad = client.post(
        f"{SUBSCRIPTIONS}/verify",
        json={"subscription_id": subscription_id, "payment_id": "pay_sub", "signature": "forged"},
        headers=auth_token,
    )
    assert bad.status_code == status.HTTP_400_BAD_REQUEST

    response = client.post(
        f"{SUBSCRIPTIONS}/verify",
        json={"subscription_id": subscription_id, "payment_id": "pay_sub", "signature": signature},
        headers=auth_token,
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "active"
    assert data["paid_count"] == 1
    assert data["current_end"] is not None

    db_session.refresh(community)
    assert community.payment_status == "paid"
    assert community.suspended is False


def test_verify_unknown_subscription(client, gateway, auth_token) -> None:
    response = client.post(
        f"{SUBSCRIPTIONS}/verify",
        json={"subscription_id": "sub_missing", "payment_id": "pay", "signature": "x"},
        headers=auth_token,
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_cancel_immediately_expires_community(client, db_session, gateway, community, auth_token) -> None:
    missing = client.post(f"{SUBSCRIPTIONS}/cancel", json={"community_slug": community.slug}, headers=auth_token)
    assert missing.status_code == status.HTTP_404_NOT_FOUND

    subscription_id = _subscribe(client, community, auth_token).json()["gateway_subscription_id"]
    response = client.post(
        f"{SUBSCRIPTIONS}/cancel",
        json={"community_slug": community.slug, "cancel_at_cycle_end": False},
        headers=auth_token,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "cancelled"
    assert gateway.cancelled == [(subscription_id, False)]

    db_session.refresh(community)
    assert community.payment_status == "expired"
    assert community.subscription_status == "cancelled"

    again = client.post(f"{SUBSCRIPTIONS}/cancel", json={"community_slug": community.slug}, headers=auth_token)
    assert again.status_code == status.HTTP_400_BAD_REQUEST
    assert len(gateway.cancelled) == 1


def test_cancel_at_cycle_end_keeps_access(client, db_session, gateway, community, auth_token) -> None:
    _subscribe(client, community, auth_token)
    response = client.post(f"{SUBSCRIPTIONS}/cancel", json={"community_slug": community.slug}, headers=auth_token)
    assert response.status_code == status.HTTP_200_OK
    db_session.refresh(community)
    assert community.payment_status == "unpaid"
    assert (
        db_session.query(CommunitySubscription)
        .filter(CommunitySubscription.community_id == community.id, CommunitySubscription.status == "cancelled")
        .count()
        == 1
    )


def test_get_subscription_admin_only(client, gateway, community, member, auth_token, other_auth_token) -> None:
    none_yet = client.get(f"{SUBSCRIPTIONS}/{community.slug}", headers=auth_token)
    assert none_yet.status_code == status.HTTP_404_NOT_FOUND

    created = _subscribe(client, community, auth_token).json()
    response = client.get(f"{SUBSCRIPTIONS}/{community.slug}", headers=auth_token)
    assert response.json()["id"] == created["id"]
    assert response.json()["key_id"] is None

    forbidden = client.get(f"{SUBSCRIPTIONS}/{community.slug}", headers=other_auth_token)
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_cancel_local_failure_rolls_back_and_reraises(
    db_session, gateway, community, test_user, mocker, caplog
) -> None:
    subscription = await subscription_service.create_subscription(db_session, gateway, test_user, community)
    mocker.patch.object(db_session, "commit", side_effect=SQLAlchemyError("boom"))

    with caplog.at_level(logging.ERROR, logger="tribelab_stage.services.subscription_service"):
        with pytest.raises(SQLAlchemyError):
            await subscription_service.cancel_subscription(
                db_session, gateway, test_user, community, cancel_at_cycle_end=False
            )

    assert gateway.cancelled == [(subscription.gateway_subscription_id, False)]
    assert "cancelled at gateway but local update failed" in caplog.text
    db_session.refresh(subscription)
    db_session.refresh(community)
    assert subscription.status == "created"
    assert community.payment_status == "unpaid"
