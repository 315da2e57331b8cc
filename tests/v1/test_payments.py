# mypy: ignore-errors
# tests/v1/test_payments.py
"""Tests for payment plans, gateway orders and checkout verification."""

from datetime import timedelta

from fastapi import status

from tests.conftest import auth_headers, make_user
from tribelab_stage.api.v1.dependencies import get_payment_gateway_dep
from tribelab_stage.core.security import hmac_sha256_hex
from tribelab_stage.db.time import utcnow
from tribelab_stage.models import CommunityMember, Transaction
from tribelab_stage.services.payment_gateway import PaymentGatewayClient, PaymentGatewayConfig


def _signature(gateway, order_id, payment_id):
    return hmac_sha256_hex(gateway.config.key_secret, f"{order_id}|{payment_id}")


def _order(client, headers, **payload):
    body = {"amount": 49900, "currency": "INR", "payment_type": "platform"}
    body.update(payload)
    return client.post("/api/v1/payments/create-order", json=body, headers=headers)


def test_create_platform_order(client, db_session, gateway, test_user, auth_token) -> None:
    response = _order(client, auth_token)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["key_id"] == "rzp_test_key"
    assert data["amount"] == 49900

    transaction = db_session.get(Transaction, data["transaction_id"])
    assert transaction.status == "created"
    assert transaction.order_id == data["order_id"]
    assert transaction.payer_id == test_user.id
    assert gateway.orders[0]["notes"]["payment_type"] == "platform"


def test_create_order_validation(client, gateway, auth_token) -> None:
    assert _order(client, auth_token, amount=0).status_code == status.HTTP_400_BAD_REQUEST
    assert _order(client, auth_token, payment_type="gift").status_code == status.HTTP_400_BAD_REQUEST
    # Community payments need a community.
    assert _order(client, auth_token, payment_type="community").status_code == status.HTTP_400_BAD_REQUEST
    assert gateway.orders == []


def test_verify_platform_payment_grants_admin(client, db_session, gateway, test_user, auth_token) -> None:
    order = _order(client, auth_token).json()
    response = client.post(
        "/api/v1/payments/verify",
        json={
            "order_id": order["order_id"],
            "payment_id": "pay_1",
            "signature": _signature(gateway, order["order_id"], "pay_1"),
        },
        headers=auth_token,
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "captured"
    assert data["payment_id"] == "pay_1"
    assert data["metadata"]["payment_type"] == "platform"

    db_session.refresh(test_user)
    assert test_user.role == "admin"
    assert test_user.subscription_status == "active"
    assert test_user.subscription_end_date > utcnow() + timedelta(days=27)


def test_verify_authorized_payment(client, db_session, gateway, auth_token) -> None:
    gateway.payment_status = "authorized"
    order = _order(client, auth_token).json()
    response = client.post(
        "/api/v1/payments/verify",
        json={
            "order_id": order["order_id"],
            "payment_id": "pay_2",
            "signature": _signature(gateway, order["order_id"], "pay_2"),
        },
        headers=auth_token,
    )
    assert response.json()["status"] == "authorized"


def test_verify_bad_signature_marks_failed(client, db_session, gateway, test_user, auth_token) -> None:
    order = _order(client, auth_token).json()
    response = client.post(
        "/api/v1/payments/verify",
        json={"order_id": order["order_id"], "payment_id": "pay_1", "signature": "forged"},
        headers=auth_token,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert db_session.get(Transaction, order["transaction_id"]).status == "failed"
    db_session.refresh(test_user)
    assert test_user.role == "user"


def test_verify_unknown_and_foreign_orders(client, gateway, auth_token, other_auth_token) -> None:
    missing = client.post(
        "/api/v1/payments/verify",
        json={"order_id": "order_missing", "payment_id": "pay_1", "signature": "x"},
        headers=auth_token,
    )
    assert missing.status_code == status.HTTP_404_NOT_FOUND

    order = _order(client, auth_token).json()
    foreign = client.post(
        "/api/v1/payments/verify",
        json={
            "order_id": order["order_id"],
            "payment_id": "pay_1",
            "signature": _signature(gateway, order["order_id"], "pay_1"),
        },
        headers=other_auth_token,
    )
    assert foreign.status_code == status.HTTP_403_FORBIDDEN


def test_community_payment_adds_member(client, db_session, gateway, community, test_user, other_user, other_auth_token) -> None:
    order = _order(
        client, other_auth_token, payment_type="community", community_slug=community.slug
    ).json()
    transaction = db_session.get(Transaction, order["transaction_id"])
    assert transaction.payee_id == test_user.id
    assert transaction.community_id == community.id

    response = client.post(
        "/api/v1/payments/verify",
        json={
            "order_id": order["order_id"],
            "payment_id": "pay_c",
            "signature": _signature(gateway, order["order_id"], "pay_c"),
        },
        headers=other_auth_token,
    )
    assert response.status_code == status.HTTP_200_OK
    assert (
        db_session.query(CommunityMember)
        .filter(CommunityMember.community_id == community.id, CommunityMember.user_id == other_user.id)
        .count()
        == 1
    )

    # The admin sees the payment as payee.
    admin_view = client.get("/api/v1/payments/transactions", headers=auth_headers(test_user)).json()
    assert [t["id"] for t in admin_view] == [order["transaction_id"]]


def test_platform_plans_require_platform_admin(client, db_session, auth_token) -> None:
    plan = {"name": "Pro", "amount": 99900, "interval": "yearly"}
    forbidden = client.post("/api/v1/payments/plans", json=plan, headers=auth_token)
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    admin = make_user(db_session, "platform_admin", role="admin")
    created = client.post("/api/v1/payments/plans", json=plan, headers=auth_headers(admin))
    assert created.status_code == status.HTTP_201_CREATED
    assert created.json()["community_id"] is None

    listed = client.get("/api/v1/payments/plans").json()
    assert [p["name"] for p in listed] == ["Pro"]


def test_community_plan_lifecycle(client, community, member, auth_token, other_auth_token) -> None:
    plan = {"name": "Monthly", "amount": 19900, "community_slug": community.slug, "features": ["Courses"]}
    forbidden = client.post("/api/v1/payments/plans", json=plan, headers=other_auth_token)
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    created = client.post("/api/v1/payments/plans", json=plan, headers=auth_token).json()
    assert created["community_id"] == community.id
    assert created["features"] == ["Courses"]

    updated = client.patch(f"/api/v1/payments/plans/{created['id']}", json={"amount": 24900}, headers=auth_token)
    assert updated.json()["amount"] == 24900

    not_owner = client.delete(f"/api/v1/payments/plans/{created['id']}", headers=other_auth_token)
    assert not_owner.status_code == status.HTTP_403_FORBIDDEN

    deleted = client.delete(f"/api/v1/payments/plans/{created['id']}", headers=auth_token)
    assert deleted.status_code == status.HTTP_204_NO_CONTENT
    assert client.get(f"/api/v1/payments/plans/{created['id']}").json()["is_active"] is False
    assert client.get("/api/v1/payments/plans", params={"community_slug": community.slug}).json() == []


def test_gateway_disabled_returns_503(client, app, auth_token) -> None:
    disabled = PaymentGatewayClient(
        PaymentGatewayConfig(
            base_url="http://gateway.test",
            key_id=None,
            key_secret=None,
            webhook_secret=None,
            community_plan_id=None,
            timeout_seconds=1.0,
        )
    )
    app.dependency_overrides[get_payment_gateway_dep] = lambda: disabled
    try:
        response = _order(client, auth_token)
    finally:
        app.dependency_overrides.pop(get_payment_gateway_dep, None)
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


def test_update_plan_ignores_null_fields(client, community, auth_token) -> None:
    plan = {"name": "Monthly", "amount": 19900, "community_slug": community.slug, "features": ["Courses"]}
    created = client.post("/api/v1/payments/plans", json=plan, headers=auth_token).json()

    response = client.patch(
        f"/api/v1/payments/plans/{created['id']}",
        json={"features": None, "amount": None, "name": None},
        headers=auth_token,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["features"] == ["Courses"]
    assert response.json()["amount"] == 19900
    assert response.json()["name"] == "Monthly"
