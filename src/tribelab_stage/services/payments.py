"""One-off payments: order creation, checkout verification and fulfilment."""
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from tribelab_stage.db.time import utcnow
from tribelab_stage.models import Community, PaymentPlan, Transaction, User
from tribelab_stage.models.payment import (
    PAYMENT_TYPE_COMMUNITY,
    PAYMENT_TYPE_PLATFORM,
    PLAN_INTERVAL_MONTHLY,
    PLAN_INTERVAL_YEARLY,
    TX_AUTHORIZED,
    TX_CAPTURED,
    TX_CREATED,
    TX_FAILED,
)
from tribelab_stage.models.user import SUBSCRIPTION_ACTIVE, USER_ROLE_ADMIN
from tribelab_stage.services.membership import add_member
from tribelab_stage.services.payment_gateway import PaymentGatewayClient

logger = logging.getLogger(__name__)

ORDER_PAYMENT_TYPES = (PAYMENT_TYPE_PLATFORM, PAYMENT_TYPE_COMMUNITY)
ONE_TIME_ACCESS_YEARS = 100


class PaymentError(RuntimeError):
    """Raised when a payment request is invalid."""


class PaymentNotFoundError(PaymentError):
    """Raised when the referenced transaction does not exist."""


class PaymentPermissionError(PaymentError):
    """Raised when the caller does not own the transaction."""


@dataclass(frozen=True)
class OrderResult:
    transaction: Transaction
    order_id: str
    key_id: str | None


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def plan_end_date(plan: PaymentPlan | None, start: datetime) -> datetime:
    """Access end date bought by a plan starting at ``start``."""
    if plan is None or plan.interval == PLAN_INTERVAL_MONTHLY:
        count = plan.interval_count if plan is not None else 1
        return _add_months(start, count)
    if plan.interval == PLAN_INTERVAL_YEARLY:
        return _add_months(start, 12 * plan.interval_count)
    return _add_months(start, 12 * ONE_TIME_ACCESS_YEARS)


async def create_order(
    db: Session,
    gateway: PaymentGatewayClient,
    payer: User,
    *,
    amount: int,
    currency: str,
    payment_type: str,
    plan: PaymentPlan | None = None,
    community: Community | None = None,
) -> OrderResult:
    """Open a gateway order and record it as a ``created`` transaction."""
    if amount <= 0:
        raise PaymentError("Amount must be greater than zero")
    if payment_type not in ORDER_PAYMENT_TYPES:
        raise PaymentError("Invalid payment type")
    if payment_type == PAYMENT_TYPE_COMMUNITY and community is None:
        raise PaymentError("Community is required for community payments")

    payee_id = community.admin_id if payment_type == PAYMENT_TYPE_COMMUNITY and community else None
    notes = {"payment_type": payment_type, "payer_id": str(payer.id)}
    if community is not None:
        notes["community_id"] = str(community.id)
    if plan is not None:
        notes["plan_id"] = str(plan.id)

    order = await gateway.create_order(
        amount,
        currency,
        receipt=f"rcpt_{payer.id}_{int(utcnow().timestamp())}",
        notes=notes,
    )

    transaction = Transaction(
        order_id=order["id"],
        amount=amount,
        currency=currency,
        status=TX_CREATED,
        payment_type=payment_type,
        payer_id=payer.id,
        payee_id=payee_id,
        community_id=community.id if community is not None else None,
        plan_id=plan.id if plan is not None else None,
        metadata_=notes,
    )
    db.add(transaction)
    db.commit()
    db.refresh(transaction)
    logger.info("Created order %s for user %s (%s)", order["id"], payer.id, payment_type)
    return OrderResult(transaction=transaction, order_id=order["id"], key_id=gateway.key_id)


async def verify_payment(
    db: Session,
    gateway: PaymentGatewayClient,
    payer: User,
    *,
    order_id: str,
    payment_id: str,
    signature: str,
    now: datetime | None = None,
) -> Transaction:
    """Verify a checkout callback and fulfil the purchase."""
    transaction = db.query(Transaction).filter(Transaction.order_id == order_id).first()
    if transaction is None:
        raise PaymentNotFoundError("Transaction not found")
    if transaction.payer_id != payer.id:
        raise PaymentPermissionError("Transaction belongs to another user")

    if not gateway.verify_payment_signature(order_id, payment_id, signature):
        transaction.status = TX_FAILED
        db.commit()
        logger.warning("Invalid payment signature for order %s", order_id)
        raise PaymentError("Invalid payment signature")

    payment = await gateway.fetch_payment(payment_id)
    transaction.payment_id = payment_id
    transaction.signature = signature
    transaction.status = TX_CAPTURED if payment.get("status") == TX_CAPTURED else TX_AUTHORIZED

    now = now or utcnow()
    plan = db.get(PaymentPlan, transaction.plan_id) if transaction.plan_id else None
    if transaction.payment_type == PAYMENT_TYPE_PLATFORM:
        payer.role = USER_ROLE_ADMIN
        payer.subscription_status = SUBSCRIPTION_ACTIVE
        payer.subscription_end_date = plan_end_date(plan, now)
    elif transaction.payment_type == PAYMENT_TYPE_COMMUNITY and transaction.community_id:
        community = db.get(Community, transaction.community_id)
        if community is not None:
            add_member(db, community, payer.id)

    db.commit()
    db.refresh(transaction)
    logger.info("Verified payment %s for order %s (%s)", payment_id, order_id, transaction.status)
    return transaction
