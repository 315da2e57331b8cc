# src/tribelab_stage/api/v1/endpoints/payments.py
"""Payment plans, gateway orders and transactions."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Response, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from tribelab_stage.models import Community, PaymentPlan, Transaction, User
from tribelab_stage.models.user import USER_ROLE_ADMIN
from tribelab_stage.schemas.payment import (
    OrderCreate,
    OrderResponse,
    PaymentVerifyRequest,
    PlanCreate,
    PlanResponse,
    PlanUpdate,
    TransactionResponse,
)
from tribelab_stage.services import payments
from tribelab_stage.services.payment_gateway import PaymentGatewayDisabledError, PaymentGatewayError

from ..dependencies import (
    CurrentUserDep,
    PaymentGatewayDep,
    SessionDep,
    get_community_or_404,
    require_admin,
)

router = APIRouter(prefix="/payments", tags=["payments"])
logger = logging.getLogger(__name__)


def gateway_http_error(exc: PaymentGatewayError) -> HTTPException:
    """Map gateway failures onto 503 (not configured) or 502 (upstream error)."""
    if isinstance(exc, PaymentGatewayDisabledError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    logger.error("Payment gateway call failed: %s", exc)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Payment gateway error")


def _require_plan_owner(db: Session, plan: PaymentPlan, user: User) -> None:
    if plan.community_id is not None:
        community = db.get(Community, plan.community_id)
        if community is None or community.admin_id != user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the community admin can manage this plan",
            )
    elif user.role != USER_ROLE_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only platform admins can manage platform plans",
        )


def _get_plan_or_404(db: Session, plan_id: int) -> PaymentPlan:
    plan = db.get(PaymentPlan, plan_id)
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not found")
    return plan


@router.get("/plans", response_model=list[PlanResponse])
async def list_plans(
    db: SessionDep,
    community_slug: str | None = Query(None, description="Community plans; platform plans when absent"),
) -> list[PaymentPlan]:
    """Active plans for a community, or the platform plans."""
    query = db.query(PaymentPlan).filter(PaymentPlan.is_active.is_(True))
    if community_slug:
        community = get_community_or_404(db, community_slug)
        query = query.filter(PaymentPlan.community_id == community.id)
    else:
        query = query.filter(PaymentPlan.community_id.is_(None))
    return query.order_by(PaymentPlan.amount, PaymentPlan.id).all()


@router.post("/plans", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(data: PlanCreate, current_user: CurrentUserDep, db: SessionDep) -> PaymentPlan:
    community_id = None
    if data.community_slug:
        community = get_community_or_404(db, data.community_slug)
        require_admin(community, current_user, "Only the community admin can create plans")
        community_id = community.id
    elif current_user.role != USER_ROLE_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only platform admins can create platform plans",
        )

    plan = PaymentPlan(
        name=data.name,
        description=data.description,
        amount=data.amount,
        currency=data.currency,
        interval=data.interval,
        interval_count=data.interval_count,
        community_id=community_id,
        created_by=current_user.id,
        features=list(data.features),
    )
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan


@router.get("/plans/{plan_id}", response_model=PlanResponse)
async def get_plan(plan_id: int, db: SessionDep) -> PaymentPlan:
    return _get_plan_or_404(db, plan_id)


@router.patch("/plans/{plan_id}", response_model=PlanResponse)
async def update_plan(
    plan_id: int,
    data: PlanUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> PaymentPlan:
    plan = _get_plan_or_404(db, plan_id)
    _require_plan_owner(db, plan, current_user)
    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(plan, key, list(value) if key == "features" else value)
    db.commit()
    db.refresh(plan)
    return plan


@router.delete("/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_plan(plan_id: int, current_user: CurrentUserDep, db: SessionDep) -> Response:
    """Deactivate a plan; existing transactions keep referencing it."""
    plan = _get_plan_or_404(db, plan_id)
    _require_plan_owner(db, plan, current_user)
    plan.is_active = False
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/create-order", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    data: OrderCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    gateway: PaymentGatewayDep,
) -> OrderResponse:
    """Open a gateway order for a platform or community payment."""
    community = get_community_or_404(db, data.community_slug) if data.community_slug else None
    plan = _get_plan_or_404(db, data.plan_id) if data.plan_id is not None else None
    try:
        result = await payments.create_order(
            db,
            gateway,
            current_user,
            amount=data.amount,
            currency=data.currency,
            payment_type=data.payment_type,
            plan=plan,
            community=community,
        )
    except payments.PaymentError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PaymentGatewayError as exc:
        raise gateway_http_error(exc) from exc

    return OrderResponse(
        order_id=result.order_id,
        amount=result.transaction.amount,
        currency=result.transaction.currency,
        key_id=result.key_id,
        transaction_id=result.transaction.id,
    )


@router.post("/verify", response_model=TransactionResponse)
async def verify_payment(
    data: PaymentVerifyRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    gateway: PaymentGatewayDep,
) -> Transaction:
    """Verify the checkout signature and fulfil the purchase."""
    try:
        return await payments.verify_payment(
            db,
            gateway,
            current_user,
            order_id=data.order_id,
            payment_id=data.payment_id,
            signature=data.signature,
        )
    except payments.PaymentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except payments.PaymentPermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except payments.PaymentError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PaymentGatewayError as exc:
        raise gateway_http_error(exc) from exc


@router.get("/transactions", response_model=list[TransactionResponse])
async def list_transactions(
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: int = Query(50, ge=1, le=100),
) -> list[Transaction]:
    """Transactions where the caller paid or was paid."""
    return (
        db.query(Transaction)
        .filter(or_(Transaction.payer_id == current_user.id, Transaction.payee_id == current_user.id))
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
        .all()
    )
