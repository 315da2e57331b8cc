"""Free-trial eligibility, activation and community access status.

A trial's end date is written to three places: the ``TrialHistory`` row,
the user, and (for community trials) the community. Every writer in this
module updates all of them together.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from tribelab_stage.core.settings import settings
from tribelab_stage.db.time import ensure_aware, utcnow
from tribelab_stage.models import Community, CommunitySubscription, TrialHistory, User
from tribelab_stage.models.community import (
    PAYMENT_STATUS_EXPIRED,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_SUSPENDED,
    PAYMENT_STATUS_TRIAL,
)
from tribelab_stage.models.subscription import SUB_ACTIVE, SUB_AUTHENTICATED
from tribelab_stage.models.trial import (
    TRIAL_ACTIVE,
    TRIAL_CANCELLED,
    TRIAL_CONVERTED,
    TRIAL_TYPE_COMMUNITY,
    TRIAL_TYPE_USER,
)
from tribelab_stage.models.user import SUBSCRIPTION_TRIAL, USER_ROLE_ADMIN
from tribelab_stage.services.notifications import create_notification

logger = logging.getLogger(__name__)

STATUS_ACTIVE_SUBSCRIPTION = "active_subscription"
STATUS_ACTIVE_TRIAL = "active_trial"
STATUS_EXPIRED = "expired"
STATUS_SUSPENDED = "suspended"
STATUS_UNPAID = "unpaid"

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MIN_VALID_DATE = _EPOCH + timedelta(days=365)


class TrialError(RuntimeError):
    """Raised when a trial operation cannot be carried out."""


@dataclass(frozen=True)
class TrialEligibility:
    eligible: bool
    reason: str | None = None


@dataclass(frozen=True)
class TrialActivation:
    trial_type: str
    community_id: int | None
    start_date: datetime
    end_date: datetime
    history_id: int


@dataclass(frozen=True)
class CommunityStatus:
    status: str
    payment_status: str
    suspended: bool
    days_remaining: int
    end_date: datetime | None
    is_eligible_for_trial: bool


def is_valid_date(value: datetime | None) -> bool:
    """Reject missing dates and placeholder values near the Unix epoch."""
    value = ensure_aware(value)
    return value is not None and value > _MIN_VALID_DATE


def _is_future(value: datetime | None, now: datetime) -> bool:
    return is_valid_date(value) and ensure_aware(value) > now  # type: ignore[operator]


def has_active_subscription(db: Session, community: Community, now: datetime | None = None) -> bool:
    """True when the community is paid up, either directly or through a live gateway subscription."""
    now = now or utcnow()
    if community.payment_status == PAYMENT_STATUS_PAID and _is_future(
        community.subscription_end_date, now
    ):
        return True

    subscription = (
        db.query(CommunitySubscription)
        .filter(
            CommunitySubscription.community_id == community.id,
            CommunitySubscription.status.in_((SUB_ACTIVE, SUB_AUTHENTICATED)),
        )
        .first()
    )
    if subscription is None:
        return False
    return _is_future(subscription.current_end or community.subscription_end_date, now)


def has_active_trial(community: Community, now: datetime | None = None) -> bool:
    now = now or utcnow()
    return (
        community.payment_status == PAYMENT_STATUS_TRIAL
        and community.trial_activated
        and not community.trial_cancelled
        and _is_future(community.trial_end_date, now)
    )


def _history_query(db: Session, user_id: int, trial_type: str, community_id: int | None):
    query = db.query(TrialHistory).filter(
        TrialHistory.user_id == user_id,
        TrialHistory.trial_type == trial_type,
    )
    if community_id is not None:
        query = query.filter(TrialHistory.community_id == community_id)
    return query


def check_eligibility(
    db: Session,
    user: User,
    trial_type: str,
    community: Community | None = None,
    *,
    now: datetime | None = None,
) -> TrialEligibility:
    """Decide whether ``user`` may start a trial of ``trial_type``."""
    now = now or utcnow()
    community_id = community.id if community is not None else None

    if _history_query(db, user.id, trial_type, community_id).first() is not None:
        return TrialEligibility(False, "User has already used a free trial for this service")

    active = (
        _history_query(db, user.id, trial_type, community_id)
        .filter(TrialHistory.status == TRIAL_ACTIVE, TrialHistory.end_date > now)
        .first()
    )
    if active is not None:
        return TrialEligibility(False, "User already has an active trial")

    if trial_type == TRIAL_TYPE_COMMUNITY:
        if community is None:
            return TrialEligibility(False, "Community not found")
        if community.admin_id != user.id:
            return TrialEligibility(False, "Only community admin can activate trial")
        if has_active_subscription(db, community, now):
            return TrialEligibility(False, "Community already has active subscription")
        if has_active_trial(community, now):
            return TrialEligibility(False, "Community already has an active trial")
        if community.trial_used:
            return TrialEligibility(False, "Community has already used its free trial")

    return TrialEligibility(True)


def activate_trial(
    db: Session,
    user: User,
    trial_type: str,
    community: Community | None = None,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> TrialActivation:
    """Start a trial lasting exactly ``TRIAL_PERIOD_DAYS`` days.

    Raises:
        TrialError: If the user is not eligible; the message is the reason.
    """
    eligibility = check_eligibility(db, user, trial_type, community, now=now)
    if not eligibility.eligible:
        raise TrialError(eligibility.reason or "Not eligible for a trial")

    start = now or utcnow()
    end = start + timedelta(days=settings.trial_period_days)

    history = TrialHistory(
        user_id=user.id,
        community_id=community.id if community is not None else None,
        trial_type=trial_type,
        start_date=start,
        end_date=end,
        status=TRIAL_ACTIVE,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(history)

    user.trial_used = True
    user.trial_start_date = start
    user.trial_end_date = end
    if trial_type == TRIAL_TYPE_USER:
        user.subscription_status = SUBSCRIPTION_TRIAL
        user.subscription_end_date = end
        user.role = USER_ROLE_ADMIN

    if trial_type == TRIAL_TYPE_COMMUNITY and community is not None:
        community.trial_activated = True
        community.trial_used = True
        community.trial_cancelled = False
        community.trial_start_date = start
        community.trial_end_date = end
        community.payment_status = PAYMENT_STATUS_TRIAL
        community.subscription_end_date = end
        community.suspended = False
        community.suspended_at = None
        community.suspension_reason = None

    create_notification(
        db,
        recipient_id=user.id,
        type="trial_started",
        title=(
            f"Your free trial for {community.name} has started"
            if community is not None
            else "Your free trial has started"
        ),
        content=f"Your trial ends on {end:%Y-%m-%d}.",
        source_id=community.id if community is not None else user.id,
        source_type="community" if community is not None else "user",
        community_id=community.id if community is not None else None,
    )
    db.commit()
    db.refresh(history)

    logger.info(
        "Activated %s trial for user %s (community=%s, ip=%s, user_agent=%s)",
        trial_type,
        user.id,
        history.community_id,
        ip_address,
        user_agent,
    )
    return TrialActivation(
        trial_type=trial_type,
        community_id=history.community_id,
        start_date=start,
        end_date=end,
        history_id=history.id,
    )


def cancel_trial(
    db: Session,
    user: User,
    community: Community,
    *,
    now: datetime | None = None,
) -> None:
    """Cancel a community's running trial; access is suspended immediately."""
    if community.admin_id != user.id:
        raise TrialError("Only community admin can cancel trial")
    now = now or utcnow()
    if not has_active_trial(community, now):
        raise TrialError("No active trial to cancel")

    community.trial_cancelled = True
    community.trial_activated = False
    community.payment_status = PAYMENT_STATUS_SUSPENDED
    community.suspended = True
    community.suspended_at = now
    community.suspension_reason = "Trial cancelled by admin"

    histories = (
        db.query(TrialHistory)
        .filter(
            TrialHistory.community_id == community.id,
            TrialHistory.status == TRIAL_ACTIVE,
        )
        .all()
    )
    for history in histories:
        history.status = TRIAL_CANCELLED
        history.cancelled_at = now

    create_notification(
        db,
        recipient_id=user.id,
        type="trial_cancelled",
        title=f"Trial cancelled for {community.name}",
        content="Your community is suspended until a subscription is started.",
        source_id=community.id,
        source_type="community",
        community_id=community.id,
    )
    db.commit()
    logger.info("Cancelled trial for community %s", community.id)


def clear_trial_state(db: Session, community: Community, *, now: datetime | None = None) -> None:
    """Mark a community's trial as converted once it starts paying. Caller commits."""
    now = now or utcnow()
    community.trial_activated = False
    community.trial_cancelled = False
    community.suspended = False
    community.suspended_at = None
    community.suspension_reason = None

    histories = (
        db.query(TrialHistory)
        .filter(
            TrialHistory.community_id == community.id,
            TrialHistory.status == TRIAL_ACTIVE,
        )
        .all()
    )
    for history in histories:
        history.status = TRIAL_CONVERTED
        history.converted_at = now


def _days_remaining(end: datetime | None, now: datetime) -> int:
    if not is_valid_date(end):
        return 0
    seconds = (ensure_aware(end) - now).total_seconds()  # type: ignore[operator]
    return max(0, math.ceil(seconds / 86400))


def get_community_status(
    db: Session,
    community: Community,
    *,
    now: datetime | None = None,
) -> CommunityStatus:
    """Summarise whether a community is paid, trialling, or locked."""
    now = now or utcnow()
    admin = db.get(User, community.admin_id)
    eligible = (
        check_eligibility(db, admin, TRIAL_TYPE_COMMUNITY, community, now=now).eligible
        if admin is not None
        else False
    )

    if has_active_subscription(db, community, now):
        status = STATUS_ACTIVE_SUBSCRIPTION
        end = community.subscription_end_date
    elif has_active_trial(community, now):
        status = STATUS_ACTIVE_TRIAL
        end = community.trial_end_date
    elif community.suspended or community.payment_status == PAYMENT_STATUS_SUSPENDED:
        status = STATUS_SUSPENDED
        end = community.trial_end_date or community.subscription_end_date
    elif community.payment_status == PAYMENT_STATUS_EXPIRED or (
        community.payment_status in (PAYMENT_STATUS_PAID, PAYMENT_STATUS_TRIAL)
        and is_valid_date(community.subscription_end_date)
    ):
        status = STATUS_EXPIRED
        end = community.subscription_end_date
    else:
        status = STATUS_UNPAID
        end = None

    return CommunityStatus(
        status=status,
        payment_status=community.payment_status,
        suspended=community.suspended,
        days_remaining=_days_remaining(end, now),
        end_date=ensure_aware(end) if is_valid_date(end) else None,
        is_eligible_for_trial=eligible,
    )
