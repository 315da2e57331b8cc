"""Scheduled sweeps: trial expiry, lapsed subscriptions and trial reminders.

Every sweep is a full scan guarded only by status checks, so running one
twice in a row changes nothing the second time.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from tribelab_stage.db.time import ensure_aware, utcnow
from tribelab_stage.models import Community, CommunitySubscription, TrialHistory, User
from tribelab_stage.models.community import PAYMENT_STATUS_EXPIRED, PAYMENT_STATUS_PAID
from tribelab_stage.models.subscription import SUB_EXPIRED, SUB_TRIAL_STATUSES
from tribelab_stage.models.trial import TRIAL_ACTIVE, TRIAL_EXPIRED, TRIAL_TYPE_COMMUNITY, TRIAL_TYPE_USER
from tribelab_stage.models.user import (
    SUBSCRIPTION_ACTIVE,
    SUBSCRIPTION_UNPAID,
    USER_ROLE_ADMIN,
    USER_ROLE_USER,
)
from tribelab_stage.services.notifications import create_notification

logger = logging.getLogger(__name__)

TRIAL_REMINDER_DAYS = (7, 3, 2, 1)
TRIAL_EXPIRED_REASON = "Trial expired without payment"


@dataclass
class SweepResult:
    processed: int = 0
    suspended: int = 0
    expired: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "suspended": self.suspended,
            "expired": self.expired,
            "errors": self.errors,
        }


def _suspend_community(community: Community, now: datetime, reason: str) -> bool:
    """Lock an unpaid community. Returns False when nothing changed."""
    if community.payment_status == PAYMENT_STATUS_PAID or community.suspended:
        return False
    community.suspended = True
    community.suspended_at = now
    community.suspension_reason = reason
    community.payment_status = PAYMENT_STATUS_EXPIRED
    community.trial_activated = False
    return True


def _downgrade_user(user: User) -> None:
    if user.subscription_status == SUBSCRIPTION_ACTIVE:
        return
    user.subscription_status = SUBSCRIPTION_UNPAID
    user.subscription_end_date = None
    if user.role == USER_ROLE_ADMIN:
        user.role = USER_ROLE_USER


def _expire_trial(db: Session, trial: TrialHistory, now: datetime) -> bool:
    """Expire one trial. Returns True when its community was suspended."""
    trial.status = TRIAL_EXPIRED
    community: Community | None = None
    suspended = False

    if trial.trial_type == TRIAL_TYPE_COMMUNITY and trial.community_id is not None:
        community = db.get(Community, trial.community_id)
        if community is None:
            logger.warning("Community %s not found for expired trial %s", trial.community_id, trial.id)
        else:
            suspended = _suspend_community(community, now, TRIAL_EXPIRED_REASON)
    elif trial.trial_type == TRIAL_TYPE_USER:
        user = db.get(User, trial.user_id)
        if user is not None:
            _downgrade_user(user)

    create_notification(
        db,
        recipient_id=trial.user_id,
        type="trial_expired",
        title=(
            f"Your free trial for {community.name} has ended"
            if community is not None
            else "Your free trial has ended"
        ),
        content="Subscribe to restore access.",
        source_id=trial.community_id or trial.user_id,
        source_type="community" if trial.community_id else "user",
        community_id=trial.community_id,
    )
    return suspended


def process_expired_trials(db: Session, now: datetime | None = None) -> SweepResult:
    """Expire lapsed trials and suspend or downgrade their owners."""
    now = now or utcnow()
    result = SweepResult()

    trials = (
        db.query(TrialHistory)
        .filter(TrialHistory.status == TRIAL_ACTIVE, TrialHistory.end_date < now)
        .all()
    )
    logger.info("Found %s expired trials to process", len(trials))
    for trial in trials:
        try:
            suspended = _expire_trial(db, trial, now)
            db.commit()
            result.processed += 1
            result.suspended += int(suspended)
        except Exception:
            db.rollback()
            logger.exception("Error processing expired trial %s", trial.id)
            result.errors += 1

    _expire_gateway_trials(db, now, result)
    _expire_lapsed_subscriptions(db, now, result)

    logger.info("Expiration sweep finished: %s", result.as_dict())
    return result


def _expire_gateway_trials(db: Session, now: datetime, result: SweepResult) -> None:
    """Suspend communities whose gateway subscription never got past its trial."""
    subscriptions = (
        db.query(CommunitySubscription)
        .filter(
            CommunitySubscription.status.in_(SUB_TRIAL_STATUSES),
            CommunitySubscription.trial_end_date < now,
            CommunitySubscription.suspended.is_(False),
        )
        .all()
    )
    for subscription in subscriptions:
        try:
            subscription.status = SUB_EXPIRED
            subscription.suspended = True
            subscription.suspended_at = now
            subscription.suspension_reason = TRIAL_EXPIRED_REASON
            suspended = False
            community = db.get(Community, subscription.community_id)
            if community is not None:
                community.subscription_status = SUB_EXPIRED
                suspended = _suspend_community(community, now, TRIAL_EXPIRED_REASON)
            db.commit()
            result.processed += 1
            result.suspended += int(suspended)
        except Exception:
            db.rollback()
            logger.exception("Error suspending subscription %s", subscription.gateway_subscription_id)
            result.errors += 1


def _expire_lapsed_subscriptions(db: Session, now: datetime, result: SweepResult) -> None:
    """Paid communities whose period ended without renewal become expired."""
    communities = (
        db.query(Community)
        .filter(
            Community.payment_status == PAYMENT_STATUS_PAID,
            Community.subscription_end_date.is_not(None),
            Community.subscription_end_date < now,
        )
        .all()
    )
    for community in communities:
        community.payment_status = PAYMENT_STATUS_EXPIRED
        result.expired += 1
        logger.info("Community %s subscription lapsed", community.id)
    if communities:
        db.commit()


def _days_left(end: datetime, now: datetime) -> int:
    return math.ceil((ensure_aware(end) - now).total_seconds() / 86400)  # type: ignore[operator]


def _remind(
    db: Session,
    *,
    admin_id: int,
    community: Community,
    days_left: int,
) -> None:
    plural = "day" if days_left == 1 else "days"
    create_notification(
        db,
        recipient_id=admin_id,
        type="trial_reminder",
        title=f"{days_left} {plural} left in your {community.name} trial",
        content="Start a subscription to keep your community online.",
        source_id=community.id,
        source_type="community",
        community_id=community.id,
    )


def send_trial_reminders(db: Session, now: datetime | None = None) -> int:
    """Send at most one reminder per trial and threshold. Returns the number sent."""
    now = now or utcnow()
    sent = 0
    reminded: set[tuple[int, int]] = set()

    trials = (
        db.query(TrialHistory)
        .filter(
            TrialHistory.status == TRIAL_ACTIVE,
            TrialHistory.trial_type == TRIAL_TYPE_COMMUNITY,
            TrialHistory.end_date > now,
        )
        .all()
    )
    for trial in trials:
        days_left = _days_left(trial.end_date, now)
        if days_left not in TRIAL_REMINDER_DAYS or days_left in (trial.reminders_sent or []):
            continue
        community = db.get(Community, trial.community_id)
        if community is None:
            continue
        _remind(db, admin_id=community.admin_id, community=community, days_left=days_left)
        trial.reminders_sent = [*(trial.reminders_sent or []), days_left]
        reminded.add((community.id, days_left))
        sent += 1

    subscriptions = (
        db.query(CommunitySubscription)
        .filter(
            CommunitySubscription.status.in_(SUB_TRIAL_STATUSES),
            CommunitySubscription.trial_end_date > now,
        )
        .all()
    )
    for subscription in subscriptions:
        days_left = _days_left(subscription.trial_end_date, now)  # type: ignore[arg-type]
        if days_left not in TRIAL_REMINDER_DAYS or days_left in (subscription.reminders_sent or []):
            continue
        subscription.reminders_sent = [*(subscription.reminders_sent or []), days_left]
        if (subscription.community_id, days_left) in reminded:
            continue
        community = db.get(Community, subscription.community_id)
        if community is None:
            continue
        _remind(db, admin_id=subscription.admin_id, community=community, days_left=days_left)
        sent += 1

    db.commit()
    logger.info("Sent %s trial reminders", sent)
    return sent
