"""Trial and billing status schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class TrialRequest(BaseModel):
    """Trial scope: the caller's own account or one of their communities."""

    trial_type: Literal["user", "community"] = "community"
    community_slug: str | None = Field(None, description="Required for community trials")


class TrialEligibilityResponse(BaseModel):
    """Whether a trial may be activated and, if not, why."""

    eligible: bool
    reason: str | None = None


class TrialActivationResponse(BaseModel):
    """Result of a successful trial activation."""

    eligible: bool = True
    trial_type: str
    community_id: int | None
    start_date: datetime
    end_date: datetime


class CommunityStatusResponse(BaseModel):
    """Effective access status of a community."""

    status: str
    payment_status: str
    suspended: bool
    days_remaining: int
    end_date: datetime | None
    is_eligible_for_trial: bool
