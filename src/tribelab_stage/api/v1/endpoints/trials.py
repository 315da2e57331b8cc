# src/tribelab_stage/api/v1/endpoints/trials.py
"""Free-trial eligibility, activation and cancellation."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from tribelab_stage.models import Community
from tribelab_stage.models.trial import TRIAL_TYPE_COMMUNITY
from tribelab_stage.schemas.common import StatusResponse
from tribelab_stage.schemas.trial import (
    TrialActivationResponse,
    TrialEligibilityResponse,
    TrialRequest,
)
from tribelab_stage.services import trial_service

from ..dependencies import CurrentUserDep, SessionDep, client_ip, get_community_or_404

router = APIRouter(prefix="/trials", tags=["trials"])


def _community_for(db: Session, trial_type: str, slug: str | None) -> Community | None:
    if trial_type != TRIAL_TYPE_COMMUNITY or not slug:
        return None
    return get_community_or_404(db, slug)


@router.get("/eligibility", response_model=TrialEligibilityResponse)
async def check_eligibility(
    current_user: CurrentUserDep,
    db: SessionDep,
    trial_type: str = Query(TRIAL_TYPE_COMMUNITY, pattern="^(user|community)$"),
    community_slug: str | None = Query(None),
) -> TrialEligibilityResponse:
    community = _community_for(db, trial_type, community_slug)
    result = trial_service.check_eligibility(db, current_user, trial_type, community)
    return TrialEligibilityResponse(eligible=result.eligible, reason=result.reason)


@router.post("/activate", response_model=TrialActivationResponse, status_code=status.HTTP_201_CREATED)
async def activate_trial(
    data: TrialRequest,
    request: Request,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> TrialActivationResponse | JSONResponse:
    """Start a free trial; an ineligible caller gets 400 with ``eligible: false``."""
    community = _community_for(db, data.trial_type, data.community_slug)
    try:
        activation = trial_service.activate_trial(
            db,
            current_user,
            data.trial_type,
            community,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except trial_service.TrialError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc), "eligible": False, "reason": str(exc)},
        )
    return TrialActivationResponse(
        trial_type=activation.trial_type,
        community_id=activation.community_id,
        start_date=activation.start_date,
        end_date=activation.end_date,
    )


@router.post("/cancel/{slug}", response_model=StatusResponse)
async def cancel_trial(slug: str, current_user: CurrentUserDep, db: SessionDep) -> StatusResponse:
    """Cancel a community's running trial; the community is suspended at once."""
    community = get_community_or_404(db, slug)
    try:
        trial_service.cancel_trial(db, current_user, community)
    except trial_service.TrialError as exc:
        code = (
            status.HTTP_403_FORBIDDEN
            if community.admin_id != current_user.id
            else status.HTTP_400_BAD_REQUEST
        )
        raise HTTPException(status_code=code, detail=str(exc)) from exc
    return StatusResponse(status="cancelled", message="Trial cancelled and community suspended")
