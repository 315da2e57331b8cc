# src/tribelab_stage/api/v1/endpoints/cron.py
"""Scheduled maintenance jobs triggered by an external scheduler."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from tribelab_stage.services import expiration_service, gamification

from ..dependencies import SessionDep, verify_cron_secret

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)])
logger = logging.getLogger(__name__)


@router.post("/process-expired-trials")
async def process_expired_trials(db: SessionDep) -> dict[str, Any]:
    """Expire lapsed trials and subscriptions and suspend their communities."""
    result = expiration_service.process_expired_trials(db)
    logger.info("Expiration sweep finished: %s", result.as_dict())
    return {"status": "ok", **result.as_dict()}


@router.post("/trial-reminders")
async def trial_reminders(db: SessionDep) -> dict[str, Any]:
    sent = expiration_service.send_trial_reminders(db)
    return {"status": "ok", "sent": sent}


@router.post("/reset-monthly-points")
async def reset_monthly_points(db: SessionDep) -> dict[str, Any]:
    reset = gamification.reset_monthly_points(db)
    return {"status": "ok", "reset": reset}
