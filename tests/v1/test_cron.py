# mypy: ignore-errors
# tests/v1/test_cron.py
"""Tests for the scheduler-triggered maintenance endpoints."""

import pytest
from fastapi import status

from tribelab_stage.core.settings import settings
from tribelab_stage.models import User

CRON_SECRET = "cron-test-secret"


@pytest.fixture()
def cron_headers(monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", CRON_SECRET)
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.mark.parametrize("path", ["process-expired-trials", "trial-reminders", "reset-monthly-points"])
def test_cron_requires_secret(client, cron_headers, path) -> None:
    assert client.post(f"/api/v1/cron/{path}").status_code == status.HTTP_401_UNAUTHORIZED
    wrong = client.post(f"/api/v1/cron/{path}", headers={"Authorization": "Bearer nope"})
    assert wrong.status_code == status.HTTP_401_UNAUTHORIZED


def test_unset_secret_rejects_everything(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "cron_secret", None)
    response = client.post("/api/v1/cron/process-expired-trials", headers={"Authorization": "Bearer "})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_process_expired_trials(client, cron_headers) -> None:
    response = client.post("/api/v1/cron/process-expired-trials", headers=cron_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok", "processed": 0, "suspended": 0, "expired": 0, "errors": 0}


def test_trial_reminders(client, cron_headers) -> None:
    response = client.post("/api/v1/cron/trial-reminders", headers=cron_headers)
    assert response.json() == {"status": "ok", "sent": 0}


def test_reset_monthly_points(client, db_session, cron_headers, test_user, other_user) -> None:
    test_user.monthly_points = 12
    test_user.points = 40
    db_session.commit()

    response = client.post("/api/v1/cron/reset-monthly-points", headers=cron_headers)
    assert response.json() == {"status": "ok", "reset": 1}

    db_session.refresh(test_user)
    assert test_user.monthly_points == 0
    assert test_user.points == 40
    assert test_user.last_points_reset is not None
    assert db_session.query(User).filter(User.monthly_points != 0).count() == 0
