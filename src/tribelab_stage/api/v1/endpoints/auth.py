# src/tribelab_stage/api/v1/endpoints/auth.py
"""Authentication endpoints for the TribeLab API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Response, status

from tribelab_stage.core.security import create_access_token
from tribelab_stage.core.settings import settings
from tribelab_stage.models import User
from tribelab_stage.schemas.user import (
    CurrentUserResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
)
from tribelab_stage.services import user_service

from ..dependencies import CurrentUserDep, SessionDep

router = APIRouter(prefix="/auth", tags=["authentication"])
logger = logging.getLogger(__name__)


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


@router.post("/register", response_model=CurrentUserResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, db: SessionDep) -> User:
    """Create an account."""
    try:
        user = user_service.create_user(db, data)
    except user_service.UserConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except user_service.UserServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    logger.info("Registered user %s", user.id)
    return user


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, response: Response, db: SessionDep) -> LoginResponse:
    """Exchange credentials for a session token (also set as a cookie)."""
    user = user_service.authenticate(db, data.identifier, data.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    token = create_access_token(user.id)
    _set_session_cookie(response, token)
    return LoginResponse(access_token=token, token_type="bearer")


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def logout() -> Response:
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get("/me", response_model=CurrentUserResponse)
async def me(current_user: CurrentUserDep) -> User:
    """Return the authenticated account."""
    return current_user
