# src/tribelab_stage/api/v1/endpoints/users.py
"""User profile, settings and follow endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Response, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from tribelab_stage.models import Community, CommunityMember, Post, User, UserFollow
from tribelab_stage.schemas.community import CommunityResponse
from tribelab_stage.schemas.user import (
    CurrentUserResponse,
    FollowStatusResponse,
    PasswordChangeRequest,
    ProfilePost,
    UserProfileResponse,
    UserResponse,
    UserSettingsUpdate,
)
from tribelab_stage.services import user_service

from ..dependencies import CurrentUserDep, SessionDep
from .communities import community_to_response

router = APIRouter(prefix="/users", tags=["users"])

PROFILE_POST_LIMIT = 20


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = user_service.get_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _follow_status(db: Session, follower: User, target: User) -> FollowStatusResponse:
    followers, following = user_service.follow_counts(db, target.id)
    is_following = (
        db.query(UserFollow.id)
        .filter(UserFollow.follower_id == follower.id, UserFollow.following_id == target.id)
        .first()
        is not None
    )
    return FollowStatusResponse(
        following=is_following,
        followers_count=followers,
        following_count=following,
    )


@router.get("/search", response_model=list[UserResponse])
async def search_users(
    db: SessionDep,
    _current_user: CurrentUserDep,
    q: str = Query(..., min_length=1, max_length=64),
) -> list[User]:
    """Prefix search on username and display name."""
    return list(user_service.search_users(db, q))


@router.get("/me/communities", response_model=list[CommunityResponse])
async def my_communities(current_user: CurrentUserDep, db: SessionDep) -> list[CommunityResponse]:
    """Communities the caller administers or belongs to."""
    member_of = select(CommunityMember.community_id).where(
        CommunityMember.user_id == current_user.id
    )
    communities = (
        db.query(Community)
        .filter(or_(Community.admin_id == current_user.id, Community.id.in_(member_of)))
        .order_by(Community.created_at.desc())
        .all()
    )
    return [community_to_response(db, c) for c in communities]


@router.patch("/me/settings", response_model=CurrentUserResponse)
async def update_settings(
    data: UserSettingsUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> User:
    """Update username, name, bio or profile image."""
    try:
        return user_service.update_settings(db, current_user, data)
    except user_service.UserConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except user_service.UserServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/me/password", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def change_password(
    data: PasswordChangeRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Response:
    try:
        user_service.change_password(db, current_user, data.current_password, data.new_password)
    except user_service.UserServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{user_id}", response_model=UserProfileResponse)
async def get_profile(user_id: int, db: SessionDep) -> UserProfileResponse:
    """Public profile with the user's latest posts."""
    user = _get_user_or_404(db, user_id)
    rows = (
        db.query(Post, Community)
        .join(Community, Community.id == Post.community_id)
        .filter(Post.author_id == user.id, Community.suspended.is_(False))
        .order_by(Post.created_at.desc())
        .limit(PROFILE_POST_LIMIT)
        .all()
    )
    followers, following = user_service.follow_counts(db, user.id)
    return UserProfileResponse(
        user=UserResponse.model_validate(user),
        posts=[
            ProfilePost(
                id=post.id,
                title=post.title,
                content=post.content,
                community_id=community.id,
                community_name=community.name,
                community_slug=community.slug,
                created_at=post.created_at,
            )
            for post, community in rows
        ],
        followers_count=followers,
        following_count=following,
    )


@router.get("/{user_id}/follow-status", response_model=FollowStatusResponse)
async def follow_status(user_id: int, current_user: CurrentUserDep, db: SessionDep) -> FollowStatusResponse:
    target = _get_user_or_404(db, user_id)
    return _follow_status(db, current_user, target)


@router.post("/{user_id}/follow", response_model=FollowStatusResponse)
async def follow_user(user_id: int, current_user: CurrentUserDep, db: SessionDep) -> FollowStatusResponse:
    target = _get_user_or_404(db, user_id)
    try:
        user_service.follow(db, current_user, target)
    except user_service.UserServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _follow_status(db, current_user, target)


@router.delete("/{user_id}/follow", response_model=FollowStatusResponse)
async def unfollow_user(user_id: int, current_user: CurrentUserDep, db: SessionDep) -> FollowStatusResponse:
    target = _get_user_or_404(db, user_id)
    user_service.unfollow(db, current_user, target)
    return _follow_status(db, current_user, target)
