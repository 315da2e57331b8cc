# src/tribelab_stage/api/v1/endpoints/communities.py
"""Community-related endpoints for the TribeLab API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse
from slugify import slugify
from sqlalchemy.orm import Session

from tribelab_stage.db.time import utcnow
from tribelab_stage.models import Community, CommunityMember, JoinRequest, Post, Transaction, User
from tribelab_stage.models.community import (
    JOIN_REQUEST_APPROVED,
    JOIN_REQUEST_PENDING,
    JOIN_REQUEST_REJECTED,
    MEMBER_ROLE_MEMBER,
    MEMBER_ROLE_SUB_ADMIN,
)
from tribelab_stage.models.payment import TX_CAPTURED
from tribelab_stage.schemas.common import StatusResponse
from tribelab_stage.schemas.community import (
    CommunityCreate,
    CommunityResponse,
    CommunitySettingsUpdate,
    JoinPaidRequest,
    JoinRequestCreate,
    JoinRequestDecision,
    JoinRequestResponse,
    MemberResponse,
    SlugUpdate,
    SubAdminRequest,
)
from tribelab_stage.schemas.post import PostCreate, PostResponse
from tribelab_stage.schemas.trial import CommunityStatusResponse
from tribelab_stage.services import membership
from tribelab_stage.services.notifications import create_notification
from tribelab_stage.services.trial_service import get_community_status

from ..dependencies import (
    CurrentUserDep,
    SessionDep,
    ensure_not_suspended,
    get_community_or_404,
    require_admin,
    require_manager,
    require_member,
)
from .posts import post_responses

router = APIRouter(prefix="/communities", tags=["communities"])
logger = logging.getLogger(__name__)


def community_to_response(db: Session, community: Community) -> CommunityResponse:
    """Serialise a community together with its member count."""
    return CommunityResponse.model_validate(community).model_copy(
        update={"member_count": membership.member_count(db, community.id)}
    )


def _slug_taken(db: Session, slug: str, exclude_id: int | None = None) -> bool:
    query = db.query(Community.id).filter(Community.slug == slug)
    if exclude_id is not None:
        query = query.filter(Community.id != exclude_id)
    return query.first() is not None


@router.get("/", response_model=list[CommunityResponse])
async def list_communities(db: SessionDep) -> list[CommunityResponse]:
    """List all communities, newest first."""
    communities = db.query(Community).order_by(Community.created_at.desc(), Community.id.desc()).all()
    return [community_to_response(db, c) for c in communities]


@router.post("/", response_model=CommunityResponse, status_code=status.HTTP_201_CREATED)
async def create_community(
    data: CommunityCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommunityResponse:
    """Create a community; the creator becomes its admin and first member."""
    slug = slugify(data.name)
    if not slug:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Community name must contain letters or numbers",
        )
    if _slug_taken(db, slug):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A community with this name already exists",
        )

    community = Community(
        name=data.name,
        slug=slug,
        description=data.description,
        image_url=data.image_url,
        admin_id=current_user.id,
        is_private=data.is_private,
        payment_enabled=data.payment_enabled,
        subscription_required=data.subscription_required,
        price=data.price,
        currency=data.currency,
        questions=list(data.questions),
    )
    db.add(community)
    db.flush()
    db.add(CommunityMember(community_id=community.id, user_id=current_user.id))
    db.commit()
    db.refresh(community)
    logger.info("User %s created community %s", current_user.id, community.slug)
    return community_to_response(db, community)


@router.get("/{slug}", response_model=CommunityResponse)
async def get_community(slug: str, db: SessionDep) -> CommunityResponse:
    """Get a specific community by slug."""
    return community_to_response(db, get_community_or_404(db, slug))


@router.patch("/{slug}/settings", response_model=CommunityResponse)
async def update_settings(
    slug: str,
    data: CommunitySettingsUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommunityResponse:
    community = get_community_or_404(db, slug)
    require_admin(community, current_user, "Only the community admin can change settings")
    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(community, key, list(value) if key == "questions" else value)
    db.commit()
    db.refresh(community)
    return community_to_response(db, community)


@router.patch("/{slug}/slug", response_model=CommunityResponse)
async def update_slug(
    slug: str,
    data: SlugUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommunityResponse:
    community = get_community_or_404(db, slug)
    require_admin(community, current_user, "Only the community admin can change the slug")
    new_slug = slugify(data.slug)
    if not new_slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid slug")
    if _slug_taken(db, new_slug, exclude_id=community.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slug is already taken")
    community.slug = new_slug
    db.commit()
    db.refresh(community)
    return community_to_response(db, community)


@router.get("/{slug}/members", response_model=list[MemberResponse])
async def list_members(slug: str, db: SessionDep) -> list[MemberResponse]:
    community = get_community_or_404(db, slug)
    rows = (
        db.query(CommunityMember, User)
        .join(User, User.id == CommunityMember.user_id)
        .filter(CommunityMember.community_id == community.id)
        .order_by(CommunityMember.joined_at)
        .all()
    )
    return [
        MemberResponse(
            user_id=user.id,
            username=user.username,
            name=user.name,
            profile_image=user.profile_image,
            role=membership.ROLE_ADMIN if user.id == community.admin_id else member.role,
            joined_at=member.joined_at,
        )
        for member, user in rows
    ]


@router.post("/{slug}/join", response_model=StatusResponse, status_code=status.HTTP_201_CREATED)
async def join_community(
    slug: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    data: JoinRequestCreate | None = None,
) -> StatusResponse | JSONResponse:
    """Ask to join a community; paid communities answer 402 instead."""
    community = get_community_or_404(db, slug)
    ensure_not_suspended(community, current_user)

    if membership.is_member(db, community, current_user.id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Already a member")

    if community.payment_enabled and community.subscription_required:
        return JSONResponse(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            content={
                "detail": "Payment required to join this community",
                "requires_payment": True,
                "community_id": community.id,
                "price": community.price,
                "currency": community.currency,
            },
        )

    pending = (
        db.query(JoinRequest)
        .filter(
            JoinRequest.community_id == community.id,
            JoinRequest.user_id == current_user.id,
            JoinRequest.status == JOIN_REQUEST_PENDING,
        )
        .first()
    )
    if pending is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request already pending")

    request = JoinRequest(
        community_id=community.id,
        user_id=current_user.id,
        answers=list(data.answers) if data else [],
    )
    db.add(request)
    db.flush()
    create_notification(
        db,
        recipient_id=community.admin_id,
        type="join-request",
        title=f"{current_user.username} asked to join {community.name}",
        source_id=request.id,
        source_type="community",
        community_id=community.id,
        created_by=current_user.id,
    )
    db.commit()
    return StatusResponse(status="pending", message="Join request submitted")


@router.post("/{slug}/join-paid", response_model=StatusResponse, status_code=status.HTTP_201_CREATED)
async def join_paid_community(
    slug: str,
    data: JoinPaidRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> StatusResponse:
    """Join with a captured payment made by the caller for this community."""
    community = get_community_or_404(db, slug)
    ensure_not_suspended(community, current_user)
    transaction = db.get(Transaction, data.transaction_id)
    if (
        transaction is None
        or transaction.payer_id != current_user.id
        or transaction.community_id != community.id
        or transaction.status != TX_CAPTURED
    ):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Valid payment not found")

    membership.add_member(db, community, current_user.id)
    db.add(
        JoinRequest(
            community_id=community.id,
            user_id=current_user.id,
            status=JOIN_REQUEST_APPROVED,
            decided_at=utcnow(),
        )
    )
    db.commit()
    return StatusResponse(status="joined")


@router.delete("/{slug}/leave", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def leave_community(slug: str, current_user: CurrentUserDep, db: SessionDep) -> Response:
    """Leave a community."""
    community = get_community_or_404(db, slug)
    if community.admin_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The community admin cannot leave",
        )
    existing = membership.get_membership(db, community.id, current_user.id)
    if existing is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not a member of this community",
        )
    db.delete(existing)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{slug}/requests", response_model=list[JoinRequestResponse])
async def list_join_requests(
    slug: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> list[JoinRequestResponse]:
    community = get_community_or_404(db, slug)
    require_manager(db, community, current_user)
    rows = (
        db.query(JoinRequest, User)
        .join(User, User.id == JoinRequest.user_id)
        .filter(
            JoinRequest.community_id == community.id,
            JoinRequest.status == JOIN_REQUEST_PENDING,
        )
        .order_by(JoinRequest.created_at)
        .all()
    )
    return [
        JoinRequestResponse.model_validate(request).model_copy(update={"username": user.username})
        for request, user in rows
    ]


@router.post("/{slug}/requests/{user_id}", response_model=StatusResponse)
async def decide_join_request(
    slug: str,
    user_id: int,
    data: JoinRequestDecision,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> StatusResponse:
    """Approve or reject a pending join request."""
    community = get_community_or_404(db, slug)
    require_manager(db, community, current_user)
    if data.action not in ("approve", "reject"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid action")

    request = (
        db.query(JoinRequest)
        .filter(
            JoinRequest.community_id == community.id,
            JoinRequest.user_id == user_id,
            JoinRequest.status == JOIN_REQUEST_PENDING,
        )
        .first()
    )
    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Join request not found")

    request.decided_at = utcnow()
    if data.action == "approve":
        request.status = JOIN_REQUEST_APPROVED
        membership.add_member(db, community, user_id)
        create_notification(
            db,
            recipient_id=user_id,
            type="join-request",
            title=f"Your request to join {community.name} was approved",
            source_id=community.id,
            source_type="community",
            community_id=community.id,
            created_by=current_user.id,
        )
    else:
        request.status = JOIN_REQUEST_REJECTED
    db.commit()
    return StatusResponse(status=request.status)


@router.post("/{slug}/sub-admins", response_model=StatusResponse)
async def add_sub_admin(
    slug: str,
    data: SubAdminRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> StatusResponse:
    community = get_community_or_404(db, slug)
    require_admin(community, current_user, "Only admins can add sub-admins")
    if data.user_id == community.admin_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The admin cannot be made a sub-admin",
        )
    target = membership.get_membership(db, community.id, data.user_id)
    if target is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User must be a member of the community",
        )
    target.role = MEMBER_ROLE_SUB_ADMIN
    db.commit()
    return StatusResponse(status="sub_admin")


@router.delete("/{slug}/sub-admins/{user_id}", response_model=StatusResponse)
async def remove_sub_admin(
    slug: str,
    user_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> StatusResponse:
    community = get_community_or_404(db, slug)
    require_admin(community, current_user, "Only admins can remove sub-admins")
    target = membership.get_membership(db, community.id, user_id)
    if target is not None and target.role == MEMBER_ROLE_SUB_ADMIN:
        target.role = MEMBER_ROLE_MEMBER
        db.commit()
    return StatusResponse(status="member")


@router.get("/{slug}/status", response_model=CommunityStatusResponse)
async def community_status(slug: str, _current_user: CurrentUserDep, db: SessionDep) -> CommunityStatusResponse:
    """Billing and trial status of a community."""
    community = get_community_or_404(db, slug)
    result = get_community_status(db, community)
    return CommunityStatusResponse(
        status=result.status,
        payment_status=result.payment_status,
        suspended=result.suspended,
        days_remaining=result.days_remaining,
        end_date=result.end_date,
        is_eligible_for_trial=result.is_eligible_for_trial,
    )


@router.get("/{slug}/posts", response_model=list[PostResponse])
async def list_community_posts(
    slug: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: int = Query(20, ge=1, le=100, description="Maximum number of posts to return"),
    offset: int = Query(0, ge=0),
) -> list[PostResponse]:
    """Posts of a community, pinned first and then newest first."""
    community = get_community_or_404(db, slug)
    ensure_not_suspended(community, current_user)
    posts = (
        db.query(Post)
        .filter(Post.community_id == community.id)
        .order_by(Post.is_pinned.desc(), Post.created_at.desc(), Post.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return post_responses(db, posts, current_user.id)


@router.post("/{slug}/posts", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_community_post(
    slug: str,
    data: PostCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> PostResponse:
    community = get_community_or_404(db, slug)
    ensure_not_suspended(community, current_user)
    require_member(db, community, current_user)
    post = Post(
        community_id=community.id,
        author_id=current_user.id,
        title=data.title,
        content=data.content,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return post_responses(db, [post], current_user.id)[0]
