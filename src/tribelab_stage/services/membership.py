"""Membership and role lookups shared by endpoints and services."""
from __future__ import annotations

from sqlalchemy.orm import Session

from tribelab_stage.models import Community, CommunityMember
from tribelab_stage.models.community import MEMBER_ROLE_SUB_ADMIN

ROLE_ADMIN = "admin"


def get_membership(db: Session, community_id: int, user_id: int) -> CommunityMember | None:
    return (
        db.query(CommunityMember)
        .filter(
            CommunityMember.community_id == community_id,
            CommunityMember.user_id == user_id,
        )
        .first()
    )


def member_role(db: Session, community: Community, user_id: int) -> str | None:
    """Return ``admin``, ``sub_admin``, ``member`` or None for non-members."""
    if community.admin_id == user_id:
        return ROLE_ADMIN
    membership = get_membership(db, community.id, user_id)
    return membership.role if membership else None


def is_member(db: Session, community: Community, user_id: int) -> bool:
    return member_role(db, community, user_id) is not None


def is_manager(db: Session, community: Community, user_id: int) -> bool:
    """True for the community admin and its sub-admins."""
    return member_role(db, community, user_id) in (ROLE_ADMIN, MEMBER_ROLE_SUB_ADMIN)


def add_member(db: Session, community: Community, user_id: int) -> CommunityMember:
    """Add ``user_id`` to the community if not already a member."""
    membership = get_membership(db, community.id, user_id)
    if membership is None:
        membership = CommunityMember(community_id=community.id, user_id=user_id)
        db.add(membership)
    return membership


def member_count(db: Session, community_id: int) -> int:
    return db.query(CommunityMember).filter(CommunityMember.community_id == community_id).count()
