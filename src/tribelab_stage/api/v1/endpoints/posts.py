# src/tribelab_stage/api/v1/endpoints/posts.py
"""Post-related endpoints for the TribeLab API."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tribelab_stage.models import Comment, CommentLike, Community, Post, PostLike, User
from tribelab_stage.schemas.post import LikeResponse, PinRequest, PostResponse, PostUpdate
from tribelab_stage.services import gamification, membership
from tribelab_stage.services.notifications import create_notification

from ..dependencies import (
    CurrentUserDep,
    SessionDep,
    ensure_not_suspended,
    get_community_by_id_or_404,
    require_manager,
)

router = APIRouter(prefix="/posts", tags=["posts"])


def post_responses(db: Session, posts: list[Post], viewer_id: int | None) -> list[PostResponse]:
    """Attach author names, like and comment counts to a batch of posts."""
    ids = [post.id for post in posts]
    if not ids:
        return []

    like_counts = dict(
        db.query(PostLike.post_id, func.count(PostLike.id))
        .filter(PostLike.post_id.in_(ids))
        .group_by(PostLike.post_id)
        .all()
    )
    comment_counts = dict(
        db.query(Comment.post_id, func.count(Comment.id))
        .filter(Comment.post_id.in_(ids))
        .group_by(Comment.post_id)
        .all()
    )
    liked: set[int] = set()
    if viewer_id is not None:
        liked = {
            row.post_id
            for row in db.query(PostLike.post_id).filter(
                PostLike.post_id.in_(ids), PostLike.user_id == viewer_id
            )
        }
    authors = dict(
        db.query(User.id, User.username).filter(User.id.in_({p.author_id for p in posts})).all()
    )

    return [
        PostResponse(
            id=post.id,
            community_id=post.community_id,
            author_id=post.author_id,
            author_username=authors.get(post.author_id),
            title=post.title,
            content=post.content,
            is_pinned=post.is_pinned,
            like_count=like_counts.get(post.id, 0),
            liked_by_me=post.id in liked,
            comment_count=comment_counts.get(post.id, 0),
            created_at=post.created_at,
            updated_at=post.updated_at,
        )
        for post in posts
    ]


def get_post_or_404(db: Session, post_id: int) -> Post:
    post = db.get(Post, post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


def _load(db: Session, post_id: int, user: User) -> tuple[Post, Community]:
    post = get_post_or_404(db, post_id)
    community = get_community_by_id_or_404(db, post.community_id)
    ensure_not_suspended(community, user)
    return post, community


def _like_response(db: Session, post_id: int, liked: bool) -> LikeResponse:
    count = db.query(PostLike).filter(PostLike.post_id == post_id).count()
    return LikeResponse(liked=liked, like_count=count)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: int, current_user: CurrentUserDep, db: SessionDep) -> PostResponse:
    """Get a specific post by ID."""
    post, _community = _load(db, post_id, current_user)
    return post_responses(db, [post], current_user.id)[0]


@router.patch("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: int,
    data: PostUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> PostResponse:
    post, _community = _load(db, post_id, current_user)
    if post.author_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the author can edit this post",
        )
    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(post, key, value)
    db.commit()
    db.refresh(post)
    return post_responses(db, [post], current_user.id)[0]


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_post(post_id: int, current_user: CurrentUserDep, db: SessionDep) -> Response:
    """Delete a post with its likes and comments.

    Allowed for the author and for community admins and sub-admins.
    """
    post, community = _load(db, post_id, current_user)
    if post.author_id != current_user.id and not membership.is_manager(db, community, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to delete this post",
        )

    comment_ids = select(Comment.id).where(Comment.post_id == post.id)
    db.query(CommentLike).filter(CommentLike.comment_id.in_(comment_ids)).delete(
        synchronize_session=False
    )
    db.query(Comment).filter(Comment.post_id == post.id).delete(synchronize_session=False)
    db.query(PostLike).filter(PostLike.post_id == post.id).delete(synchronize_session=False)
    db.delete(post)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/like", response_model=LikeResponse)
async def like_post(post_id: int, current_user: CurrentUserDep, db: SessionDep) -> LikeResponse:
    """Like a post; liking twice is a no-op."""
    post, community = _load(db, post_id, current_user)
    existing = (
        db.query(PostLike)
        .filter(PostLike.post_id == post.id, PostLike.user_id == current_user.id)
        .first()
    )
    if existing is None:
        db.add(PostLike(post_id=post.id, user_id=current_user.id))
        if post.author_id != current_user.id:
            author = db.get(User, post.author_id)
            if author is not None:
                gamification.award_points(db, author, 1, community.id)
            create_notification(
                db,
                recipient_id=post.author_id,
                type="like",
                title=f"{current_user.username} liked your post",
                content=post.title,
                source_id=post.id,
                source_type="post",
                community_id=community.id,
                created_by=current_user.id,
            )
        db.commit()
    return _like_response(db, post.id, True)


@router.delete("/{post_id}/like", response_model=LikeResponse)
async def unlike_post(post_id: int, current_user: CurrentUserDep, db: SessionDep) -> LikeResponse:
    post, community = _load(db, post_id, current_user)
    existing = (
        db.query(PostLike)
        .filter(PostLike.post_id == post.id, PostLike.user_id == current_user.id)
        .first()
    )
    if existing is not None:
        db.delete(existing)
        if post.author_id != current_user.id:
            author = db.get(User, post.author_id)
            if author is not None:
                gamification.award_points(db, author, -1, community.id)
        db.commit()
    return _like_response(db, post.id, False)


@router.post("/{post_id}/pin", response_model=PostResponse)
async def pin_post(
    post_id: int,
    data: PinRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> PostResponse:
    """Pin or unpin a post (admins and sub-admins)."""
    post, community = _load(db, post_id, current_user)
    require_manager(db, community, current_user)
    post.is_pinned = data.pinned
    db.commit()
    db.refresh(post)
    return post_responses(db, [post], current_user.id)[0]
