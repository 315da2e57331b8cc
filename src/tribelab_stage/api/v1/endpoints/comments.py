# src/tribelab_stage/api/v1/endpoints/comments.py
"""Threaded comments on posts."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Response, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from tribelab_stage.models import Comment, CommentLike, Community, User
from tribelab_stage.schemas.post import CommentCreate, CommentResponse, LikeResponse
from tribelab_stage.services import gamification, membership
from tribelab_stage.services.notifications import create_notification

from ..dependencies import (
    CurrentUserDep,
    SessionDep,
    ensure_not_suspended,
    get_community_by_id_or_404,
)
from .posts import get_post_or_404

router = APIRouter(tags=["comments"])


def _comment_responses(db: Session, comments: list[Comment]) -> list[CommentResponse]:
    ids = [c.id for c in comments]
    if not ids:
        return []
    like_counts = dict(
        db.query(CommentLike.comment_id, func.count(CommentLike.id))
        .filter(CommentLike.comment_id.in_(ids))
        .group_by(CommentLike.comment_id)
        .all()
    )
    reply_counts = dict(
        db.query(Comment.parent_id, func.count(Comment.id))
        .filter(Comment.parent_id.in_(ids))
        .group_by(Comment.parent_id)
        .all()
    )
    parent_ids = {c.parent_id for c in comments if c.parent_id is not None}
    parent_authors = (
        dict(db.query(Comment.id, Comment.author_id).filter(Comment.id.in_(parent_ids)).all())
        if parent_ids
        else {}
    )
    usernames = dict(
        db.query(User.id, User.username).filter(User.id.in_({c.author_id for c in comments})).all()
    )
    return [
        CommentResponse(
            id=c.id,
            post_id=c.post_id,
            author_id=c.author_id,
            author_username=usernames.get(c.author_id),
            parent_id=c.parent_id,
            parent_author_id=parent_authors.get(c.parent_id) if c.parent_id else None,
            text=c.text,
            like_count=like_counts.get(c.id, 0),
            reply_count=reply_counts.get(c.id, 0),
            created_at=c.created_at,
        )
        for c in comments
    ]


def _load_comment(db: Session, comment_id: int, user: User) -> tuple[Comment, Community]:
    comment = db.get(Comment, comment_id)
    if comment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    post = get_post_or_404(db, comment.post_id)
    community = get_community_by_id_or_404(db, post.community_id)
    ensure_not_suspended(community, user)
    return comment, community


def _subtree_ids(db: Session, root_id: int) -> list[int]:
    ids = [root_id]
    frontier = [root_id]
    while frontier:
        frontier = [
            row.id for row in db.query(Comment.id).filter(Comment.parent_id.in_(frontier))
        ]
        ids.extend(frontier)
    return ids


def _comment_like_count(db: Session, comment_id: int) -> int:
    return db.query(CommentLike).filter(CommentLike.comment_id == comment_id).count()


@router.get("/posts/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    post_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    parent_id: int | None = Query(None, description="List replies to this comment"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> list[CommentResponse]:
    """Top-level comments of a post, or the replies to ``parent_id``. Newest first."""
    post = get_post_or_404(db, post_id)
    ensure_not_suspended(get_community_by_id_or_404(db, post.community_id), current_user)

    query = db.query(Comment).filter(Comment.post_id == post.id)
    if parent_id is None:
        query = query.filter(Comment.parent_id.is_(None))
    else:
        query = query.filter(Comment.parent_id == parent_id)
    comments = (
        query.order_by(Comment.created_at.desc(), Comment.id.desc()).offset(offset).limit(limit).all()
    )
    return _comment_responses(db, comments)


@router.post(
    "/posts/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    post_id: int,
    data: CommentCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommentResponse:
    """Comment on a post or reply to an existing comment."""
    post = get_post_or_404(db, post_id)
    community = get_community_by_id_or_404(db, post.community_id)
    ensure_not_suspended(community, current_user)

    parent = None
    if data.parent_id is not None:
        parent = db.get(Comment, data.parent_id)
        if parent is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Parent comment not found",
            )
        if parent.post_id != post.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Parent comment belongs to another post",
            )

    comment = Comment(
        post_id=post.id,
        author_id=current_user.id,
        parent_id=parent.id if parent is not None else None,
        text=data.text,
    )
    db.add(comment)
    db.flush()

    recipient = parent.author_id if parent is not None else post.author_id
    create_notification(
        db,
        recipient_id=recipient,
        type="comment",
        title=(
            f"{current_user.username} replied to your comment"
            if parent is not None
            else f"{current_user.username} commented on your post"
        ),
        content=data.text[:200],
        source_id=post.id,
        source_type="comment",
        community_id=community.id,
        created_by=current_user.id,
    )
    db.commit()
    db.refresh(comment)
    return _comment_responses(db, [comment])[0]


@router.post("/comments/{comment_id}/like", response_model=LikeResponse)
async def like_comment(comment_id: int, current_user: CurrentUserDep, db: SessionDep) -> LikeResponse:
    comment, community = _load_comment(db, comment_id, current_user)
    existing = (
        db.query(CommentLike)
        .filter(CommentLike.comment_id == comment.id, CommentLike.user_id == current_user.id)
        .first()
    )
    if existing is None:
        db.add(CommentLike(comment_id=comment.id, user_id=current_user.id))
        if comment.author_id != current_user.id:
            author = db.get(User, comment.author_id)
            if author is not None:
                gamification.award_points(db, author, 1, community.id)
            create_notification(
                db,
                recipient_id=comment.author_id,
                type="like",
                title=f"{current_user.username} liked your comment",
                content=comment.text[:200],
                source_id=comment.id,
                source_type="comment",
                community_id=community.id,
                created_by=current_user.id,
            )
        db.commit()
    return LikeResponse(liked=True, like_count=_comment_like_count(db, comment.id))


@router.delete("/comments/{comment_id}/like", response_model=LikeResponse)
async def unlike_comment(comment_id: int, current_user: CurrentUserDep, db: SessionDep) -> LikeResponse:
    comment, community = _load_comment(db, comment_id, current_user)
    existing = (
        db.query(CommentLike)
        .filter(CommentLike.comment_id == comment.id, CommentLike.user_id == current_user.id)
        .first()
    )
    if existing is not None:
        db.delete(existing)
        if comment.author_id != current_user.id:
            author = db.get(User, comment.author_id)
            if author is not None:
                gamification.award_points(db, author, -1, community.id)
        db.commit()
    return LikeResponse(liked=False, like_count=_comment_like_count(db, comment.id))


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_comment(comment_id: int, current_user: CurrentUserDep, db: SessionDep) -> Response:
    """Delete a comment and every reply beneath it."""
    comment, community = _load_comment(db, comment_id, current_user)
    if comment.author_id != current_user.id and not membership.is_manager(db, community, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to delete this comment",
        )

    ids = _subtree_ids(db, comment.id)
    db.query(CommentLike).filter(CommentLike.comment_id.in_(ids)).delete(synchronize_session=False)
    # Children first so parent references never dangle.
    for target_id in reversed(ids):
        db.query(Comment).filter(Comment.id == target_id).delete(synchronize_session=False)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
