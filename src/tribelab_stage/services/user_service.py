"""CRUD-style helpers for managing users."""
from __future__ import annotations

import re
from typing import Sequence

from slugify import slugify
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from tribelab_stage.core import security
from tribelab_stage.models import User, UserFollow
from tribelab_stage.schemas.user import RegisterRequest, UserSettingsUpdate
from tribelab_stage.services.notifications import create_notification

__all__ = [
    "USERNAME_PATTERN",
    "UserServiceError",
    "UserConflictError",
    "validate_username",
    "get_user",
    "search_users",
    "create_user",
    "authenticate",
    "update_settings",
    "change_password",
    "follow",
    "unfollow",
    "follow_counts",
]

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")


class UserServiceError(ValueError):
    """Raised when a user update is invalid."""


class UserConflictError(UserServiceError):
    """Raised when a unique user field is already taken."""


def validate_username(username: str) -> str:
    if not USERNAME_PATTERN.match(username):
        raise UserServiceError("Username can only contain letters, numbers, and underscores")
    return username


def _unique_slug(db: Session, base: str, exclude_user_id: int | None = None) -> str:
    root = slugify(base) or "user"
    candidate = root
    suffix = 2
    while True:
        query = db.query(User.id).filter(User.slug == candidate)
        if exclude_user_id is not None:
            query = query.filter(User.id != exclude_user_id)
        if query.first() is None:
            return candidate
        candidate = f"{root}-{suffix}"
        suffix += 1


def _username_taken(db: Session, username: str, exclude_user_id: int | None = None) -> bool:
    query = db.query(User.id).filter(func.lower(User.username) == username.lower())
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def get_user(db: Session, user_id: int) -> User | None:
    """Return a single user by primary key."""
    return db.get(User, user_id)


def search_users(db: Session, q: str, limit: int = 20) -> Sequence[User]:
    """Case-insensitive prefix search on username and name."""
    prefix = q.strip().lower()
    return (
        db.query(User)
        .filter(
            or_(
                func.lower(User.username).startswith(prefix, autoescape=True),
                func.lower(User.name).startswith(prefix, autoescape=True),
            )
        )
        .order_by(User.username)
        .limit(limit)
        .all()
    )


def create_user(db: Session, data: RegisterRequest) -> User:
    """Persist a new user with a hashed password."""
    validate_username(data.username)
    if _username_taken(db, data.username):
        raise UserConflictError("Username is already taken")
    if db.query(User.id).filter(User.email == data.email).first() is not None:
        raise UserConflictError("Email is already registered")

    db_user = User(
        username=data.username,
        email=data.email,
        password_hash=security.hash_password(data.password),
        name=data.name,
        slug=_unique_slug(db, data.username),
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def authenticate(db: Session, identifier: str, password: str) -> User | None:
    """Return the user matching an email or username and password, else None."""
    identifier = identifier.strip()
    user = (
        db.query(User)
        .filter(
            or_(
                User.email == identifier.lower(),
                func.lower(User.username) == identifier.lower(),
            )
        )
        .first()
    )
    if user is None or not security.verify_password(password, user.password_hash):
        return None
    return user


def update_settings(db: Session, db_user: User, update_data: UserSettingsUpdate) -> User:
    """Apply partial profile updates; a new username also re-derives the slug."""
    update_dict = update_data.model_dump(exclude_unset=True)
    username = update_dict.pop("username", None)
    if username is not None and username != db_user.username:
        validate_username(username)
        if _username_taken(db, username, exclude_user_id=db_user.id):
            raise UserConflictError("Username is already taken")
        db_user.username = username
        db_user.slug = _unique_slug(db, username, exclude_user_id=db_user.id)

    for key, value in update_dict.items():
        setattr(db_user, key, value)

    db.commit()
    db.refresh(db_user)
    return db_user


def change_password(db: Session, db_user: User, current_password: str, new_password: str) -> None:
    if not security.verify_password(current_password, db_user.password_hash):
        raise UserServiceError("Current password is incorrect")
    db_user.password_hash = security.hash_password(new_password)
    db.commit()


def follow(db: Session, follower: User, target: User) -> bool:
    """Follow ``target``. Returns False if already following."""
    if follower.id == target.id:
        raise UserServiceError("You cannot follow yourself")
    existing = (
        db.query(UserFollow)
        .filter(UserFollow.follower_id == follower.id, UserFollow.following_id == target.id)
        .first()
    )
    if existing is not None:
        return False
    db.add(UserFollow(follower_id=follower.id, following_id=target.id))
    create_notification(
        db,
        recipient_id=target.id,
        type="follow",
        title=f"{follower.username} started following you",
        source_id=follower.id,
        source_type="user",
        created_by=follower.id,
    )
    db.commit()
    return True


def unfollow(db: Session, follower: User, target: User) -> bool:
    """Stop following ``target``. Returns False if not following."""
    deleted = (
        db.query(UserFollow)
        .filter(UserFollow.follower_id == follower.id, UserFollow.following_id == target.id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return bool(deleted)


def follow_counts(db: Session, user_id: int) -> tuple[int, int]:
    """Return ``(followers, following)`` for a user."""
    followers = db.query(UserFollow).filter(UserFollow.following_id == user_id).count()
    following = db.query(UserFollow).filter(UserFollow.follower_id == user_id).count()
    return followers, following
