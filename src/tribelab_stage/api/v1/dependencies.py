"""Shared API dependencies for authentication, access checks and collaborators."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from tribelab_stage.core.security import secrets_match
from tribelab_stage.core.settings import settings
from tribelab_stage.db.session import get_db
from tribelab_stage.models import Community, User
from tribelab_stage.services import membership
from tribelab_stage.services.payment_gateway import PaymentGatewayClient, get_payment_gateway

# Bearer scheme for JWT authentication; the session cookie is the fallback.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
BearerDep = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(settings.session_cookie_name)


def _resolve_user(token: str, db: Session) -> User:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise _unauthorized() from err

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError) as err:
        raise _unauthorized() from err

    user = db.get(User, user_id)
    if user is None:
        raise _unauthorized("User not found")
    return user


def get_current_user(request: Request, credentials: BearerDep, db: SessionDep) -> User:
    """Get the current authenticated user from the bearer token or session cookie.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired, or the user is gone.
    """
    token = _extract_token(request, credentials)
    if not token:
        raise _unauthorized("Not authenticated")
    return _resolve_user(token, db)


def get_optional_user(request: Request, credentials: BearerDep, db: SessionDep) -> User | None:
    """Like ``get_current_user`` but returns None for anonymous callers."""
    token = _extract_token(request, credentials)
    if not token:
        return None
    try:
        return _resolve_user(token, db)
    except HTTPException:
        return None


# Type aliases for user dependencies
CurrentUserDep = Annotated[User, Depends(get_current_user)]
OptionalUserDep = Annotated[User | None, Depends(get_optional_user)]


def get_payment_gateway_dep() -> PaymentGatewayClient:
    return get_payment_gateway()


PaymentGatewayDep = Annotated[PaymentGatewayClient, Depends(get_payment_gateway_dep)]


def verify_cron_secret(authorization: Annotated[str | None, Header()] = None) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>``; an unset secret rejects everything."""
    supplied = None
    if authorization and authorization.startswith("Bearer "):
        supplied = authorization[len("Bearer "):]
    if not secrets_match(settings.cron_secret, supplied):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_community_or_404(db: Session, slug: str) -> Community:
    community = db.query(Community).filter(Community.slug == slug).first()
    if community is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Community not found")
    return community


def get_community_by_id_or_404(db: Session, community_id: int) -> Community:
    community = db.get(Community, community_id)
    if community is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Community not found")
    return community


def ensure_not_suspended(community: Community, user: User | None) -> None:
    """Suspended communities stay reachable only for their admin."""
    if community.suspended and (user is None or user.id != community.admin_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Community is suspended")


def require_admin(community: Community, user: User, detail: str = "Only the community admin can do this") -> None:
    if community.admin_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def require_manager(db: Session, community: Community, user: User) -> None:
    if not membership.is_manager(db, community, user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only community admins and sub-admins can do this",
        )


def require_member(db: Session, community: Community, user: User) -> None:
    if not membership.is_member(db, community, user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You must be a member of this community",
        )
