"""Password hashing, session tokens and signature helpers."""
from __future__ import annotations

import hashlib
import hmac
from datetime import UTC, datetime, timedelta

from jose import jwt
from passlib.context import CryptContext

from tribelab_stage.core.settings import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.password_hash_rounds,
)


def hash_password(password: str) -> str:
    """Return a bcrypt hash of ``password``."""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check ``password`` against a stored hash."""
    return pwd_context.verify(password, password_hash)


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT session token for the given user id."""
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def hmac_sha256_hex(secret: str, message: str | bytes) -> str:
    """Return the hex HMAC-SHA256 digest of ``message`` keyed by ``secret``."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_hmac_signature(secret: str | None, message: str | bytes, signature: str | None) -> bool:
    """Constant-time comparison of an expected HMAC against a supplied signature."""
    if not secret or not signature:
        return False
    expected = hmac_sha256_hex(secret, message)
    return hmac.compare_digest(expected, signature)


def secrets_match(expected: str | None, supplied: str | None) -> bool:
    """Constant-time equality for static shared secrets. An unset secret never matches."""
    if not expected or supplied is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))
