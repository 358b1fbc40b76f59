"""Authentication primitives: password hashing, JWT and the auth cookie."""
from datetime import timedelta
from functools import lru_cache
import logging
import time
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .database import get_db
from .models import User

logger = logging.getLogger(__name__)


class JWTConfigurationError(RuntimeError):
    """JWT secret is not configured."""


@lru_cache()
def password_context(rounds: int) -> CryptContext:
    """bcrypt context for the given cost factor."""
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(password: str, *, settings: Settings) -> str:
    """Hash password."""
    if not password:
        logger.warning("Attempted to hash an empty password")
        return ""
    return password_context(settings.BCRYPT_ROUNDS).hash(password)


def verify_password(plain_password: str | None, hashed_password: str | None, *, settings: Settings) -> bool:
    """Verify password against hash. Never raises."""
    if not plain_password or not hashed_password:
        logger.warning("Missing input or hash for password verification")
        return False
    try:
        return password_context(settings.BCRYPT_ROUNDS).verify(plain_password, hashed_password)
    except Exception:
        # Invalid/corrupted hash should not crash login flow.
        logger.exception("Password verification failed due to invalid hash format")
        return False


def generate_jwt(payload: dict, *, settings: Settings, expires_delta: timedelta | None = None) -> str:
    """Sign payload. Returns an empty string when no secret is configured."""
    if not settings.JWT_SECRET_KEY:
        logger.error("Cannot generate JWT: missing secret")
        return ""

    to_encode = payload.copy()
    now = int(time.time())
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    to_encode.update({"iat": now, "exp": now + int(expires_delta.total_seconds())})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_jwt(token: str, *, settings: Settings) -> dict:
    """Decode and validate token.

    Raises JWTConfigurationError without a secret and JWTError for
    invalid or expired tokens.
    """
    if not settings.JWT_SECRET_KEY:
        logger.error("Cannot verify JWT: missing secret")
        raise JWTConfigurationError("JWT_SECRET_KEY is not set")
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def set_auth_cookie(response: Response, *, token: str, settings: Settings, remember_me: bool = False) -> None:
    if remember_me:
        max_age = settings.AUTH_COOKIE_REMEMBER_DAYS * 86400
    else:
        max_age = settings.AUTH_COOKIE_SESSION_MINUTES * 60
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=max_age,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.AUTH_COOKIE_SAMESITE,
        domain=settings.AUTH_COOKIE_DOMAIN,
        path="/",
    )


def clear_auth_cookie(response: Response, *, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        path="/",
        domain=settings.AUTH_COOKIE_DOMAIN,
        secure=settings.auth_cookie_secure,
        httponly=True,
        samesite=settings.AUTH_COOKIE_SAMESITE,
    )


def _parse_token_subject(payload: dict) -> UUID:
    """Parse and validate JWT subject as UUID."""
    sub = payload.get("sub")
    try:
        return UUID(str(sub))
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
        )


def get_current_user_id(request: Request, settings: Settings = Depends(get_settings)) -> UUID:
    """Auth gate: signed token from the cookie, decoded to the subject id."""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )

    try:
        payload = verify_jwt(token, settings=settings)
    except (JWTError, JWTConfigurationError):
        logger.warning("JWT verification failed", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
        )

    user_id = _parse_token_subject(payload)
    request.state.user_id = user_id
    return user_id


def get_current_user(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    """Get current authenticated user."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found.",
        )
    return user
