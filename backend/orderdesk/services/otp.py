"""One-time password issuance and verification for password resets."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import secrets
from typing import ClassVar, Union

from sqlalchemy.orm import Session

from ..auth import hash_password, verify_password
from ..config import Settings
from ..domain_errors import DomainError
from ..models import OtpToken, User
from .email_client import ResendEmailClient
from .notifications import send_otp_email

logger = logging.getLogger(__name__)

OTP_MIN = 100000
OTP_MAX = 999999
THROTTLE_MESSAGE = "Please wait 60 seconds before requesting another OTP."


@dataclass(frozen=True)
class OtpIssued:
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class OtpThrottled:
    status: int = 429
    error: str = THROTTLE_MESSAGE
    ok: ClassVar[bool] = False


OtpIssueResult = Union[OtpIssued, OtpThrottled]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def generate_otp() -> str:
    """Six-digit code drawn uniformly from [100000, 999999]."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def hash_otp(otp: str, *, settings: Settings) -> str:
    return hash_password(otp, settings=settings)


def otp_expiry_date(settings: Settings, now: datetime | None = None) -> datetime:
    return (now or _utc_now()) + timedelta(seconds=settings.OTP_EXPIRY_SECONDS)


def throttle_since(settings: Settings, now: datetime | None = None) -> datetime:
    return (now or _utc_now()) - timedelta(seconds=settings.OTP_THROTTLE_SECONDS)


def find_recent_otp(db: Session, email: str, *, settings: Settings, now: datetime | None = None) -> OtpToken | None:
    """Token created for this email inside the throttle window, if any."""
    return db.query(OtpToken).filter(
        OtpToken.email == email,
        OtpToken.created_at > throttle_since(settings, now),
    ).first()


def issue_otp_for_email(
    db: Session,
    email: str,
    *,
    settings: Settings,
    email_client: ResendEmailClient,
) -> OtpIssueResult:
    """Create, store (hashed) and email a reset code unless throttled.

    Check-then-act: two concurrent requests can both pass the throttle check.
    """
    now = _utc_now()
    if find_recent_otp(db, email, settings=settings, now=now):
        logger.info("OTP request throttled for %s", email)
        return OtpThrottled()

    otp = generate_otp()
    db.add(
        OtpToken(
            email=email,
            otp_hash=hash_otp(otp, settings=settings),
            expires_at=otp_expiry_date(settings, now),
            created_at=now,
        )
    )
    db.commit()

    send_otp_email(email_client, settings, email=email, otp=otp)
    return OtpIssued()


def verify_otp_for_email(db: Session, email: str, otp: str, *, settings: Settings) -> OtpToken:
    """Check the newest code for the email; raise DomainError when unusable."""
    token = (
        db.query(OtpToken)
        .filter(OtpToken.email == email)
        .order_by(OtpToken.created_at.desc())
        .first()
    )
    if not token:
        raise DomainError(code="OTP_NOT_FOUND", http_status=404, message="OTP not found.")

    is_valid = verify_password(otp, token.otp_hash, settings=settings)
    not_expired = _as_utc(token.expires_at) > _utc_now()
    if not is_valid or not not_expired:
        raise DomainError(code="OTP_INVALID", http_status=401, message="OTP is invalid or expired.")
    return token


def reset_password_with_otp(
    db: Session,
    *,
    email: str,
    otp: str,
    new_password: str,
    settings: Settings,
) -> User:
    """Verify the code, set the new password and invalidate every code for the email."""
    verify_otp_for_email(db, email, otp, settings=settings)

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise DomainError(code="USER_NOT_FOUND", http_status=404, message="User not found.")

    user.password_hash = hash_password(new_password, settings=settings)
    db.query(OtpToken).filter(OtpToken.email == email).delete(synchronize_session=False)
    db.commit()
    logger.info("Password reset via OTP for user %s", user.id)
    return user
