"""Request gates that run before route handlers (CAPTCHA, admin, OTP throttle)."""

from __future__ import annotations

import json
import logging
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from .auth import get_current_user_id
from .config import Settings, get_settings
from .database import get_db
from .models import User
from .services.email_client import ResendEmailClient
from .services.otp import THROTTLE_MESSAGE, find_recent_otp
from .services.recaptcha import RecaptchaVerifier

logger = logging.getLogger(__name__)

# Route path -> action name the client must have requested the token for.
CAPTCHA_ACTIONS = {
    "/api/order/submit": "submit_order_form",
    "/api/contact/submit": "submit_contact_form",
}


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


def get_recaptcha_verifier(settings: Settings = Depends(get_settings)) -> RecaptchaVerifier:
    return RecaptchaVerifier(settings)


def get_email_client(settings: Settings = Depends(get_settings)) -> ResendEmailClient:
    return ResendEmailClient(settings)


async def require_recaptcha(
    request: Request,
    verifier: RecaptchaVerifier = Depends(get_recaptcha_verifier),
) -> None:
    """CAPTCHA gate. Each rejection reason has its own payload."""
    path = request.url.path
    expected_action = CAPTCHA_ACTIONS.get(path)
    if not expected_action:
        logger.warning("No CAPTCHA action mapping for path %s", path)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Unrecognized form submission route"},
        )

    body = await _json_body(request)
    token = body.get("captchaToken") or body.get("captcha_token")
    if not token:
        logger.warning("Missing CAPTCHA token on %s", path)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Missing CAPTCHA token"},
        )

    result = await run_in_threadpool(verifier.verify, token, expected_action)

    if not result.success:
        logger.warning("CAPTCHA verification failed: %s", result.error_codes)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "CAPTCHA failed", "details": result.error_codes},
        )
    if not result.is_score_acceptable:
        logger.warning("Low CAPTCHA score: %s", result.score)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "CAPTCHA score too low", "score": result.score},
        )
    if not result.is_action_valid:
        logger.warning("CAPTCHA action mismatch: expected=%s actual=%s", expected_action, result.action)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "CAPTCHA action mismatch",
                "expected": expected_action,
                "actual": result.action,
            },
        )


def is_admin_user(user: User, settings: Settings) -> bool:
    """Admin role plus a mailbox on the organization's domain."""
    email = (user.email or "").lower()
    domain = settings.ADMIN_EMAIL_DOMAIN.lower().lstrip("@")
    return user.role == "admin" and email.endswith(f"@{domain}")


def require_admin(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """Admin gate: authenticated, known user with admin role and domain."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found.")
    if not is_admin_user(user, settings):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user


async def otp_throttle_gate(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> str:
    """Reject OTP requests for an email that got a code inside the throttle window."""
    body = await _json_body(request)
    email = str(body.get("email") or "").strip().lower()
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required.")

    recent = await run_in_threadpool(find_recent_otp, db, email, settings=settings)
    if recent:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=THROTTLE_MESSAGE)
    return email
