"""reCAPTCHA v3 token verification."""
from __future__ import annotations

from dataclasses import dataclass, field
import logging

import requests

from ..config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecaptchaVerificationResult:
    success: bool
    score: float | None = None
    action: str | None = None
    error_codes: list[str] = field(default_factory=list)
    is_score_acceptable: bool = False
    is_action_valid: bool = False


class RecaptchaVerifier:
    """Calls the siteverify endpoint and grades the response."""

    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self._settings = settings
        self._session = session or requests.Session()

    def verify(self, token: str, expected_action: str) -> RecaptchaVerificationResult:
        secret = self._settings.RECAPTCHA_SECRET
        if not secret:
            logger.warning("RECAPTCHA_SECRET missing; rejecting token")
            return RecaptchaVerificationResult(success=False, error_codes=["missing-input-secret"])

        try:
            response = self._session.post(
                self._settings.RECAPTCHA_VERIFY_URL,
                data={"secret": secret, "response": token},
                timeout=self._settings.HTTP_TIMEOUT_SECONDS,
            )
            data = response.json()
        except (requests.RequestException, ValueError):
            logger.exception("reCAPTCHA verification request failed")
            return RecaptchaVerificationResult(success=False, error_codes=["verification-request-failed"])

        success = bool(data.get("success"))
        score = data.get("score")
        action = data.get("action")
        result = RecaptchaVerificationResult(
            success=success,
            score=score,
            action=action,
            error_codes=list(data.get("error-codes") or []),
            is_score_acceptable=success and score is not None and score >= self._settings.recaptcha_min_score,
            is_action_valid=action == expected_action,
        )
        logger.debug("reCAPTCHA result: %s", result)
        return result
