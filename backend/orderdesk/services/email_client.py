"""Transactional email delivery through the Resend HTTP API."""
from __future__ import annotations

import logging

import requests

from ..config import Settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """The email provider did not accept the message."""


class ResendEmailClient:
    """Thin client for the Resend `POST /emails` endpoint."""

    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self._settings = settings
        self._session = session or requests.Session()

    @property
    def default_sender(self) -> str:
        return self._settings.RESEND_FROM_EMAIL

    def send(self, *, to: str, subject: str, html: str, from_address: str | None = None) -> str:
        """Send one message and return the provider message id."""
        payload = {
            "from": from_address or self.default_sender,
            "to": to,
            "subject": subject,
            "html": html,
        }
        try:
            response = self._session.post(
                self._settings.RESEND_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self._settings.RESEND_API_KEY}"},
                timeout=self._settings.HTTP_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise EmailDeliveryError(f"EXCEPTION: {exc}") from exc

        if response.status_code >= 400:
            raise EmailDeliveryError(f"HTTP_{response.status_code}: {response.text[:200]}")

        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        if not message_id:
            raise EmailDeliveryError("Provider response missing message id")

        logger.info("Email %s accepted by provider (subject=%r)", message_id, subject)
        return message_id
