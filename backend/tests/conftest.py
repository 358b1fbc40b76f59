from __future__ import annotations

import os

# Required settings must exist before orderdesk modules are imported.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RESEND_API_KEY", "re_test")
os.environ.setdefault("RESEND_FROM_EMAIL", "studio@oneguyproductions.com")
os.environ.setdefault("RESEND_ORDER_RECEIVER_EMAIL", "orders@oneguyproductions.com")
os.environ.setdefault("RESEND_CONTACT_RECEIVER_EMAIL", "contact@oneguyproductions.com")
os.environ.setdefault("PUBLIC_BASE_URL", "https://oneguyproductions.com")

import pytest

from orderdesk.config import Settings, get_settings


class FakeEmailClient:
    """Records outgoing messages; optionally fails every send."""

    def __init__(self, *, error: Exception | None = None):
        self.error = error
        self.sent: list[dict] = []

    def send(self, *, to, subject, html, from_address=None):
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "html": html, "from": from_address})
        return f"msg-{len(self.sent)}"


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def email_client() -> FakeEmailClient:
    return FakeEmailClient()
