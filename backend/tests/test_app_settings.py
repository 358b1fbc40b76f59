from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from orderdesk.config import Settings
from orderdesk import main as app_module
from orderdesk.main import check_production_settings, create_app, load_settings


def _production(settings, **overrides):
    values = {
        "ENV": "production",
        "ALLOWED_ORIGINS": "https://oneguyproductions.com",
        "RECAPTCHA_SECRET": "server-secret",
    }
    values.update(overrides)
    return settings.model_copy(update=values)


def test_production_derived_flags(settings) -> None:
    prod = _production(settings)

    assert prod.is_production is True
    assert prod.auth_cookie_secure is True
    assert prod.recaptcha_min_score == 0.5
    assert settings.recaptcha_min_score == 0.1


def test_cors_origins_are_split_and_trimmed(settings) -> None:
    configured = settings.model_copy(update={"ALLOWED_ORIGINS": " https://a.example , ,https://b.example"})

    assert configured.cors_origins == ["https://a.example", "https://b.example"]


def test_valid_production_settings_pass(settings) -> None:
    check_production_settings(_production(settings))


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"ALLOWED_ORIGINS": ""}, "must be set"),
        ({"ALLOWED_ORIGINS": "*"}, "no wildcard"),
        ({"ALLOWED_ORIGINS": "http://localhost:3002"}, "localhost"),
        ({"RECAPTCHA_SECRET": None}, "RECAPTCHA_SECRET"),
    ],
)
def test_insecure_production_settings_fail_closed(settings, overrides, message) -> None:
    with pytest.raises(RuntimeError, match=message):
        check_production_settings(_production(settings, **overrides))


def test_missing_required_settings_fail_validation(monkeypatch) -> None:
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)

    with pytest.raises(ValidationError) as exc:
        Settings(_env_file=None)

    assert "JWT_SECRET_KEY" in str(exc.value)


def test_create_app_mounts_routes_under_api(settings) -> None:
    paths = {route.path for route in create_app(settings).routes}

    assert "/api/order/submit" in paths
    assert "/api/admin/orders/{order_id}/status" in paths
    assert "/api/auth/verify-otp" in paths
    assert "/api/system/health" in paths


def test_load_settings_logs_missing_keys_and_exits(monkeypatch, caplog) -> None:
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
    monkeypatch.setattr(app_module, "get_settings", lambda: Settings(_env_file=None))

    with caplog.at_level(logging.CRITICAL, logger="orderdesk.main"), pytest.raises(SystemExit) as exc:
        load_settings()

    assert exc.value.code == 1
    assert "Invalid or missing configuration" in caplog.text
    assert "JWT_SECRET_KEY" in caplog.text
