from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from orderdesk.auth import get_current_user_id
from orderdesk.database import get_db
from orderdesk.security import (
    get_recaptcha_verifier,
    is_admin_user,
    otp_throttle_gate,
    require_admin,
    require_recaptcha,
)
from orderdesk.services.recaptcha import RecaptchaVerificationResult


class _FakeVerifier:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def verify(self, token, expected_action):
        self.calls.append((token, expected_action))
        return self.result


def _passing_result(action="submit_order_form"):
    return RecaptchaVerificationResult(
        success=True,
        score=0.9,
        action=action,
        is_score_acceptable=True,
        is_action_valid=True,
    )


def _captcha_client(verifier) -> TestClient:
    app = FastAPI()

    @app.post("/api/order/submit", dependencies=[Depends(require_recaptcha)])
    def _order():
        return {"ok": True}

    @app.post("/api/contact/submit", dependencies=[Depends(require_recaptcha)])
    def _contact():
        return {"ok": True}

    @app.post("/api/newsletter/submit", dependencies=[Depends(require_recaptcha)])
    def _unmapped():
        return {"ok": True}

    app.dependency_overrides[get_recaptcha_verifier] = lambda: verifier
    return TestClient(app)


def test_captcha_gate_passes_and_uses_route_action() -> None:
    verifier = _FakeVerifier(_passing_result("submit_contact_form"))

    response = _captcha_client(verifier).post("/api/contact/submit", json={"captchaToken": "tok"})

    assert response.status_code == 200
    assert verifier.calls == [("tok", "submit_contact_form")]


def test_captcha_gate_rejects_unmapped_route() -> None:
    verifier = _FakeVerifier(_passing_result())

    response = _captcha_client(verifier).post("/api/newsletter/submit", json={"captchaToken": "tok"})

    assert response.status_code == 400
    assert response.json()["detail"] == {"error": "Unrecognized form submission route"}
    assert verifier.calls == []


def test_captcha_gate_rejects_missing_token() -> None:
    response = _captcha_client(_FakeVerifier(_passing_result())).post("/api/order/submit", json={"name": "Pat"})

    assert response.status_code == 400
    assert response.json()["detail"] == {"error": "Missing CAPTCHA token"}


def test_captcha_gate_rejects_failed_verification_with_error_codes() -> None:
    verifier = _FakeVerifier(RecaptchaVerificationResult(success=False, error_codes=["invalid-input-response"]))

    response = _captcha_client(verifier).post("/api/order/submit", json={"captchaToken": "tok"})

    assert response.status_code == 403
    assert response.json()["detail"] == {"error": "CAPTCHA failed", "details": ["invalid-input-response"]}


def test_captcha_gate_rejects_low_score() -> None:
    verifier = _FakeVerifier(
        RecaptchaVerificationResult(
            success=True,
            score=0.05,
            action="submit_order_form",
            is_score_acceptable=False,
            is_action_valid=True,
        )
    )

    response = _captcha_client(verifier).post("/api/order/submit", json={"captcha_token": "tok"})

    assert response.status_code == 403
    assert response.json()["detail"] == {"error": "CAPTCHA score too low", "score": 0.05}


def test_captcha_gate_rejects_action_mismatch() -> None:
    verifier = _FakeVerifier(
        RecaptchaVerificationResult(
            success=True,
            score=0.9,
            action="login",
            is_score_acceptable=True,
            is_action_valid=False,
        )
    )

    response = _captcha_client(verifier).post("/api/order/submit", json={"captchaToken": "tok"})

    assert response.status_code == 400
    assert response.json()["detail"] == {
        "error": "CAPTCHA action mismatch",
        "expected": "submit_order_form",
        "actual": "login",
    }


class _QueryStub:
    def __init__(self, *, first_result=None):
        self._first_result = first_result

    def filter(self, *_args, **_kwargs):
        return self

    def first(self):
        return self._first_result


class _SessionStub:
    def __init__(self, first_result=None):
        self._first_result = first_result

    def query(self, _model):
        return _QueryStub(first_result=self._first_result)


def _admin_client(user) -> TestClient:
    app = FastAPI()

    @app.get("/admin-only")
    def _admin_only(admin=Depends(require_admin)):
        return {"id": str(admin.id)}

    app.dependency_overrides[get_current_user_id] = lambda: uuid4()
    app.dependency_overrides[get_db] = lambda: _SessionStub(user)
    return TestClient(app)


def _user(email, role):
    return SimpleNamespace(id=uuid4(), email=email, role=role)


def test_admin_gate_allows_admin_on_organization_domain() -> None:
    user = _user("dana@oneguyproductions.com", "admin")

    response = _admin_client(user).get("/admin-only")

    assert response.status_code == 200
    assert response.json() == {"id": str(user.id)}


@pytest.mark.parametrize(
    "user",
    [
        _user("dana@gmail.com", "admin"),
        _user("dana@oneguyproductions.com", "user"),
        _user("dana@oneguyproductions.com.evil.io", "admin"),
    ],
)
def test_admin_gate_forbids_wrong_role_or_domain(user) -> None:
    response = _admin_client(user).get("/admin-only")

    assert response.status_code == 403


def test_admin_gate_unknown_user_is_401() -> None:
    response = _admin_client(None).get("/admin-only")

    assert response.status_code == 401


def test_admin_gate_without_session_is_401() -> None:
    app = FastAPI()

    @app.get("/admin-only")
    def _admin_only(admin=Depends(require_admin)):
        return {}

    response = TestClient(app).get("/admin-only")

    assert response.status_code == 401


def test_is_admin_user_is_case_insensitive_on_domain(settings) -> None:
    assert is_admin_user(_user("Dana@OneGuyProductions.com", "admin"), settings) is True


def _otp_client(recent_token) -> TestClient:
    app = FastAPI()

    @app.post("/otp")
    def _otp(email: str = Depends(otp_throttle_gate)):
        return {"email": email}

    app.dependency_overrides[get_db] = lambda: _SessionStub(recent_token)
    return TestClient(app)


def test_otp_gate_requires_email() -> None:
    response = _otp_client(None).post("/otp", json={})

    assert response.status_code == 400
    assert response.json()["detail"] == "Email is required."


def test_otp_gate_rejects_recent_request() -> None:
    response = _otp_client(SimpleNamespace(id=1)).post("/otp", json={"email": "pat@example.com"})

    assert response.status_code == 429
    assert "60 seconds" in response.json()["detail"]


def test_otp_gate_passes_normalized_email() -> None:
    response = _otp_client(None).post("/otp", json={"email": " Pat@Example.com "})

    assert response.status_code == 200
    assert response.json() == {"email": "pat@example.com"}
