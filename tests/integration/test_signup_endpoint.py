"""Integration tests for POST /api/signup through the full application stack.

The app is built with create_app() and run under TestClient (lifespan active).
A FakeNotifier stands in for SMTP and a RecordingSink captures security events.

Covers:
  #1:  valid membership (JSON) → 200, one notification with Reply-To
  #2:  valid membership (form, repeated checkbox keys) → 200, values joined
  #3:  newsletter with only email → 200 newsletter message
  #4:  missing required field → 400 MISSING_REQUIRED_FIELD, INFO event only
  #5:  injection in any field (incl. JSON string arrays, lone surrogates) → 400
        DISALLOWED_CHARACTERS, ERROR event with raw value, no mail
  #6:  invalid email → 400 with email message
  #7:  unparseable body → 400 INVALID_BODY
  #8:  notification failure (delivery or composition) → still 200, ERROR event logged
  #9:  rate limit → 429 with WARN event
  #10: unknown route → 404 {"error": "Not Found"}; unexpected error → 500 generic body
"""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import patch

import pytest
from starlette.testclient import TestClient

from hubverdi.config import Config
from hubverdi.mail.notifier import Failed
from hubverdi.main import create_app
from hubverdi.models.responses import (
    MSG_NEWSLETTER_COMPLETE,
    MSG_RATE_LIMITED,
    MSG_SERVER_ERROR,
    MSG_SIGNUP_COMPLETE,
)
from hubverdi.models.results import MSG_DISALLOWED_CHARACTERS, MSG_INVALID_EMAIL, MSG_REQUIRED_FIELDS
from hubverdi.security_log.models import Severity


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _membership(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "firstName": "김민수",
        "phone": "010-1234-5678",
        "email": "minsu@example.com",
        "company": "그린팜",
        "businessType": "농업",
        "region": "경기",
        "businessSize": "5인 미만",
        "experience": "3년",
        "interests": "스마트팜",
        "goals": "매출 증대",
        "challenges": "온라인 판로 개척",
        "privacy-agree": "on",
    }
    payload.update(overrides)
    return payload


def _html(message) -> str:
    return message.get_body(preferencelist=("html",)).get_content()


@pytest.fixture
def client(recording_sink, fake_notifier):
    app = create_app(Config.defaults(), security_log=recording_sink, notifier=fake_notifier)
    with TestClient(app) as test_client:
        yield test_client


# ─── Accepted submissions ─────────────────────────────────────────────────────


class TestAccepted:

    def test_membership_json(self, client, fake_notifier, recording_sink) -> None:
        response = client.post("/api/signup", json=_membership(company="  그린팜  "))
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": MSG_SIGNUP_COMPLETE}

        assert len(fake_notifier.messages) == 1
        message = fake_notifier.messages[0]
        assert message["Reply-To"] == "minsu@example.com"
        assert message["Subject"] == "[오토플랜] 새로운 멤버십 가입 신청 - 김민수님"
        assert "<strong>회사/단체명:</strong> 그린팜</li>" in _html(message)
        assert recording_sink.events == []

    def test_membership_form_with_repeated_keys(self, client, fake_notifier) -> None:
        form = _membership(interests=["스마트팜", "직거래"])
        response = client.post("/api/signup", data=form)
        assert response.status_code == 200
        assert "<strong>관심 분야:</strong> 스마트팜, 직거래" in _html(fake_notifier.messages[0])

    def test_newsletter(self, client, fake_notifier) -> None:
        response = client.post(
            "/api/signup",
            json={"type": "newsletter_subscription", "email": "reader@example.com", "source": "footer"},
        )
        assert response.status_code == 200
        assert response.json()["message"] == MSG_NEWSLETTER_COMPLETE
        assert fake_notifier.messages[0]["Subject"] == "[오토플랜] 새로운 뉴스레터 구독"

    def test_delivery_failure_still_succeeds(self, client, fake_notifier, recording_sink) -> None:
        fake_notifier.result = Failed("smtp credentials not configured")
        response = client.post("/api/signup", json=_membership())
        assert response.status_code == 200
        assert response.json()["success"] is True
        errors = recording_sink.by_severity(Severity.ERROR)
        assert len(errors) == 1
        assert "Notification delivery failed" in errors[0].message
        assert errors[0].source == "testclient"

    def test_json_string_array_is_joined(self, client, fake_notifier) -> None:
        response = client.post("/api/signup", json=_membership(interests=["스마트팜", "직거래"]))
        assert response.status_code == 200
        assert "<strong>관심 분야:</strong> 스마트팜, 직거래" in _html(fake_notifier.messages[0])

    def test_unbuildable_notification_still_succeeds(
        self, client, fake_notifier, recording_sink
    ) -> None:
        error = UnicodeEncodeError("utf-8", "kim\ud800", 3, 4, "surrogates not allowed")
        with patch("hubverdi.signup.router.compose_notification", side_effect=error):
            response = client.post("/api/signup", json=_membership())
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": MSG_SIGNUP_COMPLETE}
        assert fake_notifier.messages == []
        errors = recording_sink.by_severity(Severity.ERROR)
        assert len(errors) == 1
        assert "Notification delivery failed" in errors[0].message
        assert "UnicodeEncodeError" in errors[0].message


# ─── Rejected submissions ─────────────────────────────────────────────────────


class TestRejected:

    def test_missing_phone(self, client, fake_notifier, recording_sink) -> None:
        payload = _membership()
        del payload["phone"]
        response = client.post("/api/signup", json=payload)
        assert response.status_code == 400
        assert response.json() == {"error": MSG_REQUIRED_FIELDS, "code": "MISSING_REQUIRED_FIELD"}
        assert fake_notifier.messages == []
        assert [e.severity for e in recording_sink.events] == [Severity.INFO]

    def test_missing_consent_checkbox_in_form(self, client) -> None:
        form = _membership()
        del form["privacy-agree"]
        response = client.post("/api/signup", data=form)
        assert response.status_code == 400
        assert response.json()["code"] == "MISSING_REQUIRED_FIELD"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("company", "<script>alert(1)</script>"),
            ("challenges", "x'; DROP TABLE members; --"),
            ("goals", "javascript:alert(document.cookie)"),
            ("firstName", "admin' or '1'='1"),
            ("referrer", "1 UNION SELECT password FROM users"),
        ],
    )
    def test_injection_is_blocked(
        self, client, fake_notifier, recording_sink, field: str, value: str
    ) -> None:
        response = client.post("/api/signup", json=_membership(**{field: value}))
        assert response.status_code == 400
        assert response.json() == {
            "error": MSG_DISALLOWED_CHARACTERS,
            "code": "DISALLOWED_CHARACTERS",
        }
        assert fake_notifier.messages == []
        assert len(recording_sink.events) == 1
        event = recording_sink.events[0]
        assert event.severity is Severity.ERROR
        assert event.payload_excerpt == value
        assert event.source == "testclient"

    @pytest.mark.parametrize("field", ["firstName", "company", "referrer"])
    def test_lone_surrogate_is_rejected(
        self, client, fake_notifier, recording_sink, field: str
    ) -> None:
        # json.dumps escapes the surrogate as \ud800; the server decodes it back.
        body = json.dumps(_membership(**{field: "kim\ud800"}))
        response = client.post(
            "/api/signup", content=body, headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "DISALLOWED_CHARACTERS"
        assert fake_notifier.messages == []
        assert [e.severity for e in recording_sink.events] == [Severity.ERROR]
        assert recording_sink.events[0].payload_excerpt == "kim\ud800"

    def test_lone_surrogate_email_is_rejected(self, client, fake_notifier) -> None:
        body = json.dumps(_membership(email="kim\ud800@example.com"))
        response = client.post(
            "/api/signup", content=body, headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "BAD_FORMAT"
        assert fake_notifier.messages == []

    def test_injection_inside_json_array_is_blocked(self, client, fake_notifier) -> None:
        response = client.post("/api/signup", json=_membership(interests=["스마트팜", "<script>"]))
        assert response.status_code == 400
        assert response.json()["code"] == "DISALLOWED_CHARACTERS"
        assert fake_notifier.messages == []

    def test_invalid_email(self, client, recording_sink) -> None:
        response = client.post("/api/signup", json=_membership(email="not-an-email"))
        assert response.status_code == 400
        assert response.json() == {"error": MSG_INVALID_EMAIL, "code": "BAD_FORMAT"}
        assert [e.severity for e in recording_sink.events] == [Severity.WARN]

    def test_malicious_email(self, client, recording_sink) -> None:
        response = client.post("/api/signup", json=_membership(email="a' OR '1'='1"))
        assert response.status_code == 400
        assert response.json()["code"] == "MALICIOUS_PATTERN"
        assert response.json()["error"] == MSG_INVALID_EMAIL
        assert [e.severity for e in recording_sink.events] == [Severity.ERROR]

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b"", b"\xff\xfe"])
    def test_unparseable_body(self, client, body: bytes) -> None:
        response = client.post(
            "/api/signup", content=body, headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_BODY"

    def test_response_never_names_the_rule(self, client) -> None:
        response = client.post("/api/signup", json=_membership(company="sleep(5)"))
        assert "sleep" not in response.text
        assert "sql" not in response.text.lower()


# ─── Rate limiting ────────────────────────────────────────────────────────────


class TestRateLimit:

    def test_limit_exceeded_returns_429_and_logs(self, recording_sink, fake_notifier) -> None:
        config = Config.defaults()
        config.rate_limit.signup = "2/minute"
        app = create_app(config, security_log=recording_sink, notifier=fake_notifier)
        with TestClient(app) as client:
            statuses = [client.post("/api/signup", json=_membership()).status_code for _ in range(3)]
            blocked = client.post("/api/signup", json=_membership())
        assert statuses == [200, 200, 429]
        assert blocked.status_code == 429
        assert blocked.json() == {"error": MSG_RATE_LIMITED}
        warns = recording_sink.by_severity(Severity.WARN)
        assert len(warns) == 2
        assert "Rate limit exceeded" in warns[0].message
        assert len(fake_notifier.messages) == 2

    def test_rejected_submissions_count_toward_limit(self, recording_sink, fake_notifier) -> None:
        config = Config.defaults()
        config.rate_limit.signup = "1/minute"
        app = create_app(config, security_log=recording_sink, notifier=fake_notifier)
        with TestClient(app) as client:
            first = client.post("/api/signup", json={"email": "bad"})
            second = client.post("/api/signup", json=_membership())
        assert first.status_code == 400
        assert second.status_code == 429

    def test_other_routes_are_not_limited(self, recording_sink, fake_notifier) -> None:
        config = Config.defaults()
        config.rate_limit.signup = "1/minute"
        app = create_app(config, security_log=recording_sink, notifier=fake_notifier)
        with TestClient(app) as client:
            assert all(client.get("/health").status_code == 200 for _ in range(5))


# ─── Error handling ───────────────────────────────────────────────────────────


class TestErrors:

    def test_unknown_route_is_json_404(self, client) -> None:
        response = client.get("/api/unknown")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    def test_wrong_method_is_405(self, client) -> None:
        response = client.get("/api/signup")
        assert response.status_code == 405

    def test_unexpected_error_is_generic_500(self, recording_sink, fake_notifier) -> None:
        async def explode(message):
            raise RuntimeError("template exploded")

        fake_notifier.send = explode  # type: ignore[method-assign]
        app = create_app(Config.defaults(), security_log=recording_sink, notifier=fake_notifier)
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.post("/api/signup", json=_membership())
        assert response.status_code == 500
        assert response.json() == {"error": MSG_SERVER_ERROR}
        assert "exploded" not in response.text
