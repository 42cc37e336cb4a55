"""Unit tests for hubverdi.http.middleware.

Covers:
  BodySizeLimitMiddleware:
    #1: Content-Length above the cap → 413 before the route runs
    #2: body at exactly the cap passes the size check
    #3: invalid Content-Length → 400
  SecurityHeadersMiddleware:
    #4: hardening headers on success, 404 and 413 responses
  OriginAuditMiddleware:
    #5: disallowed Origin → one WARN event; CORS headers withheld
    #6: allowed Origin / no Origin → no event
"""

from __future__ import annotations

from starlette.testclient import TestClient

from hubverdi.config import Config
from hubverdi.constants import MAX_REQUEST_BODY_BYTES
from hubverdi.http.middleware import SECURITY_HEADERS
from hubverdi.main import create_app
from hubverdi.security_log.models import Severity


def _client(recording_sink, fake_notifier) -> TestClient:
    app = create_app(Config.defaults(), security_log=recording_sink, notifier=fake_notifier)
    return TestClient(app)


# ─── Body size ────────────────────────────────────────────────────────────────


class TestBodySizeLimit:

    def test_oversized_body_is_413(self, recording_sink, fake_notifier) -> None:
        with _client(recording_sink, fake_notifier) as client:
            response = client.post(
                "/api/signup",
                content=b"x" * (MAX_REQUEST_BODY_BYTES + 1),
                headers={"content-type": "application/json"},
            )
        assert response.status_code == 413
        assert "error" in response.json()
        assert fake_notifier.messages == []

    def test_body_at_limit_reaches_route(self, recording_sink, fake_notifier) -> None:
        body = b" " * MAX_REQUEST_BODY_BYTES
        with _client(recording_sink, fake_notifier) as client:
            response = client.post(
                "/api/signup", content=body, headers={"content-type": "application/json"}
            )
        # Whitespace is not a JSON object → rejected by the route, not the size check.
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_BODY"

    def test_invalid_content_length_is_400(self, recording_sink, fake_notifier) -> None:
        with _client(recording_sink, fake_notifier) as client:
            response = client.post(
                "/api/signup",
                content=b"{}",
                headers={"content-type": "application/json", "content-length": "abc"},
            )
        assert response.status_code == 400


# ─── Security headers ─────────────────────────────────────────────────────────


class TestSecurityHeaders:

    def _assert_hardened(self, response) -> None:
        for name, value in SECURITY_HEADERS.items():
            assert response.headers[name] == value

    def test_headers_on_success(self, recording_sink, fake_notifier) -> None:
        with _client(recording_sink, fake_notifier) as client:
            self._assert_hardened(client.get("/health"))

    def test_headers_on_not_found(self, recording_sink, fake_notifier) -> None:
        with _client(recording_sink, fake_notifier) as client:
            self._assert_hardened(client.get("/missing"))

    def test_headers_on_payload_too_large(self, recording_sink, fake_notifier) -> None:
        with _client(recording_sink, fake_notifier) as client:
            response = client.post(
                "/api/signup",
                content=b"x" * (MAX_REQUEST_BODY_BYTES + 1),
                headers={"content-type": "application/json"},
            )
        self._assert_hardened(response)


# ─── Origin audit ─────────────────────────────────────────────────────────────


class TestOriginAudit:

    def test_disallowed_origin_is_logged(self, recording_sink, fake_notifier) -> None:
        with _client(recording_sink, fake_notifier) as client:
            response = client.get("/health", headers={"origin": "https://evil.example"})
        assert "access-control-allow-origin" not in response.headers
        warns = recording_sink.by_severity(Severity.WARN)
        assert len(warns) == 1
        assert "https://evil.example" in warns[0].message
        assert warns[0].source == "testclient"

    def test_disallowed_preflight_is_logged(self, recording_sink, fake_notifier) -> None:
        with _client(recording_sink, fake_notifier) as client:
            response = client.options(
                "/api/signup",
                headers={
                    "origin": "https://evil.example",
                    "access-control-request-method": "POST",
                },
            )
        assert response.status_code == 400
        assert len(recording_sink.by_severity(Severity.WARN)) == 1

    def test_allowed_origin_is_not_logged(self, recording_sink, fake_notifier) -> None:
        with _client(recording_sink, fake_notifier) as client:
            response = client.get("/health", headers={"origin": "https://autoplan.hyoda.kr"})
        assert response.headers["access-control-allow-origin"] == "https://autoplan.hyoda.kr"
        assert response.headers["access-control-allow-credentials"] == "true"
        assert recording_sink.events == []

    def test_no_origin_is_not_logged(self, recording_sink, fake_notifier) -> None:
        with _client(recording_sink, fake_notifier) as client:
            client.get("/health")
        assert recording_sink.events == []
