"""Root test configuration for Hub Verdi.

Isolates every test from the developer's environment:
  - HUBVERDI_CONFIG points at a nonexistent file and the env overrides are
    cleared, so load_config() always returns defaults unless a test says otherwise.
  - The security log path is redirected into the test's tmp_path.
  - The shared slowapi limiter storage is reset so rate-limit state never bleeds
    between tests.

Shared fixtures:
  - recording_sink: in-memory SecurityEventSink capturing every event
  - fake_notifier:  Notifier double capturing messages and returning a canned result
"""

from __future__ import annotations

from email.message import EmailMessage
from typing import Optional

import pytest

from hubverdi.mail.notifier import DeliveryResult, Sent
from hubverdi.security_log.models import SecurityEvent, Severity


class RecordingSink:
    """SecurityEventSink that keeps events in memory."""

    def __init__(self) -> None:
        self.events: list[SecurityEvent] = []
        self.closed = False

    def record(
        self,
        severity: Severity,
        source: Optional[str],
        message: str,
        payload_excerpt: Optional[str] = None,
    ) -> SecurityEvent:
        event = SecurityEvent.create(severity, source, message, payload_excerpt)
        self.events.append(event)
        return event

    def health_check(self) -> bool:
        return True

    def close(self) -> None:
        self.closed = True

    def by_severity(self, severity: Severity) -> list[SecurityEvent]:
        return [event for event in self.events if event.severity is severity]


class FakeNotifier:
    """Notifier that records messages instead of talking SMTP."""

    configured = True

    def __init__(self, result: Optional[DeliveryResult] = None) -> None:
        self.result: DeliveryResult = result or Sent(message_id="<test@autoplan.hyoda.kr>")
        self.messages: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> DeliveryResult:
        self.messages.append(message)
        return self.result


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep load_config() away from real config files and credentials."""
    monkeypatch.setenv("HUBVERDI_CONFIG", str(tmp_path / "no-such-config.yaml"))
    monkeypatch.setenv("HUBVERDI_SECURITY_LOG_PATH", str(tmp_path / "logs" / "security.log"))
    for name in ("HUBVERDI_PORT", "EMAIL_USER", "EMAIL_PASS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("hubverdi.config.DEFAULT_CONFIG_PATHS", [])


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Reset the in-memory rate limiter storage between tests."""
    from hubverdi.http.limiter import limiter

    limiter.reset()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fake_notifier() -> FakeNotifier:
    return FakeNotifier()
