"""SecurityEvent dataclass and severity levels.

One SecurityEvent is created per security-relevant decision (blocked input,
rate-limit hit, CORS rejection, delivery failure). Events are immutable and
render to exactly one line of text:

    [<ISO8601 timestamp>] [<SEVERITY>] [IP: <source>] <message> Payload: <excerpt>

The ``Payload:`` segment is omitted when there is no excerpt.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from hubverdi.constants import UNKNOWN_SOURCE


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


def _single_line(text: str) -> str:
    """Escape line breaks so one event can never span two log lines."""
    return text.replace("\r", "\\r").replace("\n", "\\n")


@dataclass(frozen=True)
class SecurityEvent:
    """Durable record of a security-relevant decision.

    Build instances through ``SecurityEvent.create()`` so that the timestamp is
    UTC, the source falls back to ``"unknown"`` and text fields are made
    single-line. The excerpt is kept whole so the matched text is always on
    record; its size is bounded by the request body cap.
    """

    timestamp: datetime
    severity: Severity
    source: str
    message: str
    payload_excerpt: Optional[str] = None

    @classmethod
    def create(
        cls,
        severity: Severity,
        source: Optional[str],
        message: str,
        payload_excerpt: Optional[str] = None,
    ) -> "SecurityEvent":
        excerpt = None
        if payload_excerpt is not None:
            excerpt = _single_line(str(payload_excerpt))
        return cls(
            timestamp=datetime.now(timezone.utc),
            severity=Severity(severity),
            source=_single_line(source) if source else UNKNOWN_SOURCE,
            message=_single_line(message),
            payload_excerpt=excerpt,
        )

    def to_line(self) -> str:
        """Render the event as one log line (no trailing newline)."""
        stamp = self.timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        line = f"[{stamp}] [{self.severity.value}] [IP: {self.source}] {self.message}"
        if self.payload_excerpt is not None:
            line += f" Payload: {self.payload_excerpt}"
        return line
