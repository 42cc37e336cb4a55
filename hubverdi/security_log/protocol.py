"""SecurityEventSink Protocol + NullSecurityEventLog.

SecurityEvent is defined in hubverdi/security_log/models.py.
This module defines the pluggable sink interface and the no-op sink.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from hubverdi.security_log.models import SecurityEvent, Severity
from hubverdi.utils.logger import get_logger

logger = get_logger(__name__)

_CONSOLE_METHODS = {
    Severity.INFO: "info",
    Severity.WARN: "warning",
    Severity.ERROR: "error",
}


def mirror_to_console(event: SecurityEvent) -> None:
    """Echo an event to the structlog stream at the matching level.

    Never raises. Excerpts are attacker-controlled and may not be encodable on
    the console stream; such a failure is reported without the offending text.
    """
    log_method = getattr(logger, _CONSOLE_METHODS[event.severity])
    try:
        log_method(
            "security_event",
            severity=event.severity.value,
            source=event.source,
            detail=event.message,
            payload_excerpt=event.payload_excerpt,
        )
    except Exception as exc:  # noqa: BLE001
        logger.error(
            "Security event console mirror failed",
            severity=event.severity.value,
            error_type=type(exc).__name__,
        )


@runtime_checkable
class SecurityEventSink(Protocol):
    """Append-only sink for security events.

    Implementations: FileSecurityEventLog (default), NullSecurityEventLog.
    Selection via create_security_log() (security_log/factory.py).

    record() MUST NOT raise — a sink failure is reported to the console
    logger and swallowed so that logging never fails the request it observes.
    """

    def record(
        self,
        severity: Severity,
        source: Optional[str],
        message: str,
        payload_excerpt: Optional[str] = None,
    ) -> SecurityEvent:
        """Create, persist and return one event. Must never raise."""
        ...

    def health_check(self) -> bool:
        """Returns True if the sink can accept writes. Must not raise."""
        ...

    def close(self) -> None:
        """Release resources. Called during graceful shutdown."""
        ...


class NullSecurityEventLog:
    """Sink that persists nothing — used when the security log is disabled.

    Events are still created and mirrored to the console so operators keep
    live visibility.
    """

    def record(
        self,
        severity: Severity,
        source: Optional[str],
        message: str,
        payload_excerpt: Optional[str] = None,
    ) -> SecurityEvent:
        event = SecurityEvent.create(severity, source, message, payload_excerpt)
        mirror_to_console(event)
        return event

    def health_check(self) -> bool:
        return True

    def close(self) -> None:
        logger.debug("NullSecurityEventLog.close")


assert isinstance(NullSecurityEventLog(), SecurityEventSink), (
    "NullSecurityEventLog does not satisfy SecurityEventSink protocol — implementation error"
)
