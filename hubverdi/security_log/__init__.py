"""Hub Verdi security event log package.

Re-exports the public API for ergonomic imports:

    from hubverdi.security_log import SecurityEvent, SecurityEventSink, Severity

Layout:
    models.py       — SecurityEvent + Severity, single-line formatting
    protocol.py     — SecurityEventSink Protocol + NullSecurityEventLog
    file_backend.py — FileSecurityEventLog (lock-serialized O_APPEND writes)
    factory.py      — create_security_log() — sink selection from config
"""

from hubverdi.security_log.models import SecurityEvent, Severity
from hubverdi.security_log.protocol import NullSecurityEventLog, SecurityEventSink

__all__ = [
    "SecurityEvent",
    "Severity",
    "SecurityEventSink",
    "NullSecurityEventLog",
]
