"""Security event log factory — sink selection and initialization.

Selection logic:
  1. security_log.enabled is false → NullSecurityEventLog (console mirror only)
  2. Otherwise                     → FileSecurityEventLog at security_log.path

Path override: HUBVERDI_SECURITY_LOG_PATH (applied by load_config()).
"""

from __future__ import annotations

from hubverdi.config import Config
from hubverdi.security_log.file_backend import FileSecurityEventLog
from hubverdi.security_log.protocol import NullSecurityEventLog, SecurityEventSink
from hubverdi.utils.logger import get_logger

logger = get_logger(__name__)


def create_security_log(config: Config) -> SecurityEventSink:
    """Create the configured security event sink.

    Never raises for an unwritable path: the sink reports append failures on
    the console at record() time, and the failure is surfaced here as a
    startup warning.
    """
    if not config.security_log.enabled:
        logger.warning("Security event log disabled — events go to console only")
        return NullSecurityEventLog()

    sink = FileSecurityEventLog(config.security_log.path)
    if not sink.health_check():
        logger.warning(
            "Security event log path is not writable yet — appends will be retried per event",
            path=sink.path,
        )
    logger.info(
        "security_log_selected",
        backend="FileSecurityEventLog",
        path=sink.path,
    )
    return sink
