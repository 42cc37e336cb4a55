"""FileSecurityEventLog — append-only text file sink.

Features:
  - One line per event (format in security_log/models.py)
  - Atomic per call: a process-wide lock serializes writers and each line is
    handed to the kernel in a single ``os.write`` on an ``O_APPEND`` descriptor,
    so concurrent requests never interleave partial lines
  - Ordered: lines appear in the order record() acquired the lock
  - Never raises: OSError on open/write is reported to the console logger and
    swallowed; the descriptor is dropped and the next call reopens the file
  - Every event is mirrored to the structlog console stream after it is
    written; a console failure never loses the file line
"""

from __future__ import annotations

import os
import threading
from typing import Optional

from hubverdi.security_log.models import SecurityEvent, Severity
from hubverdi.security_log.protocol import mirror_to_console
from hubverdi.utils.logger import get_logger

logger = get_logger(__name__)

_OPEN_FLAGS = os.O_WRONLY | os.O_APPEND | os.O_CREAT
_FILE_MODE = 0o640


class FileSecurityEventLog:
    """Security event sink backed by a single append-only text file.

    Usage:
        log = FileSecurityEventLog("logs/security.log")
        log.record(Severity.ERROR, "203.0.113.7", "Malicious input blocked", payload_excerpt=raw)
        log.close()
    """

    def __init__(self, path: str) -> None:
        self._path: str = os.path.abspath(os.path.expanduser(path))
        self._lock = threading.Lock()
        self._fd: Optional[int] = None

    @property
    def path(self) -> str:
        return self._path

    # ── Public API ────────────────────────────────────────────────────────────

    def record(
        self,
        severity: Severity,
        source: Optional[str],
        message: str,
        payload_excerpt: Optional[str] = None,
    ) -> SecurityEvent:
        event = SecurityEvent.create(severity, source, message, payload_excerpt)
        # Persist before mirroring: the file line must not depend on the console.
        self._append(event.to_line() + "\n")
        mirror_to_console(event)
        return event

    def health_check(self) -> bool:
        """True when the log file (or its directory, before first write) is writable."""
        try:
            if os.path.exists(self._path):
                return os.access(self._path, os.W_OK)
            # Nearest existing ancestor must be writable for _open() to create the rest.
            directory = os.path.dirname(self._path) or "."
            while not os.path.exists(directory):
                parent = os.path.dirname(directory)
                if parent == directory:
                    return False
                directory = parent
            return os.path.isdir(directory) and os.access(directory, os.W_OK)
        except Exception:  # noqa: BLE001
            return False

    def close(self) -> None:
        with self._lock:
            self._drop_fd()
        logger.info("Security event log closed", path=self._path)

    # ── Internals ─────────────────────────────────────────────────────────────

    def _append(self, line: str) -> None:
        data = line.encode("utf-8", errors="backslashreplace")
        with self._lock:
            try:
                if self._fd is None:
                    self._fd = self._open()
                os.write(self._fd, data)
            except OSError as exc:
                logger.error(
                    "Security event log append failed — event kept on console only",
                    path=self._path,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                self._drop_fd()

    def _open(self) -> int:
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return os.open(self._path, _OPEN_FLAGS, _FILE_MODE)

    def _drop_fd(self) -> None:
        if self._fd is None:
            return
        try:
            os.close(self._fd)
        except OSError:
            pass
        self._fd = None
