"""HTTP middleware for Hub Verdi.

  - BodySizeLimitMiddleware:    64 KB request body hard cap → 413
  - OriginAuditMiddleware:      WARN security event for a disallowed ``Origin``
  - SecurityHeadersMiddleware:  hardening headers on every response

Registration order lives in create_app() (hubverdi/main.py). In Starlette the
LAST-added middleware is OUTERMOST.
"""

from __future__ import annotations

from typing import Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from hubverdi.constants import MAX_REQUEST_BODY_BYTES
from hubverdi.security_log.models import Severity
from hubverdi.security_log.protocol import NullSecurityEventLog, SecurityEventSink
from hubverdi.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Error response bodies ────────────────────────────────────────────────────

_PAYLOAD_TOO_LARGE_BODY: dict = {"error": "요청 데이터가 너무 큽니다."}

_INVALID_CONTENT_LENGTH_BODY: dict = {"error": "잘못된 요청입니다."}

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
    "X-Permitted-Cross-Domain-Policies": "none",
}


def client_source(request: Request) -> Optional[str]:
    """Client address used as the ``source`` of security events."""
    return request.client.host if request.client else None


def security_log_for(request: Request) -> SecurityEventSink:
    """The app's sink, or a console-only sink before startup has completed."""
    sink = getattr(request.app.state, "security_log", None)
    return sink if sink is not None else NullSecurityEventLog()


# ─── Middleware ───────────────────────────────────────────────────────────────


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject request bodies larger than MAX_REQUEST_BODY_BYTES with HTTP 413.

    Two-phase check:
      1. Content-Length fast path: reject on the declared size, no body read.
      2. No Content-Length (chunked): accumulate with a rolling cap; the
         accepted body is cached on the request for the route handler.
    """

    def __init__(self, app: ASGIApp, max_bytes: int = MAX_REQUEST_BODY_BYTES) -> None:
        super().__init__(app)
        self._max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        content_length_header = request.headers.get("content-length")

        # ── Phase 1: Content-Length fast path ─────────────────────────────────
        if content_length_header is not None:
            try:
                declared_size = int(content_length_header)
            except ValueError:
                logger.warning(
                    "Invalid Content-Length header",
                    value=content_length_header,
                    path=request.url.path,
                )
                return JSONResponse(status_code=400, content=_INVALID_CONTENT_LENGTH_BODY)

            if declared_size > self._max_bytes:
                logger.warning(
                    "Request body too large (Content-Length)",
                    declared_size=declared_size,
                    limit=self._max_bytes,
                    path=request.url.path,
                )
                return JSONResponse(status_code=413, content=_PAYLOAD_TOO_LARGE_BODY)

            return await call_next(request)

        if request.method in ("GET", "HEAD", "OPTIONS"):
            return await call_next(request)

        # ── Phase 2: chunked / no Content-Length — rolling cap ────────────────
        body_chunks: list[bytes] = []
        total_size = 0

        async for chunk in request.stream():
            total_size += len(chunk)
            if total_size > self._max_bytes:
                logger.warning(
                    "Request body too large (chunked)",
                    accumulated_size=total_size,
                    limit=self._max_bytes,
                    path=request.url.path,
                )
                return JSONResponse(status_code=413, content=_PAYLOAD_TOO_LARGE_BODY)
            body_chunks.append(chunk)

        # Request.body() returns the cached bytes instead of re-reading the stream.
        request._body = b"".join(body_chunks)  # type: ignore[attr-defined]

        return await call_next(request)


class OriginAuditMiddleware(BaseHTTPMiddleware):
    """Record a WARN security event for requests from a non-allowed browser origin.

    Enforcement stays with CORSMiddleware (no CORS headers for such origins);
    this middleware only makes the attempt visible in the security log.
    """

    def __init__(self, app: ASGIApp, allowed_origins: Iterable[str] = ()) -> None:
        super().__init__(app)
        self._allowed = frozenset(allowed_origins)

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        origin = request.headers.get("origin")
        if origin is not None and "*" not in self._allowed and origin not in self._allowed:
            security_log_for(request).record(
                Severity.WARN,
                client_source(request),
                f"CORS origin not allowed: {origin[:200]} ({request.method} {request.url.path})",
            )
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add hardening headers to every response (values in SECURITY_HEADERS)."""

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response
