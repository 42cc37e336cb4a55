"""Exception handlers registered by create_app()."""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from hubverdi.http.middleware import client_source, security_log_for
from hubverdi.models.responses import (
    build_rate_limited_response,
    build_server_error_response,
)
from hubverdi.security_log.models import Severity
from hubverdi.utils.logger import get_logger

logger = get_logger(__name__)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 for a client over its limit; recorded as a WARN security event.

    Synchronous so that SlowAPIMiddleware can call it directly as well as the
    Starlette exception middleware.
    """
    security_log_for(request).record(
        Severity.WARN,
        client_source(request),
        f"Rate limit exceeded on {request.method} {request.url.path} ({exc.detail})",
    )
    return build_rate_limited_response()


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=str(request.url.path),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=str(request.url.path),
    )
    return build_server_error_response()
