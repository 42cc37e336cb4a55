"""Hub Verdi FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan     — @asynccontextmanager startup/shutdown sequence
  - /            — service discovery root
  - app = create_app() — module-level instance for uvicorn

Startup sequence:
  1. create_security_log()     → app.state.security_log
  2. build_pattern_set()       → app.state.guard (InputGuard)
  3. SmtpNotifier()            → app.state.notifier
  4. app.state.ready = True

Shutdown (reverse):
  app.state.ready = False → close security log

Config is loaded by create_app() (not the lifespan) because the CORS origins
and the signup rate limit are needed to build the middleware stack.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRouter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from hubverdi import __version__
from hubverdi.config import Config, load_config
from hubverdi.guard.definitions import build_pattern_set
from hubverdi.guard.engine import InputGuard
from hubverdi.health import router as health_router
from hubverdi.http.errors import (
    http_exception_handler,
    rate_limit_exceeded_handler,
    unhandled_exception_handler,
)
from hubverdi.http.limiter import limiter, set_signup_rate_limit
from hubverdi.http.middleware import (
    BodySizeLimitMiddleware,
    OriginAuditMiddleware,
    SecurityHeadersMiddleware,
)
from hubverdi.mail.notifier import Notifier, SmtpNotifier
from hubverdi.security_log.factory import create_security_log
from hubverdi.security_log.protocol import SecurityEventSink
from hubverdi.signup.router import router as signup_router
from hubverdi.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


# ─── Routers ──────────────────────────────────────────────────────────────────

root_router = APIRouter(tags=["root"])


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 if app.state.ready is not True."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail="Service is starting up")


# ─── Root Endpoint ────────────────────────────────────────────────────────────


@root_router.get("/")
async def root() -> dict[str, str]:
    """Root endpoint — service identity / discovery."""
    return {
        "service": "Hub Verdi API",
        "version": __version__,
        "health": "/health",
        "signup": "/api/signup",
    }


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup and shutdown sequence.

    Components passed to create_app() (tests) are used as-is; anything not
    provided is built from ``app.state.config``.
    """
    logger.info("Hub Verdi starting up...")
    config: Config = app.state.config

    # ── Step 1: Security event log ────────────────────────────────────────────
    security_log: SecurityEventSink = (
        app.state.security_log if app.state.security_log is not None else create_security_log(config)
    )
    app.state.security_log = security_log

    # ── Step 2: Input guard ───────────────────────────────────────────────────
    # Extra patterns were validated by load_config(); compiling cannot fail here.
    patterns = build_pattern_set(config.guard.extra_patterns)
    app.state.guard = InputGuard(
        patterns=patterns,
        security_log=security_log,
        max_field_length=config.guard.max_field_length,
    )
    logger.info("Input guard ready", pattern_count=len(patterns))

    # ── Step 3: Notification relay ────────────────────────────────────────────
    notifier: Notifier = (
        app.state.notifier if app.state.notifier is not None else SmtpNotifier(config.mail)
    )
    app.state.notifier = notifier
    if not config.mail.configured:
        logger.warning(
            "EMAIL_USER / EMAIL_PASS not set — submissions will be accepted "
            "but admin notifications will not be delivered"
        )

    # ── Step 4: Mark as ready ─────────────────────────────────────────────────
    app.state.ready = True
    logger.info("Hub Verdi ready", port=config.server.port)

    yield

    # ── Shutdown (reverse order) ──────────────────────────────────────────────
    logger.info("Hub Verdi shutting down...")
    app.state.ready = False
    security_log.close()
    logger.info("Hub Verdi shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app(
    config: Optional[Config] = None,
    *,
    security_log: Optional[SecurityEventSink] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    """Create and configure the Hub Verdi FastAPI application.

    Call this function directly in tests to get an isolated app instance:
        app = create_app(config, notifier=FakeNotifier())

    Raises:
        SystemExit(1): Propagated from load_config() on invalid config.
    """
    if config is None:
        config = load_config()

    application = FastAPI(
        title="Hub Verdi API",
        description="Membership signup and newsletter intake for autoplan.hyoda.kr",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
        openapi_url="/openapi.json" if DEBUG else None,
    )

    application.state.ready = False
    application.state.config = config
    application.state.security_log = security_log
    application.state.notifier = notifier

    # Rate limiter — attached to app state as required by slowapi.
    set_signup_rate_limit(config.rate_limit.signup)
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # NOTE: In Starlette, the LAST-added middleware is OUTERMOST (runs first).
    # Effective order: SecurityHeaders → OriginAudit → CORS → BodySizeLimit → SlowAPI → routes
    application.add_middleware(SlowAPIMiddleware)
    application.add_middleware(BodySizeLimitMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors.allowed_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    application.add_middleware(OriginAuditMiddleware, allowed_origins=config.cors.allowed_origins)
    application.add_middleware(SecurityHeadersMiddleware)

    application.include_router(root_router)
    application.include_router(health_router)
    application.include_router(signup_router, dependencies=[Depends(require_ready)])

    # Global exception handlers
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(Exception, unhandled_exception_handler)

    return application


# ─── Module-Level App (for uvicorn) ───────────────────────────────────────────

app = create_app()
