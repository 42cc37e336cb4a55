"""Health endpoint for Hub Verdi.

  GET /health — 503 before ``app.state.ready``, 200 afterwards.

Polled by container health probes and the uptime monitor.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Primary health check.

    Response body (200):
        {
          "status": "OK",
          "timestamp": "2025-01-01T00:00:00.000Z",
          "security_log": "writable" | "unwritable",
          "mail": "configured" | "not_configured"
        }

    The status stays "OK" when the security log or SMTP relay are degraded;
    submissions are still accepted in both cases.
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail="Service is starting up")

    security_log = request.app.state.security_log
    notifier = request.app.state.notifier

    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "security_log": "writable" if security_log.health_check() else "unwritable",
        "mail": "configured" if getattr(notifier, "configured", True) else "not_configured",
    }
