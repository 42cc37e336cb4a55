"""POST /api/signup — membership applications and newsletter subscriptions.

Request flow:
  1. Rate limit (slowapi, per client IP)               → 429
  2. Body parse (JSON object or form)                  → 400 INVALID_BODY
  3. InputGuard.screen_submission()                    → 400 {"error", "code"}
  4. Compose + send admin notification (SmtpNotifier)  → Failed is logged, not surfaced
  5. 200 {"success": true, "message": ...}

Every log line emitted while the submission is handled carries its
``submission_id``.
"""

import json
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from hubverdi.config import Config
from hubverdi.guard.engine import InputGuard
from hubverdi.http.limiter import limiter, signup_rate_limit
from hubverdi.http.middleware import client_source, security_log_for
from hubverdi.mail.notifier import DeliveryResult, Failed, Notifier
from hubverdi.mail.templates import compose_notification
from hubverdi.models.responses import (
    build_bad_body_response,
    build_rejection_response,
    build_success_response,
)
from hubverdi.models.results import Rejected
from hubverdi.models.submissions import Submission
from hubverdi.security_log.models import Severity
from hubverdi.utils.logger import clear_submission_id, get_logger, set_submission_id

logger = get_logger(__name__)

router = APIRouter(tags=["signup"])

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_submission_body(request: Request) -> Optional[dict[str, Any]]:
    """Return the submitted fields, or None if the body is not a JSON object / form.

    Repeated form keys (checkbox groups) are joined with ", ". File parts are ignored.
    JSON arrays of strings get the same treatment so both encodings reach the
    guard as the same strings.
    """
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()

    if content_type in _FORM_CONTENT_TYPES:
        form = await request.form()
        fields: dict[str, Any] = {}
        for key in form.keys():
            values = [value for value in form.getlist(key) if isinstance(value, str)]
            if values:
                fields[key] = ", ".join(values)
        return fields

    try:
        body = json.loads(await request.body())
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(body, dict):
        return None
    return {key: _join_string_list(value) for key, value in body.items()}


def _join_string_list(value: Any) -> Any:
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return ", ".join(value)
    return value


@router.post("/api/signup")
@limiter.limit(signup_rate_limit)
async def signup(request: Request) -> JSONResponse:
    source = client_source(request)
    raw = await read_submission_body(request)
    if raw is None:
        logger.warning("Unparseable signup body", source=source)
        return build_bad_body_response()

    guard: InputGuard = request.app.state.guard
    notifier: Notifier = request.app.state.notifier
    config: Config = request.app.state.config

    set_submission_id(str(uuid.uuid4()))
    try:
        submission, result = guard.screen_submission(raw, source=source)
        if isinstance(result, Rejected):
            return build_rejection_response(result)

        delivery = await _notify(notifier, submission, config)
        if isinstance(delivery, Failed):
            security_log_for(request).record(
                Severity.ERROR,
                source,
                f"Notification delivery failed for {submission.kind}: {delivery.reason}",
            )

        logger.info(
            "Submission accepted",
            kind=submission.kind,
            delivered=delivery.delivered,
        )
        return build_success_response(submission)
    finally:
        clear_submission_id()


async def _notify(notifier: Notifier, submission: Submission, config: Config) -> DeliveryResult:
    """Compose and send the admin notification; a message that cannot be built is a Failed delivery."""
    try:
        message = compose_notification(submission, config.mail)
    except ValueError as exc:
        logger.error(
            "Notification could not be composed",
            kind=submission.kind,
            error_type=type(exc).__name__,
        )
        return Failed(f"compose {type(exc).__name__}: {exc}")
    return await notifier.send(message)
