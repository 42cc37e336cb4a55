"""Input guard — validation and sanitization of form submissions.

Provides:
  - ``validate_email()``:  empty → malicious → format → length checks; never rewrites.
  - ``sanitize_input()``:  block-or-pass on the RAW value, then trim + length cap.
  - ``InputGuard``:        the per-process guard holding an injected PatternSet and
                           the security event sink; implements
                           ``validate_all_inputs()`` and ``screen_submission()``.

Per-submission state machine (``screen_submission``):

    Received → RequiredFieldsChecked → PatternValidated → Accepted | Rejected

INVARIANTS:
  - Synchronous, no I/O other than SecurityEventSink.record().
  - NEVER raises for any payload shape; outcomes are Accepted / Rejected values.
  - Detection always runs on the original, untrimmed value.
  - A rejection records exactly one security event.
  - The submitter never learns which signature matched.

IMPORT RULES:
  - ``import re2`` ONLY — ``import re`` is PROHIBITED in hubverdi/guard/.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping, Optional

from hubverdi.constants import (
    MAX_EMAIL_DOMAIN_LENGTH,
    MAX_EMAIL_LENGTH,
    MAX_EMAIL_LOCAL_PART_LENGTH,
    MAX_FIELD_LENGTH,
)
from hubverdi.guard.definitions import DEFAULT_PATTERN_SET, EMAIL_FORMAT_PATTERN, PatternSet
from hubverdi.models.results import (
    Accepted,
    EmailCheck,
    ReasonCode,
    Rejected,
    ValidationResult,
)
from hubverdi.models.submissions import Submission, parse_submission, with_payload
from hubverdi.security_log.models import Severity
from hubverdi.security_log.protocol import NullSecurityEventLog, SecurityEventSink
from hubverdi.utils.logger import get_logger

logger = get_logger(__name__)

EMAIL_FIELD = "email"

# Slug logged for values that are not valid Unicode text (e.g. lone surrogates
# decoded from JSON \u escapes). re2 and the mail encoder both reject them.
UNENCODABLE_SLUG = "invalid-encoding"


# ---------------------------------------------------------------------------
# Pure checks
# ---------------------------------------------------------------------------


def is_encodable(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def validate_email(value: Any, patterns: PatternSet = DEFAULT_PATTERN_SET) -> EmailCheck:
    """Validate an email address without modifying it.

    Check order (first failure wins):
      1. EMPTY             — missing, not a string, or ""
      2. BAD_FORMAT        — not encodable as UTF-8
      3. MALICIOUS_PATTERN — any signature in ``patterns`` occurs in the raw string
      4. BAD_FORMAT        — not local@domain per EMAIL_FORMAT_PATTERN
      5. TOO_LONG          — total > 254, local part > 64 or domain > 253 chars

    Returns:
        ``EmailCheck.ok(value)`` with the original string, or ``EmailCheck.fail(reason)``.
    """
    if not isinstance(value, str) or value == "":
        return EmailCheck.fail(ReasonCode.EMPTY)
    if not is_encodable(value):
        return EmailCheck.fail(ReasonCode.BAD_FORMAT)

    entry = patterns.first_match(value)
    if entry is not None:
        return EmailCheck.fail(ReasonCode.MALICIOUS_PATTERN, matched_slug=entry.slug)

    if not EMAIL_FORMAT_PATTERN.match(value):
        return EmailCheck.fail(ReasonCode.BAD_FORMAT)

    local_part, _, domain = value.rpartition("@")
    if (
        len(value) > MAX_EMAIL_LENGTH
        or len(local_part) > MAX_EMAIL_LOCAL_PART_LENGTH
        or len(domain) > MAX_EMAIL_DOMAIN_LENGTH
    ):
        return EmailCheck.fail(ReasonCode.TOO_LONG)

    return EmailCheck.ok(value)


def sanitize_input(
    value: Any,
    patterns: PatternSet = DEFAULT_PATTERN_SET,
    max_length: int = MAX_FIELD_LENGTH,
) -> str:
    """Return a cleaned copy of ``value``, or "" if it is missing or blocked.

    Detection runs on the original value so padding cannot hide a signature.
    Values that are not encodable as UTF-8 are blocked outright.
    Clean values are trimmed and silently capped at ``max_length`` characters;
    whitespace exposed by the cap is trimmed too, which keeps the function
    idempotent on clean input.
    """
    if not isinstance(value, str):
        return ""
    if not is_encodable(value) or patterns.first_match(value) is not None:
        return ""
    cleaned = value.strip()
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length].rstrip()
    return cleaned


# ---------------------------------------------------------------------------
# InputGuard
# ---------------------------------------------------------------------------


class InputGuard:
    """Validates one submission at a time. Stateless apart from its immutable inputs.

    Safe to share across concurrent requests: the PatternSet is frozen and the
    sink is responsible for its own synchronization.

    Args:
        patterns:         Signature table; defaults to the built-in set.
        security_log:     Sink receiving one event per rejection.
        max_field_length: Cap applied by sanitize_input().
    """

    def __init__(
        self,
        patterns: PatternSet = DEFAULT_PATTERN_SET,
        security_log: Optional[SecurityEventSink] = None,
        max_field_length: int = MAX_FIELD_LENGTH,
    ) -> None:
        self._patterns = patterns
        self._security_log: SecurityEventSink = security_log or NullSecurityEventLog()
        self._max_field_length = max_field_length

    @property
    def patterns(self) -> PatternSet:
        return self._patterns

    def validate_email(self, value: Any) -> EmailCheck:
        return validate_email(value, self._patterns)

    def sanitize_input(self, value: Any) -> str:
        return sanitize_input(value, self._patterns, self._max_field_length)

    # ── Payload validation ────────────────────────────────────────────────────

    def validate_all_inputs(
        self,
        payload: Mapping[str, Any],
        source: Optional[str] = None,
    ) -> ValidationResult:
        """Validate and sanitize every field of ``payload``.

        1. ``email`` (if present) is validated first; failure rejects immediately.
        2. Every other string field is sanitized; a non-empty original that
           sanitizes to "" rejects with DISALLOWED_CHARACTERS.
        3. Non-string values pass through unchanged.

        The input mapping is never modified; Accepted carries a new read-only mapping.
        """
        if EMAIL_FIELD in payload:
            raw_email = payload[EMAIL_FIELD]
            check = self.validate_email(raw_email)
            if not check.is_valid:
                self._report_email_rejection(check, raw_email, source)
                return Rejected.because(check.reason or ReasonCode.EMPTY)

        sanitized: dict[str, Any] = {}
        for name, value in payload.items():
            if name == EMAIL_FIELD:
                sanitized[name] = value
                continue
            if not isinstance(value, str):
                sanitized[name] = value
                continue

            cleaned = self.sanitize_input(value)
            if value != "" and cleaned == "":
                if value.strip() == "":
                    # Whitespace-only is empty, not an attack.
                    sanitized[name] = cleaned
                    continue
                slug = self._matched_slug(value)
                self._security_log.record(
                    Severity.ERROR,
                    source,
                    f"Malicious input blocked in field '{_field_label(name)}' (rule: {slug})",
                    payload_excerpt=value,
                )
                logger.info(
                    "Submission rejected",
                    reason=ReasonCode.DISALLOWED_CHARACTERS.value,
                    field=_field_label(name),
                    rule=slug,
                )
                return Rejected.because(ReasonCode.DISALLOWED_CHARACTERS)
            sanitized[name] = cleaned

        return Accepted(sanitized_payload=MappingProxyType(sanitized))

    def screen_submission(
        self,
        raw_payload: Mapping[str, Any],
        source: Optional[str] = None,
    ) -> tuple[Submission, ValidationResult]:
        """Run the full per-submission state machine.

        Received → RequiredFieldsChecked → PatternValidated → Accepted | Rejected

        The required-field check runs first and performs no pattern matching;
        its event lists field NAMES only, never values.

        Returns:
            ``(submission, result)``. On Accepted the submission carries the
            sanitized payload; on Rejected it carries the raw payload.
        """
        submission = parse_submission(raw_payload)

        missing = submission.missing_required_fields()
        if missing:
            self._security_log.record(
                Severity.INFO,
                source,
                f"Required fields missing for {submission.kind}: {', '.join(missing)}",
            )
            logger.info(
                "Submission rejected",
                reason=ReasonCode.MISSING_REQUIRED_FIELD.value,
                kind=submission.kind,
                missing=missing,
            )
            return submission, Rejected.because(ReasonCode.MISSING_REQUIRED_FIELD)

        result = self.validate_all_inputs(submission.payload, source)
        if isinstance(result, Accepted):
            return with_payload(submission, result.sanitized_payload), result
        return submission, result

    # ── Reporting ─────────────────────────────────────────────────────────────

    def _matched_slug(self, value: str) -> str:
        if not is_encodable(value):
            return UNENCODABLE_SLUG
        entry = self._patterns.first_match(value)
        return entry.slug if entry is not None else "unknown"

    def _report_email_rejection(self, check: EmailCheck, raw_email: Any, source: Optional[str]) -> None:
        excerpt = raw_email if isinstance(raw_email, str) and raw_email else None
        if check.reason is ReasonCode.MALICIOUS_PATTERN:
            self._security_log.record(
                Severity.ERROR,
                source,
                f"Malicious input blocked in field 'email' (rule: {check.matched_slug})",
                payload_excerpt=excerpt,
            )
        else:
            self._security_log.record(
                Severity.WARN,
                source,
                f"Invalid email rejected ({check.reason.value if check.reason else 'UNKNOWN'})",
                payload_excerpt=excerpt,
            )
        logger.info(
            "Submission rejected",
            reason=check.reason.value if check.reason else None,
            field=EMAIL_FIELD,
            rule=check.matched_slug,
        )


def _field_label(name: str) -> str:
    """Field names come from the client; keep them short and single-line in logs."""
    return name[:64].replace("\r", " ").replace("\n", " ")
