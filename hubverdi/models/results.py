"""Typed outcomes of the input guard.

Validation never raises: every check returns one of these values and the
caller branches on the variant.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union


class ReasonCode(str, Enum):
    """Internal rejection reason. Logged and returned as ``code`` in 400 bodies."""

    EMPTY = "EMPTY"
    MALICIOUS_PATTERN = "MALICIOUS_PATTERN"
    BAD_FORMAT = "BAD_FORMAT"
    TOO_LONG = "TOO_LONG"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    DISALLOWED_CHARACTERS = "DISALLOWED_CHARACTERS"


# ─── User-facing messages ─────────────────────────────────────────────────────
# Generic on purpose: a message never names the rule that matched.

MSG_REQUIRED_FIELDS = "필수 항목을 모두 입력해주세요."
MSG_INVALID_EMAIL = "올바른 이메일 주소를 입력해주세요."
MSG_EMAIL_TOO_LONG = "이메일 주소가 너무 깁니다."
MSG_DISALLOWED_CHARACTERS = "허용되지 않는 문자가 포함되어 있습니다."

USER_MESSAGES: Mapping[ReasonCode, str] = MappingProxyType({
    ReasonCode.EMPTY: MSG_INVALID_EMAIL,
    ReasonCode.MALICIOUS_PATTERN: MSG_INVALID_EMAIL,
    ReasonCode.BAD_FORMAT: MSG_INVALID_EMAIL,
    ReasonCode.TOO_LONG: MSG_EMAIL_TOO_LONG,
    ReasonCode.MISSING_REQUIRED_FIELD: MSG_REQUIRED_FIELDS,
    ReasonCode.DISALLOWED_CHARACTERS: MSG_DISALLOWED_CHARACTERS,
})


@dataclass(frozen=True)
class EmailCheck:
    """Result of ``InputGuard.validate_email()``.

    Fields:
        is_valid:     True when the address passed every check.
        reason:       Failure reason (None when valid).
        value:        The original address, unchanged (None when invalid).
        matched_slug: Slug of the malicious signature that matched, for the
                      security log only. Never sent to the submitter.
    """

    is_valid: bool
    reason: Optional[ReasonCode] = None
    value: Optional[str] = None
    matched_slug: Optional[str] = None

    @classmethod
    def ok(cls, value: str) -> "EmailCheck":
        return cls(is_valid=True, value=value)

    @classmethod
    def fail(cls, reason: ReasonCode, matched_slug: Optional[str] = None) -> "EmailCheck":
        return cls(is_valid=False, reason=reason, matched_slug=matched_slug)


@dataclass(frozen=True)
class Accepted:
    """The payload passed validation. ``sanitized_payload`` is a fresh read-only mapping."""

    sanitized_payload: Mapping[str, Any]

    accepted = True


@dataclass(frozen=True)
class Rejected:
    """The payload was refused.

    ``reason_code`` is for operators; ``user_message`` is what the submitter sees.
    """

    reason_code: ReasonCode
    user_message: str

    accepted = False

    @classmethod
    def because(cls, reason_code: ReasonCode) -> "Rejected":
        return cls(reason_code=reason_code, user_message=USER_MESSAGES[reason_code])


ValidationResult = Union[Accepted, Rejected]
