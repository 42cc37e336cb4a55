"""Submission variants for the signup endpoint.

A raw form payload is classified at the boundary by its ``type`` field:

  - ``type == "newsletter_subscription"`` → NewsletterSubscription
  - anything else (including absent)       → MembershipSignup

Both variants keep the complete payload (unknown extra fields included) in a
read-only mapping; the variant only decides which fields are required.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, ClassVar, Mapping, Optional, Union

NEWSLETTER_TYPE = "newsletter_subscription"

# Checkbox values that mean the box was NOT ticked.
_DECLINED_CONSENT: frozenset[str] = frozenset({"false", "off", "0", "no"})


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip() != ""
    return True


def _consent_given(value: Any) -> bool:
    if isinstance(value, str) and value.strip().lower() in _DECLINED_CONSENT:
        return False
    return _is_present(value)


@dataclass(frozen=True)
class MembershipSignup:
    """Membership application submitted from the signup page."""

    payload: Mapping[str, Any]

    kind: ClassVar[str] = "membership_signup"
    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("firstName", "phone", "email", "privacy-agree")
    OPTIONAL_FIELDS: ClassVar[tuple[str, ...]] = (
        "company",
        "position",
        "businessType",
        "region",
        "businessSize",
        "experience",
        "interests",
        "goals",
        "motivation",
        "challenges",
    )
    CONSENT_FIELD: ClassVar[str] = "privacy-agree"

    def missing_required_fields(self) -> list[str]:
        missing = []
        for name in self.REQUIRED_FIELDS:
            value = self.payload.get(name)
            present = _consent_given(value) if name == self.CONSENT_FIELD else _is_present(value)
            if not present:
                missing.append(name)
        return missing

    @property
    def display_name(self) -> str:
        name = self.payload.get("firstName")
        return name if isinstance(name, str) else ""


@dataclass(frozen=True)
class NewsletterSubscription:
    """Newsletter signup from the footer form. Only ``email`` is required."""

    payload: Mapping[str, Any]

    kind: ClassVar[str] = NEWSLETTER_TYPE
    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("email",)
    OPTIONAL_FIELDS: ClassVar[tuple[str, ...]] = ("source",)

    def missing_required_fields(self) -> list[str]:
        return [name for name in self.REQUIRED_FIELDS if not _is_present(self.payload.get(name))]

    @property
    def source(self) -> Optional[str]:
        source = self.payload.get("source")
        return source if isinstance(source, str) else None


Submission = Union[MembershipSignup, NewsletterSubscription]


def parse_submission(raw: Mapping[str, Any]) -> Submission:
    """Classify a raw payload into its submission variant.

    The payload is copied into a read-only mapping; the caller's mapping is
    never referenced afterwards.
    """
    frozen = MappingProxyType(dict(raw))
    if raw.get("type") == NEWSLETTER_TYPE:
        return NewsletterSubscription(payload=frozen)
    return MembershipSignup(payload=frozen)


def with_payload(submission: Submission, payload: Mapping[str, Any]) -> Submission:
    """Return a submission of the same variant carrying ``payload``."""
    return type(submission)(payload=MappingProxyType(dict(payload)))
