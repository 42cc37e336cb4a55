"""Hub Verdi models package.

Defines the shared data contracts used between the input guard, the signup
router and the mail relay:

  - results.py     — EmailCheck, Accepted / Rejected (ValidationResult), ReasonCode
  - submissions.py — MembershipSignup / NewsletterSubscription variants + parse_submission()
  - responses.py   — JSON response builders for success, rejection and rate-limit cases
"""

from hubverdi.models.results import (
    Accepted,
    EmailCheck,
    ReasonCode,
    Rejected,
    ValidationResult,
)
from hubverdi.models.submissions import (
    MembershipSignup,
    NewsletterSubscription,
    Submission,
    parse_submission,
)

__all__ = [
    "Accepted",
    "EmailCheck",
    "ReasonCode",
    "Rejected",
    "ValidationResult",
    "MembershipSignup",
    "NewsletterSubscription",
    "Submission",
    "parse_submission",
]
