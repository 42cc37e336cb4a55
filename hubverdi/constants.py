"""Shared constants for Hub Verdi.

All size limits and numeric caps used across modules are defined here.
No magic numbers in other modules — import from here.
"""

# ─── Request Size Limits ──────────────────────────────────────────────────────

# Maximum allowed request body size for form submissions.
# HTTP 413 is returned for bodies exceeding this limit, before any parsing or
# validation. A full signup form is a few KB; 64 KB leaves ample headroom.
MAX_REQUEST_BODY_BYTES: int = 65_536

# ─── Input Guard Limits ───────────────────────────────────────────────────────

# Sanitized free-text fields are truncated to this many characters.
# Truncation is silent and happens AFTER pattern detection on the raw value.
MAX_FIELD_LENGTH: int = 2_000

# Email length limits (RFC 5321 §4.5.3.1 path / local-part / domain limits).
MAX_EMAIL_LENGTH: int = 254
MAX_EMAIL_LOCAL_PART_LENGTH: int = 64
MAX_EMAIL_DOMAIN_LENGTH: int = 253

# ─── Security Event Log ───────────────────────────────────────────────────────

# Source identifier used when the client address cannot be determined.
UNKNOWN_SOURCE: str = "unknown"

# ─── Rate Limiting ────────────────────────────────────────────────────────────

# Default per-IP limit on the signup endpoint (10 requests per 15 minutes).
DEFAULT_SIGNUP_RATE_LIMIT: str = "10/15 minutes"

# ─── Mail ─────────────────────────────────────────────────────────────────────

# SMTP delivery timeout (seconds). Delivery failures never fail the request.
DEFAULT_SMTP_TIMEOUT_S: float = 10.0
