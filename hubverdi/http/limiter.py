"""Shared rate limiter for the public form endpoints.

Uses slowapi keyed on the client address. The signup limit is read through
``signup_rate_limit()`` at request time so that create_app() can apply the
configured value (``rate_limit.signup``) after the route is decorated.

The Limiter instance is shared between:
  - hubverdi/signup/router.py (route decorator)
  - hubverdi/main.py          (app.state.limiter + SlowAPIMiddleware registration)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from hubverdi.constants import DEFAULT_SIGNUP_RATE_LIMIT

# Module-level limiter — imported by main.py and signup/router.py
limiter = Limiter(key_func=get_remote_address)

_signup_rate_limit: str = DEFAULT_SIGNUP_RATE_LIMIT


def signup_rate_limit() -> str:
    return _signup_rate_limit


def set_signup_rate_limit(value: str) -> None:
    global _signup_rate_limit
    _signup_rate_limit = value
