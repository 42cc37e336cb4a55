"""Hub Verdi input guard package.

Provides the validation pipeline for form submissions: the immutable
signature table (definitions.py) and the InputGuard itself (engine.py).
Everything here is synchronous and free of I/O apart from security events.
"""

from hubverdi.guard.definitions import (
    DEFAULT_PATTERN_SET,
    PatternCompileError,
    PatternEntry,
    PatternSet,
    build_pattern_set,
)
from hubverdi.guard.engine import InputGuard, sanitize_input, validate_email

__all__ = [
    "DEFAULT_PATTERN_SET",
    "PatternCompileError",
    "PatternEntry",
    "PatternSet",
    "build_pattern_set",
    "InputGuard",
    "sanitize_input",
    "validate_email",
]
