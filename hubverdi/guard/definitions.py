"""Pattern definitions for the input guard.

All patterns are pre-compiled at module load time using google-re2.
NO pattern compilation happens per-request, per-call, or lazily.

The default table is wrapped in an immutable ``PatternSet`` which is passed
into ``InputGuard`` at construction. Tests build their own sets with
``PatternSet.of(...)`` / ``build_pattern_set(...)``.

IMPORT RULES:
  - ``import re2`` ONLY — ``import re`` is PROHIBITED in hubverdi/guard/.
  - Enforced by tests/security/test_redos_gate.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Literal, Optional

import re2  # google-re2 — NOT stdlib re

CategoryType = Literal["sql_injection", "script_injection", "control_sequence", "custom"]


class PatternCompileError(ValueError):
    """Raised when a configured extra pattern is not valid re2 syntax."""


# ---------------------------------------------------------------------------
# PatternEntry / PatternSet
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PatternEntry:
    """A single compiled malicious-input signature.

    Fields:
        pattern:  Pre-compiled re2 pattern object (case-insensitive, unanchored).
        rule_id:  Identifier for the rule family (e.g. ``"SQL_INJECTION"``).
        slug:     Kebab-case identifier of the specific signature. Logged for
                  operators; NEVER returned to the submitter.
        category: Broad classification of the signature.
    """
    pattern: Any           # re2._Regexp — pre-compiled at module load
    rule_id: str
    slug: str
    category: CategoryType


@dataclass(frozen=True)
class PatternSet:
    """Immutable, ordered collection of signatures. First match wins."""

    entries: tuple[PatternEntry, ...]

    @classmethod
    def of(cls, entries: Iterable[PatternEntry]) -> "PatternSet":
        return cls(entries=tuple(entries))

    def first_match(self, value: str) -> Optional[PatternEntry]:
        """Return the first entry whose pattern occurs anywhere in ``value``."""
        for entry in self.entries:
            if entry.pattern.search(value):
                return entry
        return None

    def __len__(self) -> int:
        return len(self.entries)


def _entry(expr: str, rule_id: str, slug: str, category: CategoryType) -> PatternEntry:
    return PatternEntry(
        pattern=re2.compile("(?i)" + expr),
        rule_id=rule_id,
        slug=slug,
        category=category,
    )


# ===========================================================================
# SQL INJECTION
# ===========================================================================

SQL_INJECTION_PATTERNS: tuple[PatternEntry, ...] = (
    # ' OR '1'='1  /  " or "a"="a
    _entry(r"""['"]\s*or\s*['"][^'"]*['"]\s*=\s*['"]""", "SQL_INJECTION", "sql-tautology-quoted", "sql_injection"),
    # OR 1=1
    _entry(r"\bor\s+\d+\s*=\s*\d+", "SQL_INJECTION", "sql-tautology-numeric", "sql_injection"),
    _entry(r"\bsleep\s*\(", "SQL_INJECTION", "sql-sleep", "sql_injection"),
    _entry(r"\bbenchmark\s*\(", "SQL_INJECTION", "sql-benchmark", "sql_injection"),
    _entry(r"\bwaitfor\s+delay\b", "SQL_INJECTION", "sql-waitfor-delay", "sql_injection"),
    _entry(r"\bunion\s+(?:all\s+)?select\b", "SQL_INJECTION", "sql-union-select", "sql_injection"),
    _entry(r"\bdrop\s+table\b", "SQL_INJECTION", "sql-drop-table", "sql_injection"),
    _entry(r"\bdelete\s+from\b", "SQL_INJECTION", "sql-delete-from", "sql_injection"),
    _entry(r"\bexec\b", "SQL_INJECTION", "sql-exec", "sql_injection"),
)

# ===========================================================================
# SCRIPT INJECTION
# ===========================================================================

SCRIPT_INJECTION_PATTERNS: tuple[PatternEntry, ...] = (
    _entry(r"<\s*script", "SCRIPT_INJECTION", "script-tag", "script_injection"),
    _entry(r"javascript\s*:", "SCRIPT_INJECTION", "javascript-uri", "script_injection"),
    _entry(r"\bonerror\s*=", "SCRIPT_INJECTION", "onerror-handler", "script_injection"),
    _entry(r"\bonload\s*=", "SCRIPT_INJECTION", "onload-handler", "script_injection"),
)

# ===========================================================================
# CONTROL SEQUENCES
# Generic characters with no business in a signup form.
# ===========================================================================

CONTROL_SEQUENCE_PATTERNS: tuple[PatternEntry, ...] = (
    _entry(r"[<>]", "CONTROL_SEQUENCE", "angle-bracket", "control_sequence"),
    _entry(r";", "CONTROL_SEQUENCE", "statement-terminator", "control_sequence"),
    _entry(r"--", "CONTROL_SEQUENCE", "sql-line-comment", "control_sequence"),
    _entry(r"#", "CONTROL_SEQUENCE", "hash-comment", "control_sequence"),
    _entry(r"/\*", "CONTROL_SEQUENCE", "block-comment-open", "control_sequence"),
    _entry(r"\*/", "CONTROL_SEQUENCE", "block-comment-close", "control_sequence"),
    # Stray quote followed by OR: ' or x
    _entry(r"""['"]\s*or\b""", "CONTROL_SEQUENCE", "quote-or", "control_sequence"),
)

# Ordered: specific signatures before generic character rules so the logged
# slug names the most meaningful match.
ALL_PATTERNS: tuple[PatternEntry, ...] = (
    SQL_INJECTION_PATTERNS
    + SCRIPT_INJECTION_PATTERNS
    + CONTROL_SEQUENCE_PATTERNS
)

DEFAULT_PATTERN_SET = PatternSet(entries=ALL_PATTERNS)


# ===========================================================================
# EMAIL FORMAT
# local@domain: ASCII local part, dot-separated alphanumeric/hyphen labels.
# ===========================================================================

EMAIL_FORMAT_PATTERN = re2.compile(
    r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$"
)


# ---------------------------------------------------------------------------
# Extra (configured) patterns
# ---------------------------------------------------------------------------


def compile_extra_patterns(expressions: Iterable[str]) -> tuple[PatternEntry, ...]:
    """Compile operator-supplied patterns into entries.

    Raises:
        PatternCompileError: If any expression is not a string or fails re2 compilation.
    """
    compiled: list[PatternEntry] = []
    for index, expr in enumerate(expressions):
        if not isinstance(expr, str) or not expr:
            raise PatternCompileError(f"pattern #{index} must be a non-empty string")
        try:
            compiled.append(_entry(expr, "CUSTOM_PATTERN", f"custom-{index}", "custom"))
        except re2.error as exc:
            raise PatternCompileError(f"pattern #{index} {expr!r}: {exc}") from exc
    return tuple(compiled)


def build_pattern_set(extra_patterns: Iterable[str] = ()) -> PatternSet:
    """Return the default table extended with compiled ``extra_patterns``."""
    extras = compile_extra_patterns(extra_patterns)
    if not extras:
        return DEFAULT_PATTERN_SET
    return PatternSet(entries=ALL_PATTERNS + extras)
