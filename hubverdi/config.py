"""Config loading for Hub Verdi.

Reads `.hubverdi/config.yaml` (or `~/.hubverdi/config.yaml`).
Raises SystemExit on parse errors, a missing `version` field, or invalid values.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. HUBVERDI_CONFIG environment variable (if set)
  3. `.hubverdi/config.yaml` (working directory — for development)
  4. `~/.hubverdi/config.yaml` (home directory — for production deployments)

Environment variable overrides:
  HUBVERDI_PORT              — overrides server.port
  HUBVERDI_SECURITY_LOG_PATH — overrides security_log.path
  EMAIL_USER / EMAIL_PASS    — SMTP credentials (never stored in the config file)
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, NoReturn, Optional

import yaml
from limits import parse as parse_rate_limit

from hubverdi.constants import (
    DEFAULT_SIGNUP_RATE_LIMIT,
    DEFAULT_SMTP_TIMEOUT_S,
    MAX_FIELD_LENGTH,
)
from hubverdi.guard.definitions import PatternCompileError, compile_extra_patterns
from hubverdi.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_CONFIG_PATHS = [
    ".hubverdi/config.yaml",
    os.path.expanduser("~/.hubverdi/config.yaml"),
]

DEFAULT_ALLOWED_ORIGINS: tuple[str, ...] = (
    "https://autoplan.hyoda.kr",
    "http://autoplan.hyoda.kr",
    "http://localhost:3000",
)


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    """HTTP binding configuration."""

    host: str = "0.0.0.0"
    port: int = 4000


@dataclass
class CorsConfig:
    """Origins allowed to submit forms from the browser."""

    allowed_origins: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))


@dataclass
class RateLimitConfig:
    """Per-client-IP limits in `limits` notation (e.g. "10/15 minutes")."""

    signup: str = DEFAULT_SIGNUP_RATE_LIMIT


@dataclass
class GuardConfig:
    """InputGuard configuration.

    extra_patterns are appended to the built-in malicious-pattern table.
    Each must compile under re2; an invalid pattern refuses startup.
    """

    max_field_length: int = MAX_FIELD_LENGTH
    extra_patterns: list[str] = field(default_factory=list)


@dataclass
class SecurityLogConfig:
    """Security event log sink configuration."""

    enabled: bool = True
    path: str = "logs/security.log"


@dataclass
class MailConfig:
    """SMTP relay for admin notifications.

    username/password are normally supplied via EMAIL_USER / EMAIL_PASS.
    """

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    sender: str = "noreply@autoplan.hyoda.kr"
    recipient: str = "admin@autoplan.hyoda.kr"
    timeout_s: float = DEFAULT_SMTP_TIMEOUT_S

    @property
    def configured(self) -> bool:
        return bool(self.username and self.password)


@dataclass
class Config:
    """Root configuration object populated from .hubverdi/config.yaml.

    All fields have safe defaults — Hub Verdi can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    cors: CorsConfig = field(default_factory=CorsConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    guard: GuardConfig = field(default_factory=GuardConfig)
    security_log: SecurityLogConfig = field(default_factory=SecurityLogConfig)
    mail: MailConfig = field(default_factory=MailConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On an invalid rate limit, field length, or extra pattern.
        """
        # ── Server ────────────────────────────────────────────────────────────
        server_raw = _section(raw, "server")
        server = ServerConfig(
            host=server_raw.get("host", "0.0.0.0"),
            port=server_raw.get("port", 4000),
        )

        # ── CORS ──────────────────────────────────────────────────────────────
        cors_raw = _section(raw, "cors")
        cors = CorsConfig(
            allowed_origins=list(
                cors_raw.get("allowed_origins", DEFAULT_ALLOWED_ORIGINS)
            ),
        )

        # ── Rate limit ────────────────────────────────────────────────────────
        rate_raw = _section(raw, "rate_limit")
        signup_limit = str(rate_raw.get("signup", DEFAULT_SIGNUP_RATE_LIMIT))
        try:
            parse_rate_limit(signup_limit)
        except ValueError:
            _fail(
                f"CONFIG ERROR: Invalid rate_limit.signup: '{signup_limit}'. "
                "Expected a value such as '10/15 minutes'."
            )
        rate_limit = RateLimitConfig(signup=signup_limit)

        # ── Guard ─────────────────────────────────────────────────────────────
        guard_raw = _section(raw, "guard")
        max_field_length = guard_raw.get("max_field_length", MAX_FIELD_LENGTH)
        if not isinstance(max_field_length, int) or max_field_length <= 0:
            _fail(
                f"CONFIG ERROR: Invalid guard.max_field_length: '{max_field_length}'. "
                "Must be a positive integer."
            )
        extra_patterns = list(guard_raw.get("extra_patterns") or [])
        try:
            compile_extra_patterns(extra_patterns)
        except PatternCompileError as exc:
            _fail(f"CONFIG ERROR: Invalid guard.extra_patterns entry: {exc}")
        guard = GuardConfig(
            max_field_length=max_field_length,
            extra_patterns=extra_patterns,
        )

        # ── Security log ──────────────────────────────────────────────────────
        log_raw = _section(raw, "security_log")
        security_log = SecurityLogConfig(
            enabled=bool(log_raw.get("enabled", True)),
            path=log_raw.get("path", "logs/security.log"),
        )

        # ── Mail ──────────────────────────────────────────────────────────────
        mail_raw = _section(raw, "mail")
        mail = MailConfig(
            smtp_host=mail_raw.get("smtp_host", "smtp.gmail.com"),
            smtp_port=mail_raw.get("smtp_port", 587),
            username=mail_raw.get("username"),
            password=mail_raw.get("password"),
            sender=mail_raw.get("sender", "noreply@autoplan.hyoda.kr"),
            recipient=mail_raw.get("recipient", "admin@autoplan.hyoda.kr"),
            timeout_s=float(mail_raw.get("timeout_s", DEFAULT_SMTP_TIMEOUT_S)),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            cors=cors,
            rate_limit=rate_limit,
            guard=guard,
            security_log=security_log,
            mail=mail,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate Hub Verdi configuration.

    Search order:
      1. ``config_path`` argument
      2. ``HUBVERDI_CONFIG`` environment variable
      3. ``.hubverdi/config.yaml``
      4. ``~/.hubverdi/config.yaml``

    If no file is found, returns default Config (not an error). Environment
    overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field,
                       unsupported version, or invalid section values.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("HUBVERDI_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "Hub Verdi refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _fail(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        _fail(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )

    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if _section(raw, "mail").get("password"):
        logger.warning(
            "SMTP password is stored in the config file. "
            "Prefer the EMAIL_PASS environment variable."
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        allowed_origins=config.cors.allowed_origins,
        signup_rate_limit=config.rate_limit.signup,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If HUBVERDI_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("HUBVERDI_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _fail(
                f"CONFIG ERROR: HUBVERDI_PORT environment variable is not a valid "
                f"integer: '{env_port}'"
            )

    env_log_path = os.environ.get("HUBVERDI_SECURITY_LOG_PATH")
    if env_log_path:
        config.security_log.path = env_log_path

    env_user = os.environ.get("EMAIL_USER")
    if env_user:
        config.mail.username = env_user
    env_pass = os.environ.get("EMAIL_PASS")
    if env_pass:
        config.mail.password = env_pass


def _section(raw: dict, name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        _fail(f"CONFIG ERROR: '{name}' section must be a mapping.")
    return value


def _fail(msg: str) -> NoReturn:
    print(msg, file=sys.stderr)
    raise SystemExit(1)
