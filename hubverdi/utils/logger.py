"""Structured logging utilities for Hub Verdi.

This module provides async-safe structured logging using structlog.
Log entries emitted while a submission is being handled carry its
submission_id for tracing.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Optional

import structlog
from structlog.types import EventDict, Processor

# Context variable for per-submission tracking
submission_id_var: ContextVar[Optional[str]] = ContextVar("submission_id", default=None)


def add_submission_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add submission_id to log context if available."""
    submission_id = submission_id_var.get()
    if submission_id:
        event_dict["submission_id"] = submission_id
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, use console format.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_submission_id,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Pretty console output for development
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "hubverdi") -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def set_submission_id(submission_id: str) -> None:
    """Set submission ID in context for all subsequent logs."""
    submission_id_var.set(submission_id)


def clear_submission_id() -> None:
    """Clear submission ID from context."""
    submission_id_var.set(None)


# Initialize logging with sensible defaults
# This will be reconfigured by main.py based on environment
configure_logging()
