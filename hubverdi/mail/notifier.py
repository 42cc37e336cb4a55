"""SMTP delivery of admin notifications.

``SmtpNotifier.send()`` never raises: every outcome is a ``Sent`` or
``Failed`` value. The router turns ``Failed`` into an ERROR security event
and still answers the submitter with success.

Transport security follows the port:
  - 465 → implicit TLS
  - 587 → STARTTLS
  - anything else → plain SMTP (local relays / test servers)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Protocol, Union, runtime_checkable

import aiosmtplib

from hubverdi.config import MailConfig
from hubverdi.utils.logger import get_logger

logger = get_logger(__name__)

SMTPS_PORT = 465
SUBMISSION_PORT = 587


@dataclass(frozen=True)
class Sent:
    message_id: Optional[str] = None

    delivered = True


@dataclass(frozen=True)
class Failed:
    """Delivery did not happen. ``reason`` is for operators only."""

    reason: str

    delivered = False


DeliveryResult = Union[Sent, Failed]


@runtime_checkable
class Notifier(Protocol):
    async def send(self, message: EmailMessage) -> DeliveryResult:
        """Deliver ``message``. Must never raise."""
        ...


class SmtpNotifier:
    """Relays notifications through the configured SMTP server via aiosmtplib."""

    def __init__(self, mail_config: MailConfig) -> None:
        self._config = mail_config

    @property
    def configured(self) -> bool:
        return self._config.configured

    async def send(self, message: EmailMessage) -> DeliveryResult:
        if not self._config.configured:
            logger.warning("SMTP credentials not configured — notification not sent")
            return Failed("smtp credentials not configured")

        port = self._config.smtp_port
        try:
            await aiosmtplib.send(
                message,
                hostname=self._config.smtp_host,
                port=port,
                username=self._config.username,
                password=self._config.password,
                use_tls=port == SMTPS_PORT,
                start_tls=port == SUBMISSION_PORT,
                timeout=self._config.timeout_s,
            )
        except aiosmtplib.SMTPResponseException as exc:
            return self._failed(f"SMTP {exc.code}: {exc.message}", exc)
        except aiosmtplib.SMTPException as exc:
            return self._failed(f"{type(exc).__name__}: {exc}", exc)
        except (OSError, asyncio.TimeoutError) as exc:
            return self._failed(f"{type(exc).__name__}: {exc}", exc)
        except ValueError as exc:
            # Message could not be serialized (e.g. unencodable header or body text).
            return self._failed(f"{type(exc).__name__}: {exc}", exc)

        message_id = message.get("Message-ID")
        logger.info("Notification sent", message_id=message_id, recipient=message.get("To"))
        return Sent(message_id=message_id)

    def _failed(self, reason: str, exc: Exception) -> Failed:
        logger.error(
            "Notification delivery failed",
            smtp_host=self._config.smtp_host,
            smtp_port=self._config.smtp_port,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return Failed(reason)


assert isinstance(SmtpNotifier(MailConfig()), Notifier), (
    "SmtpNotifier does not satisfy Notifier protocol — implementation error"
)
