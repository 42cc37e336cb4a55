"""Hub Verdi mail package.

  - templates.py — jinja2 rendering of admin notifications (autoescaped)
  - notifier.py  — SMTP delivery via aiosmtplib returning Sent | Failed
"""

from hubverdi.mail.notifier import DeliveryResult, Failed, Notifier, Sent, SmtpNotifier
from hubverdi.mail.templates import (
    compose_membership_notification,
    compose_newsletter_notification,
    compose_notification,
)

__all__ = [
    "DeliveryResult",
    "Failed",
    "Notifier",
    "Sent",
    "SmtpNotifier",
    "compose_membership_notification",
    "compose_newsletter_notification",
    "compose_notification",
]
