"""Admin notification emails for accepted submissions.

Bodies are rendered with jinja2 and autoescaping ON: submitted values are
inserted into HTML, so every value is escaped even though the input guard has
already rejected markup.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Mapping, Optional

from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape

from hubverdi.config import MailConfig
from hubverdi.models.submissions import MembershipSignup, NewsletterSubscription, Submission

KST = timezone(timedelta(hours=9), "KST")

NOT_PROVIDED = "미입력"

SITE_NAME = "autoplan.hyoda.kr"

# (section title, [(field, label), ...])
MEMBERSHIP_SECTIONS: tuple[tuple[str, tuple[tuple[str, str], ...]], ...] = (
    ("📋 기본 정보", (
        ("firstName", "성명"),
        ("phone", "연락처"),
        ("email", "이메일"),
        ("company", "회사/단체명"),
        ("position", "직책"),
    )),
    ("💼 비즈니스 정보", (
        ("businessType", "업종"),
        ("region", "지역"),
        ("businessSize", "사업 규모"),
        ("experience", "사업 경험"),
    )),
    ("🎯 관심사 및 목표", (
        ("interests", "관심 분야"),
        ("goals", "목표"),
        ("motivation", "가입 동기"),
        ("challenges", "해결하고 싶은 과제"),
    )),
)

_TEMPLATES = {
    "membership.html": """\
<h2>🌱 새로운 멤버십 가입 신청</h2>
<p><strong>신청일시:</strong> {{ submitted_at }}</p>
{% for title, rows in sections %}
<h3>{{ title }}</h3>
<ul>
{% for label, value in rows %}  <li><strong>{{ label }}:</strong> {{ value }}</li>
{% endfor %}</ul>
{% endfor %}
<hr>
<p style="color: #666; font-size: 0.9rem;">
  * 이 이메일은 {{ site }} 멤버십 신청 폼에서 자동으로 발송되었습니다.
</p>
""",
    "membership.txt": """\
새로운 멤버십 가입 신청
신청일시: {{ submitted_at }}
{% for title, rows in sections %}
[{{ title }}]
{% for label, value in rows %}- {{ label }}: {{ value }}
{% endfor %}{% endfor %}
* 이 이메일은 {{ site }} 멤버십 신청 폼에서 자동으로 발송되었습니다.
""",
    "newsletter.html": """\
<h2>📰 새로운 뉴스레터 구독</h2>
<p><strong>구독일시:</strong> {{ submitted_at }}</p>
<ul>
  <li><strong>이메일:</strong> {{ email }}</li>
  <li><strong>유입 경로:</strong> {{ source }}</li>
</ul>
<hr>
<p style="color: #666; font-size: 0.9rem;">
  * 이 이메일은 {{ site }} 뉴스레터 구독 폼에서 자동으로 발송되었습니다.
</p>
""",
    "newsletter.txt": """\
새로운 뉴스레터 구독
구독일시: {{ submitted_at }}
- 이메일: {{ email }}
- 유입 경로: {{ source }}

* 이 이메일은 {{ site }} 뉴스레터 구독 폼에서 자동으로 발송되었습니다.
""",
}

_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)


def _display(value: Any) -> str:
    # Only strings are screened by the guard; nested JSON is never rendered.
    if value is None or value == "" or value is False:
        return NOT_PROVIDED
    if value is True:
        return "예"
    if isinstance(value, (str, int, float)):
        return str(value)
    return NOT_PROVIDED


def _header_safe(value: str) -> str:
    return " ".join(value.split())


def _submitted_at(now: Optional[datetime]) -> str:
    moment = (now or datetime.now(timezone.utc)).astimezone(KST)
    return moment.strftime("%Y. %m. %d. %H:%M:%S")


def _membership_context(payload: Mapping[str, Any]) -> list[tuple[str, list[tuple[str, str]]]]:
    return [
        (title, [(label, _display(payload.get(field))) for field, label in rows])
        for title, rows in MEMBERSHIP_SECTIONS
    ]


def _new_message(payload: Mapping[str, Any], mail_config: MailConfig, subject: str) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = mail_config.sender
    message["To"] = mail_config.recipient
    message["Message-ID"] = make_msgid(domain=SITE_NAME)
    email = payload.get("email")
    if isinstance(email, str) and email:
        message["Reply-To"] = email
    return message


def _attach_bodies(message: EmailMessage, name: str, context: Mapping[str, Any]) -> None:
    message.set_content(_env.get_template(f"{name}.txt").render(**context))
    message.add_alternative(_env.get_template(f"{name}.html").render(**context), subtype="html")


def compose_membership_notification(
    submission: MembershipSignup,
    mail_config: MailConfig,
    now: Optional[datetime] = None,
) -> EmailMessage:
    """Build the admin notification for an accepted membership signup.

    Args:
        submission:  Accepted signup carrying the sanitized payload.
        mail_config: Sender / recipient addresses.
        now:         Submission time (defaults to the current time); shown in KST.
    """
    name = _header_safe(submission.display_name)
    message = _new_message(
        submission.payload, mail_config, f"[오토플랜] 새로운 멤버십 가입 신청 - {name}님"
    )
    _attach_bodies(message, "membership", {
        "submitted_at": _submitted_at(now),
        "sections": _membership_context(submission.payload),
        "site": SITE_NAME,
    })
    return message


def compose_newsletter_notification(
    submission: NewsletterSubscription,
    mail_config: MailConfig,
    now: Optional[datetime] = None,
) -> EmailMessage:
    """Build the admin notification for an accepted newsletter subscription."""
    message = _new_message(submission.payload, mail_config, "[오토플랜] 새로운 뉴스레터 구독")
    _attach_bodies(message, "newsletter", {
        "submitted_at": _submitted_at(now),
        "email": _display(submission.payload.get("email")),
        "source": _display(submission.source),
        "site": SITE_NAME,
    })
    return message


def compose_notification(
    submission: Submission,
    mail_config: MailConfig,
    now: Optional[datetime] = None,
) -> EmailMessage:
    if isinstance(submission, NewsletterSubscription):
        return compose_newsletter_notification(submission, mail_config, now)
    return compose_membership_notification(submission, mail_config, now)
