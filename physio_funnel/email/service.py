from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, select_autoescape
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Cc, Mail

from physio_funnel.clock import format_display
from physio_funnel.email.config import EmailSettings, get_email_settings
from physio_funnel.errors import DeliveryError

logger = logging.getLogger("physio_funnel.email.service")

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

JINJA_ENV = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def render_template(template_name: str, context: Mapping[str, Any]) -> str:
    try:
        template = JINJA_ENV.get_template(template_name)
    except Exception as exc:
        logger.error("Failed to load email template %s: %s", template_name, exc, exc_info=True)
        raise

    return template.render(**context)


@dataclass
class EmailMessage:
    to_email: str
    subject: str
    html_body: str
    text_body: Optional[str] = None
    cc: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class EmailSender:
    """Sends a composed message or raises DeliveryError."""

    def send(self, message: EmailMessage) -> None:
        raise NotImplementedError


class SendGridEmailSender(EmailSender):
    def __init__(self, email_settings: EmailSettings) -> None:
        self._settings = email_settings

    def send(self, message: EmailMessage) -> None:
        if not self._settings.configured:
            raise DeliveryError("Email transport not configured (SENDGRID_API_KEY missing)")
        if not message.to_email:
            raise DeliveryError("Message has no recipient")

        mail = Mail(
            from_email=(str(self._settings.from_address), self._settings.from_name),
            to_emails=message.to_email,
            subject=message.subject,
            html_content=message.html_body,
            plain_text_content=message.text_body,
        )
        for address in message.cc:
            mail.add_cc(Cc(address))

        try:
            client = SendGridAPIClient(self._settings.sendgrid_api_key)
            client.client.timeout = self._settings.timeout_seconds
            response = client.send(mail)
        except Exception as exc:  # network / API errors, timeouts
            logger.error(
                "Failed to send email via SendGrid to %s: %s",
                message.to_email,
                exc,
                exc_info=True,
            )
            raise DeliveryError(f"SendGrid send failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "SendGrid responded with error for %s: status=%s",
                message.to_email,
                response.status_code,
            )
            raise DeliveryError(f"SendGrid responded with status {response.status_code}")

        logger.info(
            "Email sent: to=%s subject=%s status=%s",
            message.to_email,
            message.subject,
            response.status_code,
        )


def get_email_sender() -> EmailSender:
    """FastAPI dependency; overridden in tests."""
    return SendGridEmailSender(get_email_settings())


def deliver_quietly(sender: EmailSender, message: EmailMessage) -> bool:
    """
    Send from a background task. Failures are logged, never raised.
    """
    try:
        sender.send(message)
    except DeliveryError as exc:
        logger.warning("Email to %s not delivered: %s", message.to_email, exc)
        return False
    except Exception:
        logger.exception("Unexpected error while sending email to %s", message.to_email)
        return False
    return True


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def action_link(
    base_url: str,
    *,
    lead_id: int,
    practice_code: str,
    token: str,
    issued_at_ms: int,
    action: str = "afspraak_gemaakt",
) -> str:
    query = urlencode(
        {
            "action": action,
            "lead_id": lead_id,
            "practice_code": practice_code,
            "token": token,
            "ts": issued_at_ms,
        }
    )
    return f"{base_url.rstrip('/')}/lead-action?{query}"


def build_lead_notification(
    lead: Any,
    practice: Any,
    link: str,
    email_settings: Optional[EmailSettings] = None,
) -> EmailMessage:
    """Practice-facing 'new lead' email with the one-click action link."""
    email_settings = email_settings or get_email_settings()
    context = {
        "lead": lead,
        "practice": practice,
        "action_url": link,
        "received_at": format_display(lead.created_at, email_settings.display_timezone),
    }
    return EmailMessage(
        to_email=practice.email_to,
        cc=[practice.email_cc] if practice.email_cc else [],
        subject="Er is een nieuwe lead binnengekomen!",
        html_body=render_template("lead_notification.html", context),
        text_body=render_template("lead_notification.txt", context),
    )


def build_appointment_confirmation(
    lead: Any,
    practice_name: str,
    practice_email: Optional[str] = None,
) -> EmailMessage:
    """Lead-facing confirmation after the practice marked the appointment."""
    context = {
        "lead": lead,
        "practice_name": practice_name,
        "practice_email": practice_email,
    }
    return EmailMessage(
        to_email=lead.email,
        subject=f"Afspraakbevestiging bij {practice_name}",
        html_body=render_template("appointment_confirmation.html", context),
        text_body=render_template("appointment_confirmation.txt", context),
    )


def build_test_mail(to_email: str) -> EmailMessage:
    text = render_template("test_mail.txt", {})
    return EmailMessage(
        to_email=to_email,
        subject="Testmail van de funnel backend",
        html_body=f"<p>{text}</p>",
        text_body=text,
    )
