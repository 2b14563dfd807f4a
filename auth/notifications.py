"""
auth/notifications.py -- Outbound messages for reset and verification links.

AuthService only knows the NotificationDispatcher contract: send(Message),
raising DeliveryError when the message could not be handed off.
Implementations:

  SmtpDispatcher     -- smtplib, STARTTLS (587) or implicit TLS (465).
  LogDispatcher      -- writes the whole message, link included, to the log.
                        DEBUG only: the link carries a live token.
  DisabledDispatcher -- SMTP off outside DEBUG. Logs recipient and subject,
                        then raises DeliveryError so callers see
                        DELIVERY_FAILED instead of a silent success.

Message builders (reset_password_message, verify_email_message) own the
wording; the dispatcher only moves bytes.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from auth.errors import DeliveryError

logger = logging.getLogger("authgate.notify")


@dataclass(frozen=True)
class Message:
    to: str
    subject: str
    body: str  # plain text
    html: str | None = None


class NotificationDispatcher(Protocol):
    def send(self, message: Message) -> None: ...


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

RESET_PASSWORD_SUBJECT = "Reset password"
VERIFY_EMAIL_SUBJECT = "Verify email"

_LINK_TEXT = """Dear user,

We received a request to {action}. If you did not make this request, please ignore this email.

To {action}, open the link below:
{link}

This link will expire in {expires} for security reasons.

Best regards,
Your Website Team
"""

_LINK_HTML = """
<h1>Dear user,</h1>
<p>We received a request to {action}. If you did not make this request, please ignore this email.</p>
<p>To {action}, click the link below:</p>
<p><a href="{link}">{link}</a></p>
<p>This link will expire in <strong>{expires}</strong> for security reasons.</p>
<p>If you have any issues, please contact our support team.</p>
<p>Best regards,<br>Your Website Team</p>
"""


def humanize_seconds(seconds: int) -> str:
    """Render an expiry window the way a reader expects: '15 minutes', '1 day'."""
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size and seconds % size == 0:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"


def _link_message(to: str, subject: str, action: str, link: str, expires_in: int) -> Message:
    expires = humanize_seconds(expires_in)
    return Message(
        to=to,
        subject=subject,
        body=_LINK_TEXT.format(action=action, link=link, expires=expires),
        html=_LINK_HTML.format(action=action, link=link, expires=expires),
    )


def reset_password_message(to: str, link: str, expires_in: int) -> Message:
    return _link_message(to, RESET_PASSWORD_SUBJECT, "reset your password", link, expires_in)


def verify_email_message(to: str, link: str, expires_in: int) -> Message:
    return _link_message(to, VERIFY_EMAIL_SUBJECT, "verify your email", link, expires_in)


# ---------------------------------------------------------------------------
# Dispatchers
# ---------------------------------------------------------------------------


class SmtpDispatcher:
    """Deliver messages over SMTP.

    settings is a core.config.Settings-shaped object; only the smtp_* fields
    are read. Every transport failure is logged and re-raised as DeliveryError.
    """

    def __init__(self, settings) -> None:
        self._settings = settings

    def _build(self, message: Message) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = f"{self._settings.smtp_from_name} <{self._settings.smtp_from_email}>"
        msg["To"] = message.to
        msg.attach(MIMEText(message.body, "plain"))
        if message.html:
            msg.attach(MIMEText(message.html, "html"))
        return msg

    def send(self, message: Message) -> None:
        cfg = self._settings
        if not cfg.smtp_host:
            raise DeliveryError("SMTP host not configured")

        password = cfg.smtp_password.get_secret_value() if cfg.smtp_password else ""
        mime = self._build(message)
        try:
            if cfg.smtp_use_tls and not cfg.smtp_starttls:
                # Implicit TLS (port 465)
                with smtplib.SMTP_SSL(cfg.smtp_host, cfg.smtp_port, context=ssl.create_default_context()) as server:
                    if cfg.smtp_user:
                        server.login(cfg.smtp_user, password)
                    server.send_message(mime)
            else:
                # STARTTLS (port 587) or plain
                with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port) as server:
                    if cfg.smtp_starttls:
                        server.starttls(context=ssl.create_default_context())
                    if cfg.smtp_user:
                        server.login(cfg.smtp_user, password)
                    server.send_message(mime)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send %r to %s: %s", message.subject, message.to, exc)
            raise DeliveryError(f"SMTP delivery to {message.to} failed") from exc

        logger.info("Email %r sent to %s", message.subject, message.to)


class LogDispatcher:
    """Log messages instead of sending them. Development only: the body holds the token."""

    def send(self, message: Message) -> None:
        logger.warning("SMTP disabled, not sending %r to %s:\n%s", message.subject, message.to, message.body)


class DisabledDispatcher:
    """Refuse to deliver (SMTP disabled in production). The body is never logged."""

    def send(self, message: Message) -> None:
        logger.warning("SMTP disabled, dropping %r to %s", message.subject, message.to)
        raise DeliveryError("Outbound email is disabled")
