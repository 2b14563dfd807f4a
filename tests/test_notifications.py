"""Unit tests for auth/notifications.py -- message builders and dispatchers.

smtplib.SMTP / SMTP_SSL are patched; nothing leaves the process.
"""

import logging
import smtplib
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from pydantic import SecretStr

from api.main import build_dispatcher
from auth.errors import DeliveryError
from auth.notifications import (
    DisabledDispatcher,
    LogDispatcher,
    Message,
    SmtpDispatcher,
    humanize_seconds,
    reset_password_message,
    verify_email_message,
)


def _smtp_settings(**overrides) -> SimpleNamespace:
    values = {
        "smtp_host": "smtp.example.com",
        "smtp_port": 587,
        "smtp_user": "mailer",
        "smtp_password": SecretStr("hunter2"),
        "smtp_starttls": True,
        "smtp_use_tls": False,
        "smtp_from_email": "noreply@example.com",
        "smtp_from_name": "authgate",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


MESSAGE = Message(to="alice@x.com", subject="Reset password", body="plain", html="<p>html</p>")


@pytest.mark.parametrize(
    "seconds, expected",
    [(900, "15 minutes"), (60, "1 minute"), (3600, "1 hour"), (86400, "1 day"), (172800, "2 days"), (90, "90 seconds")],
)
def test_humanize_seconds(seconds: int, expected: str) -> None:
    assert humanize_seconds(seconds) == expected


def test_reset_message_contains_link_and_expiry() -> None:
    link = "https://app.example.com/reset-password?token=abc"
    message = reset_password_message("alice@x.com", link, 900)
    assert message.to == "alice@x.com"
    assert message.subject == "Reset password"
    assert link in message.body
    assert "reset your password" in message.body
    assert "15 minutes" in message.body
    assert f'<a href="{link}">' in message.html


def test_verify_message_wording() -> None:
    message = verify_email_message("alice@x.com", "https://app.example.com/verify?token=abc", 86400)
    assert message.subject == "Verify email"
    assert "verify your email" in message.body
    assert "1 day" in message.body


class TestSmtpDispatcher:
    def test_starttls_login_and_send(self) -> None:
        with patch("auth.notifications.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            SmtpDispatcher(_smtp_settings()).send(MESSAGE)

        smtp_cls.assert_called_once_with("smtp.example.com", 587)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "hunter2")
        sent = server.send_message.call_args.args[0]
        assert sent["To"] == "alice@x.com"
        assert sent["From"] == "authgate <noreply@example.com>"
        assert sent["Subject"] == "Reset password"

    def test_implicit_tls(self) -> None:
        settings = _smtp_settings(smtp_port=465, smtp_starttls=False, smtp_use_tls=True)
        with patch("auth.notifications.smtplib.SMTP_SSL") as ssl_cls:
            server = ssl_cls.return_value.__enter__.return_value
            SmtpDispatcher(settings).send(MESSAGE)

        assert ssl_cls.call_args.args == ("smtp.example.com", 465)
        server.send_message.assert_called_once()

    def test_anonymous_relay_skips_login(self) -> None:
        settings = _smtp_settings(smtp_user=None, smtp_password=None, smtp_starttls=False)
        with patch("auth.notifications.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            SmtpDispatcher(settings).send(MESSAGE)

        server.starttls.assert_not_called()
        server.login.assert_not_called()

    def test_smtp_error_becomes_delivery_error(self) -> None:
        with patch("auth.notifications.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            server.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
            with pytest.raises(DeliveryError):
                SmtpDispatcher(_smtp_settings()).send(MESSAGE)

    def test_connection_error_becomes_delivery_error(self) -> None:
        with patch("auth.notifications.smtplib.SMTP", side_effect=ConnectionRefusedError):
            with pytest.raises(DeliveryError):
                SmtpDispatcher(_smtp_settings()).send(MESSAGE)

    def test_no_host_configured(self) -> None:
        with pytest.raises(DeliveryError, match="not configured"):
            SmtpDispatcher(_smtp_settings(smtp_host=None)).send(MESSAGE)


def test_log_dispatcher_logs_the_body(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="authgate.notify"):
        LogDispatcher().send(MESSAGE)
    assert "alice@x.com" in caplog.text
    assert "plain" in caplog.text



def test_disabled_dispatcher_refuses_and_keeps_body_out_of_log(caplog: pytest.LogCaptureFixture) -> None:
    message = reset_password_message("alice@x.com", "https://app.example.com/reset-password?token=live-token", 900)
    with caplog.at_level(logging.DEBUG, logger="authgate.notify"):
        with pytest.raises(DeliveryError):
            DisabledDispatcher().send(message)
    assert "alice@x.com" in caplog.text
    assert "live-token" not in caplog.text


@pytest.mark.parametrize(
    "smtp_enabled, debug, expected",
    [(True, False, SmtpDispatcher), (False, True, LogDispatcher), (False, False, DisabledDispatcher)],
)
def test_build_dispatcher_never_logs_links_in_production(smtp_enabled: bool, debug: bool, expected: type) -> None:
    settings = _smtp_settings(smtp_enabled=smtp_enabled, debug=debug)
    assert isinstance(build_dispatcher(settings), expected)
