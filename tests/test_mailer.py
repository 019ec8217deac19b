"""Unit tests for auth/mailer.py -- SMTP delivery with smtplib patched out."""

from __future__ import annotations

import smtplib
from unittest.mock import patch

import pytest

from auth.mailer import SmtpEmailSender
from tests.conftest import make_settings


@pytest.fixture
def sender() -> SmtpEmailSender:
    return SmtpEmailSender(
        make_settings(smtp_host="smtp.example.com", smtp_port=2525, smtp_username="bot", smtp_password="pw")
    )


def test_sends_html_message(sender):
    with patch("auth.mailer.smtplib.SMTP") as smtp_cls:
        assert sender.send("a@example.com", "Hello", "<p>Hi</p>") is True

    smtp_cls.assert_called_once_with("smtp.example.com", 2525, timeout=10.0)
    server = smtp_cls.return_value.__enter__.return_value
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("bot", "pw")
    message = server.send_message.call_args.args[0]
    assert message["To"] == "a@example.com"
    assert message["Subject"] == "Hello"
    assert "CoreID" in message["From"]
    assert message.get_content_subtype() == "html"


def test_plain_connection_without_tls_or_login():
    sender = SmtpEmailSender(make_settings(smtp_host="smtp.example.com", smtp_use_tls=False))
    with patch("auth.mailer.smtplib.SMTP") as smtp_cls:
        assert sender.send("a@example.com", "Hello", "body") is True
    server = smtp_cls.return_value.__enter__.return_value
    server.starttls.assert_not_called()
    server.login.assert_not_called()


@pytest.mark.parametrize("error", [smtplib.SMTPException("boom"), OSError("refused")])
def test_delivery_failure_returns_false(sender, error):
    with patch("auth.mailer.smtplib.SMTP", side_effect=error):
        assert sender.send("a@example.com", "Hello", "body") is False


@pytest.mark.parametrize(
    "to_address, subject, body",
    [("", "s", "b"), ("a@example.com", "", "b"), ("a@example.com", "s", "")],
)
def test_empty_arguments_are_refused(sender, to_address, subject, body):
    with patch("auth.mailer.smtplib.SMTP") as smtp_cls:
        assert sender.send(to_address, subject, body) is False
    smtp_cls.assert_not_called()


def test_no_host_disables_delivery():
    sender = SmtpEmailSender(make_settings(smtp_host=""))
    with patch("auth.mailer.smtplib.SMTP") as smtp_cls:
        assert sender.send("a@example.com", "Hello", "body") is False
    smtp_cls.assert_not_called()
