"""
auth/mailer.py -- Outbound email for account verification.

The core only needs send(to, subject, body) -> bool. SmtpEmailSender is the
production implementation over smtplib. Delivery failures are logged and
reported as False, never raised: a failed mail does not undo a registration.

When SMTP_HOST is empty, delivery is disabled and send() returns False after
logging a warning. That is the normal state for local development.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Protocol

from core.config import Settings

logger = logging.getLogger("coreid.mailer")


class EmailSender(Protocol):
    def send(self, to_address: str, subject: str, body: str) -> bool: ...


class SmtpEmailSender:
    def __init__(self, settings: Settings, timeout: float = 10.0) -> None:
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._username = settings.smtp_username
        self._password = settings.smtp_password
        self._use_tls = settings.smtp_use_tls
        self._from = formataddr((settings.smtp_sender_name, settings.smtp_sender_email))
        self._timeout = timeout

    def send(self, to_address: str, subject: str, body: str) -> bool:
        if not to_address or not subject or not body:
            logger.warning("Refusing to send an email with an empty recipient, subject or body.")
            return False
        if not self._host:
            logger.warning("SMTP_HOST is not configured -- email to %s not sent.", to_address)
            return False

        message = EmailMessage()
        message["From"] = self._from
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content(body, subtype="html")

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                if self._use_tls:
                    server.starttls()
                if self._username:
                    server.login(self._username, self._password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP delivery to %s failed: %s", to_address, exc)
            return False
        logger.info("Sent '%s' email to %s", subject, to_address)
        return True
