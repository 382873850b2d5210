"""Outgoing mail transports for verification and password reset links."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from app.core.config import EmailConfig

LOGGER = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    """Raised when a message could not be handed to the mail server."""


class Mailer(Protocol):
    """Mail transport contract used by the auth service."""

    def send(self, to_email: str, subject: str, html: str) -> None:
        """Deliver one message or raise ``EmailDeliveryError``."""
        ...


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class LoggingMailer:
    """Development transport: logs the envelope instead of sending."""

    def send(self, to_email: str, subject: str, html: str) -> None:
        LOGGER.info("email_dev_mode to=%s subject=%s", redact_email(to_email), subject)


class SmtpMailer:
    """SMTP transport using STARTTLS or implicit TLS."""

    def __init__(self, config: EmailConfig, *, timeout_seconds: float = 30.0) -> None:
        self._config = config
        self._timeout = timeout_seconds

    def _build_message(self, to_email: str, subject: str, html: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self._config.from_name} <{self._config.from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(html, "html"))
        return msg

    def send(self, to_email: str, subject: str, html: str) -> None:
        """Send message via SMTP, raising ``EmailDeliveryError`` on failure."""
        msg = self._build_message(to_email, subject, html)
        context = ssl.create_default_context()
        config = self._config
        try:
            if config.smtp_use_tls:
                with smtplib.SMTP(
                    config.smtp_host, config.smtp_port, timeout=self._timeout
                ) as server:
                    server.starttls(context=context)
                    if config.smtp_user and config.smtp_password:
                        server.login(config.smtp_user, config.smtp_password)
                    server.sendmail(config.from_email, to_email, msg.as_string())
            else:
                with smtplib.SMTP_SSL(
                    config.smtp_host,
                    config.smtp_port,
                    context=context,
                    timeout=self._timeout,
                ) as server:
                    if config.smtp_user and config.smtp_password:
                        server.login(config.smtp_user, config.smtp_password)
                    server.sendmail(config.from_email, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.error(
                "email_send_failed to=%s error=%s", redact_email(to_email), exc
            )
            raise EmailDeliveryError("Email could not be sent") from exc
        LOGGER.info("email_sent to=%s", redact_email(to_email))


def create_mailer(config: EmailConfig) -> Mailer:
    """Pick SMTP delivery when configured, otherwise log-only delivery."""
    if config.is_configured:
        return SmtpMailer(config)
    LOGGER.info("email_delivery_disabled")
    return LoggingMailer()
