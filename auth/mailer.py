"""
auth/mailer.py -- Outbound message dispatch for account flows.

The core only needs send(record, kind, token) -> bool. Whether a False is
tolerated is the caller's decision (auth/flows.py): welcome and reminder
mails are best-effort, a reset mail that never arrives fails the request.

SmtpMailer uses smtplib with STARTTLS (or implicit TLS). When no SMTP host is
configured and dev_mode is on (DEBUG), the message is logged instead of sent
and send() reports success, so local registration and reset flows still work.
Without dev_mode an unconfigured mailer reports failure, so a production
deploy with missing SMTP settings surfaces as delivery_failed.
Recipient addresses are redacted in every log line.

Bodies are plain text; templating belongs to the frontend.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from enum import Enum
from typing import Protocol

from auth.models import CredentialRecord

logger = logging.getLogger("storefront.mail")


class MessageKind(str, Enum):
    welcome = "welcome"
    password_reset = "password_reset"
    verification_reminder = "verification_reminder"


class Mailer(Protocol):
    def send(self, recipient: CredentialRecord, kind: MessageKind, token: str) -> bool: ...


def redact_email(email: str) -> str:
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


def describe_duration(seconds: int) -> str:
    """Render a TTL as whole hours when it divides evenly, else minutes."""
    if seconds >= 3600 and seconds % 3600 == 0:
        hours = seconds // 3600
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    minutes = max(1, seconds // 60)
    return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"


class SmtpMailer:
    def __init__(
        self,
        *,
        client_url: str,
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        smtp_use_tls: bool = True,
        from_email: str = "",
        from_name: str = "MelikShop",
        timeout: float = 30.0,
        reset_ttl_seconds: int = 3600,
        dev_mode: bool = False,
    ) -> None:
        self.client_url = client_url.rstrip("/")
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.from_email = from_email or smtp_user
        self.from_name = from_name
        self.timeout = timeout
        self.reset_ttl_seconds = reset_ttl_seconds
        self.dev_mode = dev_mode

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def send(self, recipient: CredentialRecord, kind: MessageKind, token: str) -> bool:
        """Compose and deliver one message. Returns False on any delivery failure."""
        subject, body = self.compose(recipient, MessageKind(kind), token)
        if not self.is_configured:
            if self.dev_mode:
                logger.info("Mail dev mode: %s to %s not sent (SMTP not configured)", kind, redact_email(recipient.email))
                return True
            logger.error("Mail not sent: %s to %s (SMTP not configured)", kind, redact_email(recipient.email))
            return False

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = recipient.email
        msg.set_content(body)

        try:
            context = ssl.create_default_context()
            if self.smtp_use_tls:
                with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, context=context, timeout=self.timeout) as server:
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.send_message(msg)
        except (smtplib.SMTPException, ssl.SSLError, OSError) as exc:
            logger.error(
                "Mail delivery failed: %s to %s (%s: %s)",
                kind,
                redact_email(recipient.email),
                type(exc).__name__,
                exc,
            )
            return False

        logger.info("Mail sent: %s to %s", kind, redact_email(recipient.email))
        return True

    def compose(self, recipient: CredentialRecord, kind: MessageKind, token: str) -> tuple[str, str]:
        """Return (subject, plain-text body) for a message kind."""
        name = recipient.first_name or "there"
        if kind is MessageKind.password_reset:
            link = f"{self.client_url}/reset-password?token={token}"
            return (
                f"Password Reset Request - {self.from_name}",
                f"Hi {name},\n\n"
                f"You requested a password reset for your {self.from_name} account.\n"
                f"Reset your password here:\n\n{link}\n\n"
                f"This link will expire in {describe_duration(self.reset_ttl_seconds)}. "
                "If you didn't request this, ignore this email.\n",
            )
        link = f"{self.client_url}/verify-email?token={token}"
        if kind is MessageKind.welcome:
            return (
                f"Welcome to {self.from_name} - Verify Your Email",
                f"Hi {name},\n\n"
                f"Thank you for registering with {self.from_name}. "
                f"Please verify your email address:\n\n{link}\n",
            )
        return (
            f"Email Verification Reminder - {self.from_name}",
            f"Hi {name},\n\n"
            "We noticed that you haven't verified your email address yet. "
            f"Please verify it here:\n\n{link}\n",
        )
