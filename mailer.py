"""Outgoing email via SMTP."""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Protocol

from errors import UpstreamFailure

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    def send(self, to_email: str, subject: str, html: str, text: str, to_name: str | None = None) -> None: ...


class SMTPMailer:
    """Sends mail through an SMTP relay."""

    def __init__(self, host: str, port: int = 587, username: str = '', password: str = '',
                 use_tls: bool = True, from_email: str = '', from_name: str = 'Alumni Association'):
        self.smtp_host = host
        self.smtp_port = port
        self.smtp_username = username
        self.smtp_password = password
        self.smtp_use_tls = use_tls
        self.from_email = from_email or username
        self.from_name = from_name

    def send(self, to_email: str, subject: str, html: str, text: str, to_name: str | None = None) -> None:
        if not all([self.smtp_host, self.from_email]):
            raise UpstreamFailure("SMTP configuration incomplete. Check environment variables.")

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{self.from_name} <{self.from_email}>"
        msg['To'] = f"{to_name} <{to_email}>" if to_name else to_email
        msg.attach(MIMEText(text, 'plain'))
        msg.attach(MIMEText(html, 'html'))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                if self.smtp_use_tls:
                    server.starttls()
                if self.smtp_username and self.smtp_password:
                    server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise UpstreamFailure(f"Failed to send email: {e}") from e


class LogMailer:
    """Logs messages instead of sending them; used when no SMTP host is configured."""

    def send(self, to_email: str, subject: str, html: str, text: str, to_name: str | None = None) -> None:
        logger.info(f"[mail] to={to_email} subject={subject!r}")


def mailer_from_settings(settings) -> Mailer:
    if not settings.SMTP_HOST:
        logger.warning("SMTP_HOST is not set; birthday wishes will only be logged")
        return LogMailer()
    return SMTPMailer(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USERNAME,
        password=settings.SMTP_PASSWORD,
        use_tls=settings.SMTP_USE_TLS,
        from_email=settings.FROM_EMAIL,
        from_name=settings.FROM_NAME,
    )


def birthday_message(full_name: str, batch_year: str) -> tuple[str, str, str]:
    """Return (subject, html, text) for a birthday greeting."""
    first_name = full_name.split(' ')[0]
    subject = f"Happy Birthday, {first_name}!"
    text = (
        f"Dear {full_name},\n\n"
        f"Wishing you a very happy birthday from all your friends in the alumni community "
        f"and the Batch of {batch_year}!\n\n"
        "Have a wonderful year ahead.\n"
    )
    safe_name = escape(full_name)
    safe_first = escape(first_name)
    safe_batch = escape(batch_year)
    html = f"""
    <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #d97706;">Happy Birthday, {safe_first}!</h2>
                <p>Dear {safe_name},</p>
                <p>Wishing you a very happy birthday from all your friends in the alumni
                community and the <strong>Batch of {safe_batch}</strong>!</p>
                <p>Have a wonderful year ahead.</p>
                <hr style="border: none; border-top: 1px solid #eee; margin: 30px 0;">
                <p style="color: #666; font-size: 0.9em;">
                    This is an automated message, please do not reply.
                </p>
            </div>
        </body>
    </html>
    """
    return subject, html, text
