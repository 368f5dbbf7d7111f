"""
Email Service

Transactional mail over SMTP. With EMAIL_ENABLED off (development, tests)
messages are logged instead of sent.
"""

import html
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from collections import deque
from typing import Deque, Optional
from urllib.parse import urlencode
from core.config import settings
import logging

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending emails"""

    def __init__(self):
        self.smtp_server = settings.SMTP_SERVER
        self.smtp_port = settings.SMTP_PORT
        self.smtp_username = settings.SMTP_USERNAME
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.FROM_EMAIL
        self.from_name = settings.FROM_NAME
        self.enabled = settings.EMAIL_ENABLED
        # Messages handed to send_email while disabled; lets tests read reset links
        self.outbox: Deque[dict] = deque(maxlen=50)

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email.

        Returns True if sent successfully, False otherwise.
        """
        if not self.enabled:
            logger.info(f"Email disabled, would send to {to_email}: {subject}")
            self.outbox.append({"to": to_email, "subject": subject, "text": text_content, "html": html_content})
            return False

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{self.from_name} <{self.from_email}>"
        msg['To'] = to_email
        if text_content:
            msg.attach(MIMEText(text_content, 'plain'))
        msg.attach(MIMEText(html_content, 'html'))

        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=10) as server:
                if self.smtp_username and self.smtp_password:
                    server.starttls()
                    server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error sending email to {to_email}: {str(e)}")
            return False

        return True

    def password_reset_link(self, token: str) -> str:
        return f"{settings.WEB_APP_BASE_URL.rstrip('/')}/reset-password?{urlencode({'token': token})}"

    def send_password_reset_email(self, to_email: str, first_name: Optional[str], token: str) -> bool:
        link = self.password_reset_link(token)
        minutes = settings.PASSWORD_RESET_EXPIRE_MINUTES
        greeting = f"Hi {first_name}," if first_name else "Hi,"

        html_content = "\n".join([
            f"<p>{html.escape(greeting)}</p>",
            "<p>Someone asked to reset the password for your Progress2Win account.</p>",
            f'<p><a href="{link}">Choose a new password</a></p>',
            f"<p>The link works once and expires in {minutes} minutes. "
            "If you did not ask for this, ignore this email.</p>",
        ])
        text_content = "\n".join([
            greeting,
            "",
            "Someone asked to reset the password for your Progress2Win account.",
            f"Choose a new password: {link}",
            "",
            f"The link works once and expires in {minutes} minutes. "
            "If you did not ask for this, ignore this email.",
        ])

        return self.send_email(to_email, "Reset your Progress2Win password", html_content, text_content)


# Singleton instance
email_service = EmailService()
