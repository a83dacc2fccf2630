"""
Email Service for Secure Access.
Handles sending transactional emails via SMTP.
"""

import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from access_core.errors import EmailDeliveryError

logger = logging.getLogger(__name__)

PRODUCT_NAME = "Secure Access"


def _wrap_html(title: str, greeting_name: str, paragraphs: list[str]) -> str:
    body = "\n".join(f"        <p>{paragraph}</p>" for paragraph in paragraphs)
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>{escape(title)}</h2>
        <p>Hello {escape(greeting_name)},</p>
{body}
        <p>Best regards,<br>The {PRODUCT_NAME} Team</p>
</div>
"""


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(self):
        self.enabled = os.getenv("EMAIL_ENABLED", "false").lower() == "true"
        self.smtp_host = os.getenv("SMTP_HOST", "localhost")
        self.smtp_port = int(os.getenv("SMTP_PORT", "587"))
        self.smtp_user = os.getenv("SMTP_USER", "")
        self.smtp_password = os.getenv("SMTP_PASSWORD", "")
        self.use_tls = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
        self.from_email = os.getenv("SMTP_FROM", "noreply@secure-access.local")
        self.from_name = os.getenv("SMTP_FROM_NAME", PRODUCT_NAME)
        self.timeout = int(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))

    def send_email(
        self, to_email: str, subject: str, body_text: str, body_html: str | None = None
    ) -> bool:
        """
        Send an email.

        Args:
            to_email: Recipient email address
            subject: Email subject
            body_text: Plain text body
            body_html: Optional HTML body

        Returns:
            True if sent, False when email delivery is disabled

        Raises:
            EmailDeliveryError: If the SMTP exchange fails
        """
        if not self.enabled:
            logger.warning(f"[EMAIL] Email disabled. Would send to {to_email}: {subject}")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(body_text, "plain", "utf-8"))
        if body_html:
            msg.attach(MIMEText(body_html, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user:
                    server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, to_email, msg.as_string())
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"[EMAIL] Authentication failed: {e}")
            raise EmailDeliveryError("Email authentication failed") from e
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[EMAIL] SMTP error: {e}")
            raise EmailDeliveryError("Email delivery failed") from e

        logger.info(f"[EMAIL] Sent successfully to {to_email}: {subject}")
        return True

    def send_welcome_email(self, to_email: str, name: str) -> bool:
        subject = f"Welcome to {PRODUCT_NAME}"
        body_text = f"Welcome to {PRODUCT_NAME}, {name}! Your account has been created successfully."
        body_html = _wrap_html(
            subject,
            name,
            [
                "Your account has been created successfully.",
                "You can now log in to the system using your email and password.",
            ],
        )
        return self.send_email(to_email, subject, body_text, body_html)

    def send_verification_email(self, to_email: str, name: str, verify_url: str) -> bool:
        subject = "Verify your email address"
        body_text = f"Hello {name}, please verify your email address by visiting: {verify_url}"
        body_html = _wrap_html(
            subject,
            name,
            [
                "Please verify your email address by clicking the link below:",
                f'<a href="{escape(verify_url)}">Verify Email</a>',
            ],
        )
        return self.send_email(to_email, subject, body_text, body_html)

    def send_password_reset_email(self, to_email: str, name: str, reset_url: str) -> bool:
        subject = "Password Reset Request"
        body_text = (
            f"Hello {name}, you requested a password reset. Visit {reset_url} to choose a new "
            "password. The link expires in 1 hour. If you did not request this, ignore this email."
        )
        body_html = _wrap_html(
            subject,
            name,
            [
                "You requested a password reset. Click the link below to choose a new password:",
                f'<a href="{escape(reset_url)}">Reset Password</a>',
                "This link expires in 1 hour. If you did not request this, ignore this email.",
            ],
        )
        return self.send_email(to_email, subject, body_text, body_html)

    def send_notification_email(self, to_email: str, name: str, subject: str, message: str) -> bool:
        body_html = _wrap_html(subject, name, [escape(message)])
        return self.send_email(to_email, subject, message, body_html)


# Global instance
email_service = EmailService()
