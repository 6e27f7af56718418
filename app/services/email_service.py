import html
import logging
from typing import Any, Dict

import resend

from app.core.config import Settings
from app.core.exceptions import ExternalServiceError, ServiceUnavailableError
from app.utils.audit import email_hash

logger = logging.getLogger(__name__)


class EmailService:
    def __init__(self, api_key: str, sender: str, frontend_url: str):
        self.api_key = api_key
        self.sender = sender
        self.frontend_url = frontend_url.rstrip("/")
        if api_key:
            resend.api_key = api_key
        else:
            logger.warning("RESEND_API_KEY not set. Email sending is disabled.")

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailService":
        return cls(
            api_key=settings.RESEND_API_KEY,
            sender=settings.EMAIL_FROM,
            frontend_url=settings.FRONTEND_URL,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def verification_url(self, token: str) -> str:
        return f"{self.frontend_url}/verify-email?token={token}"

    def send_verification_email(self, to: str, token: str, name: str) -> Dict[str, Any]:
        """Send the verification link and return the provider receipt.

        Raises ``ServiceUnavailableError`` when email is not configured and
        ``ExternalServiceError`` when the provider rejects the send.
        """
        if not self.is_configured:
            raise ServiceUnavailableError("Email service is not configured")

        link = self.verification_url(token)
        subject = "Verify your email - Waitlist"
        body = f"""
        <div style='font-family: Inter, Arial, sans-serif; line-height:1.6;'>
            <h2>Hi {html.escape(name)},</h2>
            <p>Thanks for joining the waitlist. Confirm your email address to secure your spot:</p>
            <p style='margin:24px 0'>
                <a href='{link}' style='background:#111827;color:#ffffff;padding:12px 20px;border-radius:6px;text-decoration:none'>Verify email</a>
            </p>
            <p>Or paste this link into your browser:<br>{link}</p>
            <p>If you didn't sign up, you can ignore this email.</p>
        </div>
        """
        try:
            receipt = resend.Emails.send({
                "from": self.sender,
                "to": [to],
                "subject": subject,
                "html": body,
            })
        except Exception as e:
            logger.error("Verification email to %s failed: %s", email_hash(to), e)
            raise ExternalServiceError("Failed to send verification email", details=str(e))
        logger.info("Verification email sent to %s", email_hash(to))
        return dict(receipt or {})
