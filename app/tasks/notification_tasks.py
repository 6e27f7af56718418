import logging
from typing import Dict, Any

from app.core.celery_app import celery_app
from app.core.config import settings
from app.core.exceptions import ExternalServiceError
from app.services.email_service import EmailService
from app.utils.audit import email_hash

logger = logging.getLogger(__name__)


@celery_app.task
def send_verification_email(email: str, token: str, name: str) -> Dict[str, Any]:
    """Deliver a verification email off the request path.

    Failures are logged and reported in the task result; the entry that
    triggered the email is never touched.
    """
    recipient = email_hash(email)
    try:
        logger.info("📧 Sending verification email to %s", recipient)
        receipt = EmailService.from_settings(settings).send_verification_email(email, token, name)
        return {
            "status": "sent",
            "email": email,
            "id": receipt.get("id"),
        }

    except ExternalServiceError as e:
        logger.error("❌ Failed to send verification email to %s: %s", recipient, e.message)
        return {
            "status": "failed",
            "email": email,
            "error": e.message,
        }


def queue_verification_email(email: str, token: str, name: str) -> None:
    """Hand the verification email to the worker without waiting for delivery."""
    send_verification_email.delay(email, token, name)
    logger.info("📧 Queued verification email for %s", email_hash(email))
