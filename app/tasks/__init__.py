# Tasks package
from .notification_tasks import send_verification_email, queue_verification_email

__all__ = [
    "send_verification_email",
    "queue_verification_email",
]
