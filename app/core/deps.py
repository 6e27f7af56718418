import json
import logging
from typing import Dict, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.security import WalletSignatureVerifier
from app.services.email_service import EmailService
from app.services.verification_service import VerificationService
from app.services.waitlist_service import EmailDispatcher, WaitlistService
from app.services.waitlist_store import WaitlistStore
from app.tasks.notification_tasks import queue_verification_email
from app.utils.audit import audit

logger = logging.getLogger(__name__)


def get_email_service() -> EmailService:
    return EmailService.from_settings(settings)


def get_email_dispatcher() -> EmailDispatcher:
    return queue_verification_email


def get_waitlist_service(
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
    dispatch_email: EmailDispatcher = Depends(get_email_dispatcher),
) -> WaitlistService:
    store = WaitlistStore(db)
    return WaitlistService(
        store=store,
        verification=VerificationService(store),
        email_service=email_service,
        dispatch_email=dispatch_email,
    )


def get_admin_verifier() -> WalletSignatureVerifier:
    return WalletSignatureVerifier(settings.ADMIN_WALLET_ADDRESS)


async def get_admin_credentials(request: Request) -> Dict[str, Optional[str]]:
    """Read walletAddress/signature/message from the JSON body, else the query string.

    GET /admin/stats may carry its proof either way.
    """
    data: dict = {}
    body = await request.body()
    if body:
        try:
            parsed = json.loads(body)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            data = parsed
    if not data:
        data = dict(request.query_params)
    # Non-string values count as missing
    return {
        key: value if isinstance(value, str) else None
        for key, value in (
            ("wallet_address", data.get("walletAddress")),
            ("signature", data.get("signature")),
            ("message", data.get("message")),
        )
    }


def get_current_admin(
    credentials: Dict[str, Optional[str]] = Depends(get_admin_credentials),
    verifier: WalletSignatureVerifier = Depends(get_admin_verifier),
) -> str:
    """Ensure the request is signed by the admin wallet; returns its address."""
    try:
        return verifier.verify(
            credentials["wallet_address"],
            credentials["signature"],
            credentials["message"],
        )
    except (AuthenticationError, AuthorizationError) as e:
        audit(
            "ADMIN_AUTH_FAILED",
            wallet=(credentials["wallet_address"] or "").lower() or None,
            reason=e.message,
        )
        raise
