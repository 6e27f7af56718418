import hashlib
import logging
import secrets
from typing import Tuple

from app.core.exceptions import AlreadyVerifiedError, NotFoundError
from app.models.waitlist_entry import EntryStatus, WaitlistEntry
from app.services.waitlist_store import EntryId, WaitlistStore

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def issue_token() -> str:
    """256-bit random verification token, hex encoded."""
    return secrets.token_hex(TOKEN_BYTES)


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class VerificationService:
    """Single-use email verification tokens.

    An entry moves UNVERIFIED(token) -> VERIFIED exactly once. The move is a
    conditional UPDATE on the token, so two concurrent requests with the same
    token cannot both observe a first-time verification.
    """

    def __init__(self, store: WaitlistStore):
        self.store = store

    def consume(self, token: str) -> Tuple[WaitlistEntry, bool]:
        """Verify the entry owning ``token``.

        Returns ``(entry, already_verified)``. A replayed link whose token was
        already consumed answers ``already_verified=True``; an unknown token
        raises ``NotFoundError``.
        """
        if not token:
            raise NotFoundError("Invalid or expired verification token")

        entry = self.store.find_by_token(token)
        if entry is None:
            replayed = self.store.find_by_consumed_digest(token_digest(token))
            if replayed is not None:
                return replayed, True
            raise NotFoundError("Invalid or expired verification token")

        if entry.email_verified:
            return entry, True

        updated = self.store.update_fields(
            entry.id,
            {
                "email_verified": True,
                "status": EntryStatus.APPROVED,
                "verification_token": None,
                "consumed_token_digest": token_digest(token),
            },
            verification_token=token,
            email_verified=False,
        )
        if updated is None:
            # Lost the race to a concurrent request with the same token
            current = self.store.find_by_id(entry.id)
            if current is None:
                raise NotFoundError("Invalid or expired verification token")
            return current, True

        logger.info("Email verified for entry %s", updated.id)
        return updated, False

    def reissue(self, entry_id: EntryId) -> Tuple[WaitlistEntry, str]:
        """Token to (re)send for an unverified entry.

        An outstanding token is reused so an email already in flight stays
        valid; a fresh one is written only when none exists.
        """
        entry = self.store.find_by_id(entry_id)
        if entry is None:
            raise NotFoundError("Waitlist entry not found")
        if entry.email_verified:
            raise AlreadyVerifiedError("Email is already verified")
        if entry.verification_token:
            return entry, entry.verification_token

        token = issue_token()
        updated = self.store.update_fields(
            entry.id,
            {"verification_token": token},
            verification_token=None,
            email_verified=False,
        )
        if updated is not None:
            return updated, token

        # Someone else changed the entry between the read and the write
        current = self.store.find_by_id(entry.id)
        if current is None:
            raise NotFoundError("Waitlist entry not found")
        if current.email_verified:
            raise AlreadyVerifiedError("Email is already verified")
        return current, current.verification_token
