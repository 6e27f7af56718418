import csv
import io
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.core.exceptions import (
    DuplicateEmailError,
    DuplicateKeyError,
    DuplicateWalletError,
    InvalidStatusError,
    InvalidUrlFormatError,
    NotFoundError,
    NotVerifiedError,
    PostUrlInUseError,
    ValidationError,
)
from app.models.waitlist_entry import EntryStatus, WaitlistEntry, WaitlistRole
from app.services.email_service import EmailService
from app.services.verification_service import VerificationService, issue_token
from app.services.waitlist_store import EntryId, WaitlistStore
from app.utils.audit import audit
from app.utils.post_url import canonicalize_post_url

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
WALLET_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
X_HANDLE_RE = re.compile(r"^[A-Za-z0-9_]{1,15}$")

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
NOTE_MAX_LENGTH = 500

VALID_ROLES = [r.value for r in WaitlistRole]
VALID_STATUSES = [s.value for s in EntryStatus]

CSV_HEADER = ["Name", "Email", "Wallet Address", "Roles", "Status", "Email Verified", "Created At"]
CSV_MISSING_WALLET = "N/A"

# (to, token, name) -> None; must not block on delivery
EmailDispatcher = Callable[[str, str, str], None]


# --- record helpers -------------------------------------------------------

def is_verified(entry: WaitlistEntry) -> bool:
    return bool(entry.email_verified)


def is_approved(entry: WaitlistEntry) -> bool:
    return entry.status == EntryStatus.APPROVED


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def to_safe_dict(entry: WaitlistEntry) -> Dict[str, Any]:
    """Public projection of an entry; the verification token never leaves the service."""
    return {
        "id": str(entry.id),
        "name": entry.name,
        "email": entry.email,
        "walletAddress": entry.wallet_address,
        "roles": list(entry.roles or []),
        "note": entry.note,
        "xHandle": entry.x_handle,
        "emailVerified": bool(entry.email_verified),
        "posted": bool(entry.posted),
        "postUrl": entry.post_url,
        "status": entry.status.value,
        "createdAt": _iso(entry.created_at),
        "updatedAt": _iso(entry.updated_at),
    }


def parse_status(status: Optional[str]) -> EntryStatus:
    if isinstance(status, EntryStatus):
        return status
    try:
        return EntryStatus(status)
    except ValueError:
        raise InvalidStatusError(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")


# --- field normalisation --------------------------------------------------

def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        raise ValidationError(f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters")
    return name


def normalize_email(email: Optional[str]) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address format")
    return email


def normalize_wallet(wallet_address: Optional[str]) -> Optional[str]:
    wallet_address = _optional_text(wallet_address)
    if wallet_address is None:
        return None
    if not WALLET_RE.match(wallet_address):
        raise ValidationError("Invalid wallet address format")
    return wallet_address.lower()


def normalize_roles(roles: Optional[Iterable[str]]) -> List[str]:
    roles = [str(r).strip() for r in (roles or [])]
    if not roles:
        raise ValidationError("At least one role must be selected")
    invalid = [r for r in roles if r not in VALID_ROLES]
    if invalid:
        raise ValidationError(f"Invalid roles: {', '.join(invalid)}")
    # de-duplicate, keep submission order
    return list(dict.fromkeys(roles))


def normalize_note(note: Optional[str]) -> Optional[str]:
    note = _optional_text(note)
    if note is not None and len(note) > NOTE_MAX_LENGTH:
        raise ValidationError(f"Note cannot exceed {NOTE_MAX_LENGTH} characters")
    return note


def normalize_x_handle(x_handle: Optional[str]) -> Optional[str]:
    x_handle = _optional_text(x_handle)
    if x_handle is None:
        return None
    x_handle = x_handle.lstrip("@")
    if not X_HANDLE_RE.match(x_handle):
        raise ValidationError(
            "Invalid X handle format. Use only letters, numbers, and underscores (1-15 characters)"
        )
    return x_handle.lower()


class WaitlistService:
    """Waitlist entry lifecycle.

    Composes the entry store, the verification protocol and the email
    collaborators. Everything it needs is handed in by the caller, see
    ``app.core.deps``.
    """

    def __init__(
        self,
        store: WaitlistStore,
        verification: VerificationService,
        email_service: EmailService,
        dispatch_email: EmailDispatcher,
    ):
        self.store = store
        self.verification = verification
        self.email = email_service
        self.dispatch_email = dispatch_email

    # --- public path ------------------------------------------------------

    def submit(
        self,
        name: str,
        email: str,
        roles: Iterable[str],
        wallet_address: Optional[str] = None,
        note: Optional[str] = None,
        x_handle: Optional[str] = None,
    ) -> Dict[str, str]:
        normalized_email = normalize_email(email)
        token = issue_token()
        entry = WaitlistEntry(
            name=normalize_name(name),
            email=normalized_email,
            wallet_address=normalize_wallet(wallet_address),
            roles=normalize_roles(roles),
            note=normalize_note(note),
            x_handle=normalize_x_handle(x_handle),
            email_verified=False,
            verification_token=token,
            posted=False,
            status=EntryStatus.PENDING,
        )

        try:
            self.store.insert(entry)
        except DuplicateKeyError as e:
            audit("WAITLIST_SUBMIT", email=normalized_email, result="duplicate", field=e.field)
            if e.field == "wallet_address":
                raise DuplicateWalletError("This wallet address is already on the waitlist")
            if e.field in (None, "email"):
                raise DuplicateEmailError("This email is already on the waitlist")
            raise

        audit("WAITLIST_SUBMIT", email=entry.email, entry_id=entry.id, result="created")
        logger.info("New waitlist entry %s", entry.id)

        # Best effort: the entry stands even if the email never goes out
        try:
            self.dispatch_email(entry.email, token, entry.name)
        except Exception as e:
            logger.error("Failed to queue verification email for entry %s: %s", entry.id, e)

        return {"id": str(entry.id), "email": entry.email}

    def verify_by_token(self, token: str) -> Dict[str, Any]:
        entry, already_verified = self.verification.consume(token)
        audit(
            "EMAIL_VERIFY",
            email=entry.email,
            entry_id=entry.id,
            result="already_verified" if already_verified else "verified",
        )
        return {"already_verified": already_verified, "email": entry.email, "id": str(entry.id)}

    def record_post_url(self, entry_id: EntryId, raw_url: str) -> WaitlistEntry:
        canonical = canonicalize_post_url(raw_url)
        if canonical is None:
            raise InvalidUrlFormatError("Invalid X post URL format")

        entry = self.store.find_by_id(entry_id)
        if entry is None:
            raise NotFoundError("Waitlist entry not found")
        if not is_verified(entry):
            raise NotVerifiedError("Please verify your email first")

        owner = self.store.find_by_post_url(canonical)
        if owner is not None:
            if owner.id != entry.id:
                raise PostUrlInUseError("This post has already been used by another user. Please create a new post.")
            # Resubmitted by its owner
            return owner

        try:
            updated = self.store.update_fields(entry.id, {"posted": True, "post_url": canonical})
        except DuplicateKeyError as e:
            if e.field == "post_url":
                raise PostUrlInUseError("This post has already been used by another user. Please create a new post.")
            raise
        if updated is None:
            raise NotFoundError("Waitlist entry not found")

        audit("POST_URL_SAVED", email=updated.email, entry_id=updated.id)
        return updated

    # --- admin path -------------------------------------------------------

    def list_for_admin(
        self,
        page: int = 1,
        page_size: int = 50,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        if page < 1 or page_size < 1:
            raise ValidationError("page and limit must be positive integers")
        status_filter = parse_status(status) if status else None
        search = _optional_text(search)

        entries, total = self.store.paginated_query(
            status=status_filter, search=search, page=page, page_size=page_size
        )

        status_counts = {s: 0 for s in VALID_STATUSES}
        status_counts.update(self.store.count_grouped_by("status"))
        role_counts = {r: 0 for r in VALID_ROLES}
        role_counts.update(self.store.count_grouped_by("roles"))

        return {
            "entries": [to_safe_dict(e) for e in entries],
            "pagination": {
                "page": page,
                "limit": page_size,
                "total": total,
                "pages": math.ceil(total / page_size),
            },
            "status_counts": status_counts,
            "role_counts": role_counts,
        }

    def set_status(self, entry_id: EntryId, status: str) -> WaitlistEntry:
        new_status = parse_status(status)
        updated = self.store.update_fields(entry_id, {"status": new_status})
        if updated is None:
            raise NotFoundError("Waitlist entry not found")
        audit("ADMIN_STATUS_UPDATE", email=updated.email, entry_id=updated.id, status=new_status.value)
        return updated

    def remove(self, entry_id: EntryId) -> None:
        if not self.store.delete(entry_id):
            raise NotFoundError("Waitlist entry not found")
        audit("ADMIN_DELETE", entry_id=str(entry_id))

    def resend_verification(self, entry_id: EntryId) -> Dict[str, Any]:
        entry, token = self.verification.reissue(entry_id)
        # Synchronous: the admin sees delivery failures
        receipt = self.email.send_verification_email(entry.email, token, entry.name)
        audit("ADMIN_RESEND_VERIFICATION", email=entry.email, entry_id=entry.id)
        return receipt

    def export_csv(self) -> bytes:
        entries = self.store.all_entries()
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for entry in entries:
            writer.writerow([
                entry.name,
                entry.email,
                entry.wallet_address or CSV_MISSING_WALLET,
                ";".join(entry.roles or []),
                entry.status.value,
                "true" if entry.email_verified else "false",
                _iso(entry.created_at),
            ])
        audit("ADMIN_EXPORT", count=len(entries))
        return buffer.getvalue().encode("utf-8")

    def statistics(self) -> Dict[str, int]:
        counts = self.store.summary_counts()
        counts["unverified"] = counts["total"] - counts["verified"]
        return counts
