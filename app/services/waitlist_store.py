import uuid
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import case, desc, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import DuplicateKeyError
from app.models.waitlist_entry import EntryStatus, WaitlistEntry, utcnow

EntryId = Union[str, uuid.UUID]

UNIQUE_FIELDS = ("email", "wallet_address", "verification_token", "post_url")
GROUPABLE_FIELDS = ("status", "email_verified", "posted", "roles")


def _as_uuid(entry_id: EntryId) -> Optional[uuid.UUID]:
    if isinstance(entry_id, uuid.UUID):
        return entry_id
    try:
        return uuid.UUID(str(entry_id))
    except (TypeError, ValueError):
        return None


def _conflicting_field(exc: IntegrityError) -> Optional[str]:
    # SQLite: "UNIQUE constraint failed: waitlist_entries.email"
    # Postgres: 'duplicate key value violates unique constraint "uq_waitlist_entries_email"'
    text = str(exc.orig)
    for field in UNIQUE_FIELDS:
        if f"uq_waitlist_entries_{field}" in text or f"waitlist_entries.{field}" in text:
            return field
    return None


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class WaitlistStore:
    """Persistence for waitlist entries.

    Uniqueness lives in the table constraints, so a racing duplicate write
    surfaces here as ``DuplicateKeyError`` instead of needing a lock. All
    mutations are single statements followed by a commit.
    """

    def __init__(self, db: Session):
        self.db = db

    def insert(self, entry: WaitlistEntry) -> uuid.UUID:
        self.db.add(entry)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateKeyError(_conflicting_field(exc), str(exc.orig))
        self.db.refresh(entry)
        return entry.id

    def find_by_id(self, entry_id: EntryId) -> Optional[WaitlistEntry]:
        key = _as_uuid(entry_id)
        if key is None:
            return None
        return self.db.query(WaitlistEntry).filter(WaitlistEntry.id == key).first()

    def find_by_email(self, email: str) -> Optional[WaitlistEntry]:
        return self.db.query(WaitlistEntry).filter(WaitlistEntry.email == email.strip().lower()).first()

    def find_by_token(self, token: str) -> Optional[WaitlistEntry]:
        if not token:
            return None
        return self.db.query(WaitlistEntry).filter(WaitlistEntry.verification_token == token).first()

    def find_by_consumed_digest(self, digest: str) -> Optional[WaitlistEntry]:
        if not digest:
            return None
        return self.db.query(WaitlistEntry).filter(WaitlistEntry.consumed_token_digest == digest).first()

    def find_by_post_url(self, post_url: str) -> Optional[WaitlistEntry]:
        if not post_url:
            return None
        return self.db.query(WaitlistEntry).filter(WaitlistEntry.post_url == post_url).first()

    def update_fields(self, entry_id: EntryId, fields: Dict[str, Any], **conditions: Any) -> Optional[WaitlistEntry]:
        """Apply ``fields`` in one conditional UPDATE.

        ``conditions`` are extra column equalities the row must still satisfy
        (``None`` compiles to IS NULL). Returns the refreshed entry, or
        ``None`` when no row matched.
        """
        key = _as_uuid(entry_id)
        if key is None:
            return None
        values = dict(fields)
        values["updated_at"] = utcnow()

        query = self.db.query(WaitlistEntry).filter(WaitlistEntry.id == key)
        for column, expected in conditions.items():
            query = query.filter(getattr(WaitlistEntry, column) == expected)

        try:
            matched = query.update(values, synchronize_session=False)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateKeyError(_conflicting_field(exc), str(exc.orig))

        if not matched:
            return None
        return self.find_by_id(key)

    def delete(self, entry_id: EntryId) -> bool:
        key = _as_uuid(entry_id)
        if key is None:
            return False
        deleted = self.db.query(WaitlistEntry).filter(WaitlistEntry.id == key).delete(synchronize_session=False)
        self.db.commit()
        return deleted > 0

    def paginated_query(
        self,
        status: Optional[Union[str, EntryStatus]] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[WaitlistEntry], int]:
        """Newest-first page of entries plus the total matching count.

        ``search`` is a case-insensitive substring match on name OR email.
        """
        query = self.db.query(WaitlistEntry)

        if status:
            query = query.filter(WaitlistEntry.status == EntryStatus(status))

        if search:
            like = f"%{_escape_like(search)}%"
            query = query.filter(
                or_(
                    WaitlistEntry.name.ilike(like, escape="\\"),
                    WaitlistEntry.email.ilike(like, escape="\\"),
                )
            )

        total = query.count()
        entries = (
            query.order_by(desc(WaitlistEntry.created_at), desc(WaitlistEntry.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return entries, total

    def all_entries(self) -> List[WaitlistEntry]:
        return self.db.query(WaitlistEntry).order_by(desc(WaitlistEntry.created_at), desc(WaitlistEntry.id)).all()

    def count_grouped_by(self, field: str) -> Dict[Any, int]:
        if field not in GROUPABLE_FIELDS:
            raise ValueError(f"Cannot group by {field}")

        if field == "roles":
            # Each role of an entry counts once in its own bucket
            counts: Counter = Counter()
            for (roles,) in self.db.query(WaitlistEntry.roles).all():
                counts.update(set(roles or []))
            return dict(counts)

        column = getattr(WaitlistEntry, field)
        rows = self.db.query(column, func.count(WaitlistEntry.id)).group_by(column).all()
        result = {}
        for value, count in rows:
            if isinstance(value, EntryStatus):
                value = value.value
            result[value] = int(count)
        return result

    def summary_counts(self) -> Dict[str, int]:
        """Total, verified and per-status counts from a single aggregate query."""
        row = self.db.query(
            func.count(WaitlistEntry.id),
            func.sum(case((WaitlistEntry.email_verified == True, 1), else_=0)),  # noqa: E712
            func.sum(case((WaitlistEntry.status == EntryStatus.PENDING, 1), else_=0)),
            func.sum(case((WaitlistEntry.status == EntryStatus.APPROVED, 1), else_=0)),
            func.sum(case((WaitlistEntry.status == EntryStatus.REJECTED, 1), else_=0)),
        ).one()
        total, verified, pending, approved, rejected = (int(v or 0) for v in row)
        return {
            "total": total,
            "verified": verified,
            "pending": pending,
            "approved": approved,
            "rejected": rejected,
        }
