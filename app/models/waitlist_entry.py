import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Boolean, Index, UniqueConstraint, Enum as SQLEnum
from app.core.database import Base
from app.core.types import GUID, StringList


class EntryStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WaitlistRole(enum.Enum):
    DEVELOPER = "developer"
    COMMUNITY_BUILDER = "community_builder"
    INVESTOR = "investor"
    CONTENT_CREATOR = "content_creator"
    EARLY_ADOPTER = "early_adopter"
    OTHER = "other"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    email = Column(String(320), nullable=False)
    wallet_address = Column(String(42), nullable=True)  # lowercased 0x address
    roles = Column(StringList(), nullable=False, default=list)
    note = Column(String(500), nullable=True)
    x_handle = Column(String(15), nullable=True, index=True)

    # Email verification
    email_verified = Column(Boolean, nullable=False, default=False)
    verification_token = Column(String(64), nullable=True)
    # sha256 of the token that verified this entry; the token itself is cleared
    consumed_token_digest = Column(String(64), nullable=True, index=True)

    # Social promotion
    posted = Column(Boolean, nullable=False, default=False)
    post_url = Column(String(255), nullable=True)

    status = Column(
        SQLEnum(EntryStatus, name="waitlist_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=EntryStatus.PENDING,
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # NULLs are distinct under UNIQUE on both SQLite and Postgres, which gives
    # sparse uniqueness for the optional columns.
    __table_args__ = (
        UniqueConstraint('email', name='uq_waitlist_entries_email'),
        UniqueConstraint('wallet_address', name='uq_waitlist_entries_wallet_address'),
        UniqueConstraint('verification_token', name='uq_waitlist_entries_verification_token'),
        UniqueConstraint('post_url', name='uq_waitlist_entries_post_url'),
        Index('ix_waitlist_entries_status_created', 'status', 'created_at'),
        Index('ix_waitlist_entries_verified_status', 'email_verified', 'status'),
    )
