# Import all models here for Alembic
from app.models.waitlist_entry import WaitlistEntry, EntryStatus, WaitlistRole

__all__ = [
    "WaitlistEntry",
    "EntryStatus",
    "WaitlistRole",
]
