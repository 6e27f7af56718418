#!/usr/bin/env python3
"""
Initialize the waitlist database (create missing tables)
"""
import logging
import sys
import os

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.core.config import settings
from app.core.database import SessionLocal, create_tables
from app.services.waitlist_store import WaitlistStore

logger = logging.getLogger("init_db")


def init_database():
    """Create the waitlist tables and report what is already stored"""
    logger.info("Creating database tables on %s", settings.DATABASE_URL)
    create_tables()

    session = SessionLocal()
    try:
        counts = WaitlistStore(session).summary_counts()
        logger.info("Tables ready: %s entries (%s verified)", counts["total"], counts["verified"])
    finally:
        session.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    init_database()
