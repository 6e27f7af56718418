import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from app.core.config import settings

logger = logging.getLogger(__name__)

# SQLite-specific configuration
if settings.DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False}  # Allow SQLite to work with FastAPI
    )

    # Apply PRAGMAs per connection
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        # Concurrent readers alongside the single writer
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA synchronous=NORMAL;")
        # Wait for the writer lock instead of failing immediately
        cursor.execute("PRAGMA busy_timeout=5000;")
        cursor.close()
else:
    # Postgres or others
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=5,
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """Create missing tables (no-op for existing ones)."""
    # Register models on Base.metadata
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def dispose_engine() -> None:
    """Release pooled connections; called once requests have drained."""
    engine.dispose()
    logger.info("Database connection pool disposed")
