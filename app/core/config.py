from pydantic_settings import BaseSettings
from typing import List, Optional
from pathlib import Path


class Settings(BaseSettings):
    PROJECT_NAME: str = "Waitlist API"
    API_PREFIX: str = "/api"

    # Database - defaults to a local SQLite file, override with environment variable for production
    DATABASE_URL: str = "sqlite:///./waitlist.db"
    # Create tables on startup when migrations are not used (local/dev)
    AUTO_CREATE_TABLES: bool = True

    # Admin wallet (single administrator identity, checked case-insensitively)
    ADMIN_WALLET_ADDRESS: str = ""

    # Resend (Email)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "Waitlist <noreply@example.com>"
    # Verification links point at the frontend: {FRONTEND_URL}/verify-email?token=...
    FRONTEND_URL: str = "http://localhost:3000"

    # Redis (rate limiting + Celery broker)
    REDIS_URL: str = "redis://localhost:6379"
    CELERY_BROKER_URL: Optional[str] = None

    # Rate limits (fixed window per client IP)
    RATE_LIMIT_ENABLED: bool = True
    WAITLIST_RATE_LIMIT: int = 5
    WAITLIST_RATE_WINDOW_SECONDS: int = 15 * 60
    VERIFY_RATE_LIMIT: int = 10
    VERIFY_RATE_WINDOW_SECONDS: int = 60 * 60
    ADMIN_RATE_LIMIT: int = 100
    ADMIN_RATE_WINDOW_SECONDS: int = 60

    # App Settings
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://localhost:3002",
        "http://localhost:3003",
    ]

    class Config:
        # Use absolute path to .env file
        env_file = Path(__file__).parent.parent.parent / ".env"
        env_file_encoding = 'utf-8'
        extra = "ignore"


settings = Settings()
