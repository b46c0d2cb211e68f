from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path


class Settings(BaseSettings):
    # Database - local SQLite file by default, "memory://" keeps entries in process
    DATABASE_URL: str = "sqlite:///./waitlist.db"

    # Waitlist behaviour
    # Unique index on email closes the check-then-act window at the store layer
    WAITLIST_UNIQUE_INDEX: bool = False
    WAITLIST_CASE_INSENSITIVE: bool = True

    # Notifications
    NOTIFIER_BACKEND: str = "resend"  # "resend" or "log"
    NOTIFY_AWAIT_DELIVERY: bool = False

    # Resend (Email)
    RESEND_API_KEY: str = "your-resend-api-key"
    EMAIL_FROM: str = "The Cube <noreply@thecube.app>"
    WAITLIST_EMAIL_SUBJECT: str = "You're on The Cube Waitlist! 🎉"
    WAITLIST_EMAIL_TEXT: str = (
        "Hey! We received your registration for The Cube's Web App. "
        "We'll notify you when we go live! 🚀"
    )

    # Redis (for rate limiting)
    REDIS_URL: str = "redis://localhost:6379"
    RATE_LIMIT_ENABLED: bool = False
    RATE_LIMIT_MAX_REQUESTS: int = 5
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Admin access to listing/deletion (empty leaves them open)
    ADMIN_TOKEN: str = ""

    # App Settings
    DEBUG: bool = False
    PORT: int = 5001
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = Path(__file__).parent.parent.parent / ".env"
        env_file_encoding = 'utf-8'
        extra = "ignore"


settings = Settings()
