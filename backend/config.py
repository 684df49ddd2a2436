"""
Configuration management for the storefront back office.

Loads settings from .env via pydantic-settings.

Scheduler notes:
    - Job periods are in seconds; business windows (payment timeout,
      reminder period, dispute window) are in minutes/hours and are
      evaluated per record, independent of the job period.
    - SCHEDULER_ENABLED=false keeps the API up without background jobs
      (used by tests and by secondary API replicas).
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/backoffice.db"

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    store_name: str = "Ultimate Bliss"

    # ── Scheduler ───────────────────────────────────────────────────
    # Only one instance may run the scheduler; there is no distributed lock.
    scheduler_enabled: bool = True
    auto_cancel_interval_seconds: int = 300        # every 5 minutes
    payment_reminder_interval_seconds: int = 1800  # every 30 minutes
    auto_complete_interval_seconds: int = 300      # every 5 minutes
    booking_expiry_interval_seconds: int = 300     # every 5 minutes

    # ── Order lifecycle windows ─────────────────────────────────────
    payment_timeout_minutes: int = 120
    reminder_period_minutes: int = 30
    reminder_tolerance_minutes: int = 5
    dispute_window_hours: int = 24

    # ── Email (transactional HTTP API) ──────────────────────────────
    mail_api_url: str = "https://api.brevo.com/v3/smtp/email"
    mail_api_key: str = ""
    mail_from: str = "no-reply@example.com"
    mail_timeout_seconds: float = 10.0

    # ── Webhooks ────────────────────────────────────────────────────
    webhook_timeout_seconds: float = 5.0

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup. Production refuses wildcard CORS and
        nonsensical scheduler windows; other environments only warn.
        """
        if self.reminder_tolerance_minutes >= self.reminder_period_minutes:
            raise ValueError(
                "REMINDER_TOLERANCE_MINUTES must be smaller than REMINDER_PERIOD_MINUTES, "
                "otherwise every scan sends a reminder."
            )

        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if not self.mail_api_key:
                raise ValueError(
                    "MAIL_API_KEY must be set in production. "
                    "Notification emails cannot be delivered without it."
                )
            logger.info("Production settings validated")
        else:
            warnings = []
            if not self.mail_api_key:
                warnings.append("MAIL_API_KEY not set (email channel disabled)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"{w}")


# Global settings instance
settings = Settings()
