# travel_scheduler/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _PROJECT_ROOT / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        description="Deployment environment name",
    )
    log_level: str = Field(default="INFO", description="Root log level for setup_logging()")

    # Persistent store
    database_url: str = Field(
        default="sqlite:///./travel_scheduler.db",
        description="SQLAlchemy database URL",
    )
    db_pool_timeout_seconds: int = Field(
        default=5,
        description="Seconds to wait for a pooled connection (or SQLite lock) before failing",
    )
    db_echo: bool = Field(default=False, description="Echo SQL statements (debug only)")

    # Timezones
    default_timezone: str = Field(
        default="UTC",
        description="Timezone assumed when a user record has no usable IANA identifier",
    )

    # Job cadence
    notification_dispatch_interval_seconds: int = Field(default=120)
    booking_lifecycle_interval_seconds: int = Field(default=600)
    itinerary_status_interval_seconds: int = Field(default=900)
    activity_reminder_interval_seconds: int = Field(default=300)
    cleanup_hour: int = Field(default=2, description="UTC hour for the daily cleanup job")
    cleanup_minute: int = Field(default=0, description="UTC minute for the daily cleanup job")
    job_runner_enabled: bool = Field(
        default=True,
        description="Start the in-process JobRunner together with the HTTP app",
    )

    # Scheduling behaviour
    dispatch_batch_size: int = Field(
        default=100,
        description="Maximum scheduled notifications inspected per dispatch run",
    )
    notification_retention_days: int = Field(
        default=30,
        description="Age after which terminal scheduled rows and read notifications are deleted",
    )
    dispatch_retry_backoff_seconds: int = Field(
        default=300,
        description="Initial delay before a failed scheduled notification is retried; doubles per failure",
    )
    attendance_reprompt_minutes: int = Field(
        default=15,
        description="Minutes between attendance re-prompts while the traveler is still Waiting",
    )
    activity_reminder_lead_minutes: int = Field(
        default=0,
        description="Minutes before an itinerary activity starts that its reminder becomes due",
    )

    # Push/feed sink
    push_notifications_enabled: bool = Field(
        default=False,
        description="Hand delivered notifications to the push provider",
    )

    @field_validator(
        "notification_dispatch_interval_seconds",
        "booking_lifecycle_interval_seconds",
        "itinerary_status_interval_seconds",
        "activity_reminder_interval_seconds",
        "dispatch_batch_size",
        "dispatch_retry_backoff_seconds",
        "notification_retention_days",
        "attendance_reprompt_minutes",
        "db_pool_timeout_seconds",
    )
    @classmethod
    def _must_be_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("activity_reminder_lead_minutes")
    @classmethod
    def _must_not_be_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator("cleanup_hour")
    @classmethod
    def _validate_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("cleanup_hour must be between 0 and 23")
        return value

    @field_validator("cleanup_minute")
    @classmethod
    def _validate_minute(cls, value: int) -> int:
        if not 0 <= value <= 59:
            raise ValueError("cleanup_minute must be between 0 and 59")
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()


__all__ = ["Settings", "settings", "is_running_tests"]
