"""
Application configuration.

Values are read from environment variables / a local .env file. Everything the
scheduling engine needs beyond the database lives here too, so behaviour that
product has not settled yet (see SLOTS_RESPECT_TIME_OFF) is a switch rather
than a code change.
"""
import logging
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str = "sqlite+aiosqlite:///./appoint.db"
    DB_ECHO: bool = False

    # Zone used when a business carries a timezone id that does not resolve.
    DEFAULT_TIMEZONE: str = "UTC"

    # Customer-facing slot listing ignores time off unless this is switched on.
    # The owner-side validator always checks time off.
    SLOTS_RESPECT_TIME_OFF: bool = False

    # Confirmation / cancellation links
    CONFIRMATION_TOKEN_BYTES: int = 24
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # SendGrid Email
    NOTIFICATIONS_ENABLED: bool = True
    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = "noreply@simplyappoint.app"
    SENDGRID_FROM_NAME: str = "SimplyAppoint"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
