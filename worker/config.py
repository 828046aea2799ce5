"""Worker configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkerSettings(BaseSettings):
    """Worker settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./rideway.db"

    # Scheduler settings
    DUE_CHECK_CRON_SCHEDULE: str = "0 * * * *"  # Run hourly
    NOTIFICATION_COOLDOWN_SECONDS: int = 300
    NOTIFICATION_RETENTION_SECONDS: int = 86400
    PRUNE_CRON_SCHEDULE: str = "30 * * * *"


settings = WorkerSettings()
