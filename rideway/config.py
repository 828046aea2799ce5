"""
Application configuration using pydantic-settings.
"""

from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


def find_env_file() -> str:
    """Find .env file by checking multiple locations."""
    # Try relative to this file (rideway/config.py)
    current_dir = Path(__file__).parent
    candidates = [
        current_dir / ".env",  # rideway/.env
        current_dir.parent / ".env",  # project root/.env
    ]

    for candidate in candidates:
        if candidate.exists():
            return str(candidate)

    # Default to project root
    return str(current_dir.parent / ".env")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_ENV: str = "development"
    APP_NAME: str = "Rideway"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./rideway.db"

    # Fernet key for integration configs (generate with Fernet.generate_key())
    ENCRYPTION_KEY: str = ""

    # Units reported in mileage events: metric (km) or imperial (mi)
    DEFAULT_UNITS: str = "metric"

    # Outbound integrations
    INTEGRATION_REQUEST_TIMEOUT: float = 10.0  # seconds, single attempt
    NTFY_DEFAULT_SERVER: str = "https://ntfy.sh"

    # Notification de-duplication
    NOTIFICATION_COOLDOWN_SECONDS: int = 300  # 5 minutes
    NOTIFICATION_RETENTION_SECONDS: int = 86400  # prune entries older than 24h
    NOTIFICATION_PRUNE_INTERVAL_SECONDS: int = 3600

    # User-triggered due check may run at most once per window
    DUE_CHECK_MIN_INTERVAL_SECONDS: int = 3600

    @property
    def distance_unit(self) -> str:
        return "mi" if self.DEFAULT_UNITS == "imperial" else "km"


settings = Settings()
