"""
Application Configuration
Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path

from rentals.config import ScrapeConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Store Configuration
    store_backend: str = "firestore"  # "firestore" or "sql"
    database_url: str = "sqlite:///./data/rental_quotes.db"
    firebase_project_id: Optional[str] = None
    firebase_service_account: Optional[str] = None  # Service account JSON as a string

    # Collections (Firestore) / tables (SQL) hold the same shapes
    templates_collection: str = "scrapeTemplates"
    slots_collection: str = "slotDefinitions"
    executions_collection: str = "vehicles"

    # Browser Configuration
    headless: bool = True
    timezone: str = "America/New_York"

    # Scraper Configuration
    min_lead_minutes: int = 60
    granularity_minutes: int = 30
    default_duration_hours: float = 72
    quote_batch_size: int = 20
    max_capture_attempts: int = 3
    retry_backoff_min_ms: int = 3000
    retry_backoff_max_ms: int = 5000
    instance_delay_min_ms: int = 2000
    instance_delay_max_ms: int = 4000
    step_timeout_ms: int = 60000

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Paths
    @property
    def log_dir(self) -> Path:
        """Get the log directory path."""
        return Path(__file__).parent.parent.parent / "logs"

    @property
    def log_file(self) -> Path:
        """Get the log file path."""
        return self.log_dir / "scraper.log"

    def scrape_config(self) -> ScrapeConfig:
        """Build the immutable scrape tunables from these settings."""
        return ScrapeConfig(
            min_lead_minutes=self.min_lead_minutes,
            granularity_minutes=self.granularity_minutes,
            default_duration_hours=self.default_duration_hours,
            batch_size=self.quote_batch_size,
            max_capture_attempts=self.max_capture_attempts,
            retry_backoff_ms=(self.retry_backoff_min_ms, self.retry_backoff_max_ms),
            instance_delay_ms=(self.instance_delay_min_ms, self.instance_delay_max_ms),
            step_timeout_ms=self.step_timeout_ms,
        )

    class Config:
        # Only load .env if it exists to avoid permission errors
        env_file = ".env" if Path(".env").exists() else None
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables


# Global settings instance
settings = Settings()
