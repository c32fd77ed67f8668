"""Configuration settings using Pydantic BaseSettings."""

from datetime import timedelta
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every field can be set with a ``TASKFLOW_`` prefixed variable, e.g.
    ``TASKFLOW_STORAGE_PATH=/var/lib/taskflow/tasks.json``.
    """

    # Storage Configuration
    storage_path: Path = Field(default=Path("data/tasks.json"), description="JSON file holding the tasks")
    save_delay: float = Field(default=0.3, ge=0, description="Quiet interval before a debounced write, in seconds")

    # Reminder Configuration
    reminder_interval: float = Field(default=60.0, gt=0, description="Seconds between due-soon scans")
    reminder_window_minutes: int = Field(default=60, ge=1, description="How far ahead a task counts as due soon")

    # Application Configuration
    app_host: str = Field(default="127.0.0.1", description="API host")
    app_port: int = Field(default=8000, description="API port")
    debug: bool = Field(default=False, description="Enable debug mode")
    environment: str = Field(default="development", description="Deployment environment name")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Optional[Path] = Field(default=None, description="Directory for rotating log files")

    model_config = SettingsConfigDict(
        env_prefix="TASKFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def reminder_window(self) -> timedelta:
        return timedelta(minutes=self.reminder_window_minutes)


# Global settings instance
settings = Settings()
