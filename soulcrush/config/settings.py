"""
Application settings and configuration.
Uses pydantic-settings for environment variable loading.

Relative defaults resolve against the working directory, never against the
installed package location.
"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_database_path() -> Path:
    return Path.cwd() / "data" / "soulcrush.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_path: Path = Field(
        default_factory=default_database_path,
        description="Path to SQLite database file"
    )
    database_timeout_seconds: float = Field(
        default=5.0,
        description="Seconds a connection waits on a locked database"
    )
    cascade_company_delete: bool = Field(
        default=False,
        description="Delete the owning company when its application is deleted"
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")


# Global settings instance
settings = Settings()
