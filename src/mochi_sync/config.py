"""Configuration management for mochi-sync."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MOCHI_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Mochi
    api_key: str = Field(default="", description="Mochi API key")
    default_deck_id: str = Field(
        default="",
        description="Deck ID where new cards are created unless a card names another deck",
    )
    base_url: str = Field(
        default="https://app.mochi.cards/api",
        description="Mochi API base URL",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for a single HTTP request",
    )

    # Rate limiting
    request_delay: float = Field(
        default=0.5,
        ge=0,
        description="Seconds to wait after every remote call",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per remote call when the service rate limits us",
    )

    # Documents
    vault_path: Path = Field(
        default=Path("."),
        description="Directory containing the Markdown documents to scan",
    )

    # Database
    database_path: Path = Field(
        default=Path("data/mochi-sync.db"),
        description="Path to SQLite database file holding the sync state",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Minimum log level")

    @property
    def database_url(self) -> str:
        """SQLAlchemy database URL."""
        return f"sqlite:///{self.database_path}"

    def missing_sync_settings(self) -> list[str]:
        """Names of settings that must be set before a sync can run."""
        missing = []
        if not self.api_key:
            missing.append("api_key")
        if not self.default_deck_id:
            missing.append("default_deck_id")
        return missing


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
