"""
Configuration module for the Page Harvester.

Uses Pydantic Settings for type-safe configuration with environment variable support.
Per-run politeness settings live on the extraction plan, not here.
"""

from pathlib import Path
from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class FetchConfig(BaseSettings):
    """Outbound request configuration."""

    model_config = SettingsConfigDict(env_prefix="HARVESTER_FETCH_")

    relay_url: str | None = Field(
        default=None,
        description="Relay endpoint called as <relay_url>?url=<address> (None = direct)",
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="Default User-Agent header")
    accept: str = Field(
        default="text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        description="Default Accept header",
    )
    backoff_base: float = Field(
        default=1.0,
        description="Seconds multiplied by 2^attempt before each retry",
    )


class StorageConfig(BaseSettings):
    """Export storage configuration."""

    model_config = SettingsConfigDict(env_prefix="HARVESTER_STORAGE_")

    base_path: Path = Field(default=Path("storage"), description="Base storage directory")
    export_subdir: str = Field(default="exports", description="Export files subdirectory")
    sqlite_db_name: str = Field(default="harvested.db", description="SQLite database filename")

    @property
    def export_path(self) -> Path:
        """Full path to export directory."""
        return self.base_path / self.export_subdir


class HarvesterConfig(BaseSettings):
    """Main configuration aggregating all sub-configs."""

    model_config = SettingsConfigDict(
        env_prefix="HARVESTER_",
        env_nested_delimiter="__",
    )

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    def ensure_directories(self) -> None:
        """Create the export directory if it doesn't exist."""
        self.storage.export_path.mkdir(parents=True, exist_ok=True)


# Global config instance (can be overridden)
config = HarvesterConfig()
