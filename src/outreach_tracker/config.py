"""Configuration management using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Where each collection is written, one JSON file per key
    data_dir: Path = Field(default=Path.home() / ".outreach_tracker", alias="OT_DATA_DIR")
    key_prefix: str = Field(default="ot_", alias="OT_KEY_PREFIX")

    log_level: str = Field(default="INFO", alias="OT_LOG_LEVEL")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
