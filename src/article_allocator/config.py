"""Configuration helpers for the article allocator."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import AllocationMethod


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", populate_by_name=True
    )

    app_timezone: str = Field(
        "UTC",
        alias="APP_TIMEZONE",
        description="Timezone used for the month/date stamp of an allocation batch.",
    )
    default_allocation_method: AllocationMethod = Field(
        AllocationMethod.BY_PRIORITY,
        alias="DEFAULT_ALLOCATION_METHOD",
        description="Method used when a request does not name one.",
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_format: str = Field(
        "plain",
        alias="LOG_FORMAT",
        description="File log format: 'plain' or 'jsonl'.",
    )
    log_file: Optional[Path] = Field(
        None,
        alias="LOG_FILE",
        description="Optional log file; only console logging when unset.",
    )
    log_console: bool = Field(True, alias="LOG_CONSOLE")

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        value = value.lower()
        if value not in {"plain", "jsonl"}:
            raise ValueError("log_format must be 'plain' or 'jsonl'.")
        return value


def get_settings() -> Settings:
    """Return a settings instance read from the current environment."""
    return Settings()
