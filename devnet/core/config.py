"""Inventory configuration using Pydantic Settings."""

import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Inventory settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DEVNET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Registry layout
    root_dir: str = Field(
        default=str(Path.home() / "devnet"),
        description="Absolute root directory of the test network workspace",
    )
    default_chain: str = Field(
        default="1337.standard",
        description="Chain name used when a query names neither a chain nor a hub",
    )

    # Default topology generator
    first_chain_id: int = Field(
        default=1337,
        ge=1,
        description="Chain id of the first simulated chain",
    )
    count_chains: int = Field(
        default=1,
        ge=1,
        le=10,
        description="Number of simulated chains in the default topology",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root logger level",
    )
    log_file_path: str = Field(
        default="data/logs/devnet.log",
        description="Path of the rotating log file",
    )
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Maximum size of one log file before rotation",
    )
    log_file_backup_count: int = Field(
        default=5,
        ge=0,
        description="Number of rotated log files to keep",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON log records instead of plain text",
    )

    # Repository resolution
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL used to look up latest releases",
        pattern=r"^https?://.*",
    )
    github_token: SecretStr | None = Field(
        default=None,
        description="Optional GitHub token (raises the API rate limit)",
    )
    repository_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Timeout for one repository version lookup",
    )

    @field_validator("root_dir")
    @classmethod
    def validate_root_dir(cls, v: str) -> str:
        """Require an absolute workspace directory."""
        if not Path(v).is_absolute():
            raise ValueError(f"root_dir must be an absolute path, got: {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level '{v}', expected one of {sorted(_LOG_LEVELS)}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    env_path = os.getenv("DEVNET_ENV_PATH", ".env")
    return Settings(_env_file=env_path)
