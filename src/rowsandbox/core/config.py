"""Configuration management for RowSandbox.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded once and is
immutable during runtime.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings.

    Settings are loaded from environment variables and .env files.
    All configuration values are validated at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ROWSANDBOX_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = "RowSandbox"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "testing"] = "development"

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # Local State Settings
    state_dir: str = "./sb_data/sandbox"
    backup_debounce_seconds: float = Field(
        default=1.0,
        description="Delay before a journal change is written to the backup store (0 = immediate)",
    )

    # Journal Settings
    max_changes_per_session: int = Field(
        default=10_000,
        ge=1,
        description="Upper bound on staged changes per session",
    )

    # Validation / Commit Settings
    schema_cache_ttl_seconds: int = 300
    validation_max_attempts: int = Field(default=3, ge=1)
    partial_commit_policy: Literal["retain_all", "drop_applied"] = Field(
        default="retain_all",
        description="Journal handling when a non-atomic commit partially applies",
    )

    # Preferences Defaults
    default_delete_display: Literal["strikethrough", "hidden"] = "strikethrough"
    default_confirm_on_discard: bool = True
    default_auto_collapse_panel: bool = False
    default_page_size: int = 100
    min_page_size: int = 20

    # Reference Executor Settings (CLI)
    database_url: str = "sqlite+aiosqlite:///./sb_data/target.db"
    sql_dialect: str = "sqlite"
    read_only: bool = False

    @field_validator("backup_debounce_seconds")
    @classmethod
    def validate_debounce(cls, v: float) -> float:
        """Reject negative debounce delays."""
        if v < 0:
            raise ValueError("backup_debounce_seconds must be >= 0")
        return v

    @field_validator("sql_dialect")
    @classmethod
    def normalize_dialect(cls, v: str) -> str:
        """Normalize dialect name to lowercase."""
        return v.strip().lower()

    @model_validator(mode="after")
    def validate_page_sizes(self) -> "Settings":
        """Validate that the default page size honours the minimum."""
        if self.min_page_size < 1:
            raise ValueError("min_page_size must be positive")
        if self.default_page_size < self.min_page_size:
            raise ValueError(
                f"default_page_size ({self.default_page_size}) must be at least "
                f"min_page_size ({self.min_page_size})"
            )
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    This function caches the settings instance to avoid reloading
    configuration on every call.

    Returns:
        Settings: Cached application settings instance.
    """
    return Settings()
