# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for runner-specific settings. Every field maps to an
upper-case environment variable of the same name (``CACHE_BACKEND``,
``BUILD_COMMAND``...).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cacheplan.core.models import DateStamp


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Manifest fingerprint ===
    manifest_patterns: str = "**/Cargo.toml"

    # === Cache ===
    cache_enabled: bool = True
    cache_backend: Literal["json", "sqlite", "redis"] = "json"
    cache_root: Path = Path("~/.cacheplan/cache")
    cache_redis_url: str = ""
    cache_namespace_by_platform: bool = False
    cache_timezone: str = ""
    cache_date_stamp: str = ""

    # === Build and test ===
    build_command: str = "cargo build --all --release"
    test_command: str = "cargo test --all --release"

    # === Triggers ===
    push_branches: str = "main"
    pull_request_branches: str = "dev"

    # === Matrix ===
    matrix_platforms: str = "ubuntu-latest,macos-latest,windows-latest"
    matrix_fail_fast: bool = False

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("cache_date_stamp")
    @classmethod
    def validate_date_stamp(cls, v: str) -> str:  # noqa: N805
        """An explicit date stamp must be a YYYY-MM-DD calendar date."""
        if v:
            DateStamp(value=v)
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.cache_backend == "redis" and self.cache_enabled and not self.cache_redis_url:
            errors.append("CACHE_BACKEND=redis requires CACHE_REDIS_URL")

        if not self.manifest_patterns_list:
            errors.append("MANIFEST_PATTERNS must name at least one pattern")

        if not self.build_command.strip():
            errors.append("BUILD_COMMAND must not be empty")

        if not self.matrix_platforms_list:
            errors.append("MATRIX_PLATFORMS must name at least one platform")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def manifest_patterns_list(self) -> list[str]:
        """Parse comma-separated manifest glob patterns."""
        return [p.strip() for p in self.manifest_patterns.split(",") if p.strip()]

    @property
    def push_branches_list(self) -> list[str]:
        return [b.strip() for b in self.push_branches.split(",") if b.strip()]

    @property
    def pull_request_branches_list(self) -> list[str]:
        return [b.strip() for b in self.pull_request_branches.split(",") if b.strip()]

    @property
    def matrix_platforms_list(self) -> list[str]:
        """Parse comma-separated matrix platform labels."""
        return [p.strip() for p in self.matrix_platforms.split(",") if p.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
