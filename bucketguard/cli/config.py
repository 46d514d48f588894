"""CLI configuration via pydantic-settings."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment (BUCKETGUARD_*) and .env."""

    model_config = SettingsConfigDict(
        env_prefix="BUCKETGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    log_format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    # Output
    output_format: Literal["text", "json"] = "text"

    # Document used when a command is given none
    default_document: str | None = None

    # === AUDIT SETTINGS ===
    audit_enabled: bool = False
    audit_log_path: str = "data/decisions.jsonl"
