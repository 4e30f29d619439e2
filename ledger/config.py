"""
Configuration for the ledger.

Values come from environment variables prefixed with ``LEDGER_`` or from a
local ``.env`` file, e.g. ``LEDGER_EXPORT_DIR=/tmp/exports``.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Storage locations, credential policy and logging options."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_file: Path = Field(
        default=Path("users_data.dat"),
        description="Binary snapshot holding every registered user"
    )
    export_dir: Path = Field(
        default=Path("exports"),
        description="Directory for exports given as a bare file name"
    )

    min_login_length: int = Field(
        default=3,
        ge=1,
        description="Shortest accepted login"
    )
    min_password_length: int = Field(
        default=4,
        ge=1,
        description="Shortest accepted password"
    )

    misc_category: str = Field(
        default="Other",
        min_length=1,
        description="Category used for both sides of a transfer"
    )

    log_level: str = Field(
        default="WARNING",
        description="Minimum level for structured log output"
    )
    log_json: bool = Field(
        default=False,
        description="Render log lines as JSON instead of console text"
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache()
def get_settings() -> LedgerSettings:
    """
    Get settings (cached).

    Call get_settings.cache_clear() to reload after changing the environment.
    """
    return LedgerSettings()
