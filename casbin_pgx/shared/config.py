"""
Shared configuration management for the casbin-pgx adapter.
"""

import re
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TABLE_NAME = "casbin_rule"

# Optionally schema-qualified, unquoted SQL identifier
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


def is_valid_table_name(name: str) -> bool:
    """Check that ``name`` can be substituted into SQL text unquoted."""
    return bool(_IDENTIFIER.match(name or ""))


class AdapterSettings(BaseSettings):
    """Adapter configuration, read from ``CASBIN_PG_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CASBIN_PG_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Storage
    dsn: str = Field(default="postgres://localhost:5432/casbin")
    table_name: str = Field(default=DEFAULT_TABLE_NAME)
    skip_table_create: bool = Field(default=False)

    # asyncpg pool parameters, passed through unchanged
    pool_min_size: int = Field(default=2, ge=0)
    pool_max_size: int = Field(default=10, ge=1)
    command_timeout: float = Field(default=30.0, gt=0)

    # Rows prefetched per round trip while scanning
    fetch_batch_size: int = Field(default=500, ge=1)

    # Logging
    log_level: str = Field(default="info")
    log_format: str = Field(default="json")

    @field_validator("table_name")
    @classmethod
    def _check_table_name(cls, value: str) -> str:
        if not is_valid_table_name(value):
            raise ValueError(f"invalid table name: {value!r}")
        return value

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        if value not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return value


@lru_cache()
def get_settings() -> AdapterSettings:
    """Get the process-wide adapter settings."""
    return AdapterSettings()
