"""Timeout settings for instance move operations.

Provides centralized timeout configuration using Pydantic BaseSettings
with environment variable support for operational tuning. A value of 0
disables the timeout for that class of command.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MoverTimeoutSettings(BaseSettings):
    """Command timeout configuration."""

    probe_timeout: int = Field(
        30, alias="PROBE_TIMEOUT", ge=0, description="Connectivity probe timeout in seconds"
    )

    query_timeout: int = Field(
        120, alias="QUERY_TIMEOUT", ge=0, description="Read-only query timeout in seconds"
    )

    command_timeout: int = Field(
        0, alias="COMMAND_TIMEOUT", ge=0, description="Mutating command timeout in seconds"
    )

    transfer_timeout: int = Field(
        0, alias="TRANSFER_TIMEOUT", ge=0, description="Filesystem copy timeout in seconds"
    )

    cleanup_timeout: int = Field(
        120, alias="CLEANUP_TIMEOUT", ge=0, description="Timeout for each cleanup action"
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def as_timeout(seconds: int | float | None) -> float | None:
    """Convert a configured timeout to the form subprocess expects (None = unbounded)."""
    if not seconds:
        return None
    return float(seconds)


# Global settings instance
timeout_settings = MoverTimeoutSettings()

# Timeout constants for easy import
PROBE_TIMEOUT: float | None = as_timeout(timeout_settings.probe_timeout)
QUERY_TIMEOUT: float | None = as_timeout(timeout_settings.query_timeout)
COMMAND_TIMEOUT: float | None = as_timeout(timeout_settings.command_timeout)
TRANSFER_TIMEOUT: float | None = as_timeout(timeout_settings.transfer_timeout)
CLEANUP_TIMEOUT: float | None = as_timeout(timeout_settings.cleanup_timeout)
