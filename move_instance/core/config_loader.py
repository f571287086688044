"""Configuration management for move-instance."""

import os
import re
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from ..constants import (
    DEFAULT_DISK_TEMPLATE,
    DEFAULT_EXPORT_DIR,
    DEFAULT_FILESYSTEM,
    DEFAULT_HYPERVISOR,
    DEFAULT_OS_TYPE,
    ENV_CONFIG,
    HOSTS_FILE,
    MAX_EXTRA_NICS,
    MAX_NET_QUEUES,
    PLACEHOLDER_ADDRESS,
    PROGRESS_COMMAND,
    RENAMED_SUFFIX,
)
from .exceptions import ConfigurationError

logger = structlog.get_logger()

SYSTEM_CONFIG_PATH = Path("/etc/move-instance/config.yml")


class SSHOptions(BaseModel):
    """How nodes and masters are reached over SSH."""

    user: str | None = None  # None keeps whatever ~/.ssh/config says
    port: int = 22
    identity_file: str | None = None
    connect_timeout: int = 10
    strict_host_key_checking: Literal["yes", "no", "accept-new"] = "accept-new"
    batch_mode: bool = True
    extra_options: list[str] = Field(default_factory=list)


class MoverConfig(BaseSettings):
    """Main configuration for move-instance."""

    export_dir: str = DEFAULT_EXPORT_DIR
    filesystem_type: Literal["xfs", "ext4", "ext3", "btrfs"] = DEFAULT_FILESYSTEM
    source_filesystem_type: str | None = None  # None lets mount probe the source volume
    destination_volume_group: str | None = None
    disk_template: str = DEFAULT_DISK_TEMPLATE
    hypervisor: str = DEFAULT_HYPERVISOR
    os_type: str = DEFAULT_OS_TYPE
    renamed_suffix: str = Field(default=RENAMED_SUFFIX, min_length=1)
    placeholder_address: str = PLACEHOLDER_ADDRESS
    hosts_file: str = HOSTS_FILE
    max_net_queues: int = Field(default=MAX_NET_QUEUES, ge=1)
    max_extra_nics: int = Field(default=MAX_EXTRA_NICS, ge=0)
    show_progress: bool = True
    progress_command: str = PROGRESS_COMMAND
    log_level: str = "INFO"
    log_dir: str | None = None
    ssh: SSHOptions = Field(default_factory=SSHOptions)
    config_file: str | None = None

    model_config = SettingsConfigDict(
        env_prefix="MOVE_INSTANCE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over values read from YAML files
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_config(config_path: str | None = None) -> MoverConfig:
    """Load configuration from multiple sources.

    Args:
        config_path: Optional path to a YAML config file

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If a config file is unreadable or invalid
    """
    # Load .env file first
    load_dotenv()

    merged: dict[str, Any] = {}
    explicit = config_path or os.getenv(ENV_CONFIG)
    candidates = [
        SYSTEM_CONFIG_PATH,
        Path.home() / ".config" / "move-instance" / "config.yml",
    ]
    if explicit:
        explicit_path = Path(explicit)
        if not explicit_path.exists():
            raise ConfigurationError(f"Config file not found: {explicit_path}")
        candidates.append(explicit_path)

    loaded_from = None
    for path in candidates:
        if not path.exists():
            continue
        _merge_config(merged, _load_yaml_config(path))
        loaded_from = str(path)

    merged["config_file"] = loaded_from

    try:
        config = MoverConfig(**merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    logger.debug("Configuration loaded", config_file=loaded_from)
    return config


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration file."""
    try:
        content = config_path.read_text(encoding="utf-8")

        # Securely expand only allowed environment variables
        content = _expand_yaml_config(content)

        loaded = yaml.safe_load(content)
        # yaml.safe_load can return None, str, list, etc.
        if not isinstance(loaded, dict):
            return {}
        return loaded
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}") from e


def _expand_yaml_config(content: str) -> str:
    """Securely expand environment variables with allowlist."""

    allowed_env_vars = {
        "HOME",
        "USER",
        "XDG_CONFIG_HOME",
        "XDG_DATA_HOME",
        "MOVE_INSTANCE_CONFIG",
        "MOVE_INSTANCE_LOG_DIR",
        "LOG_LEVEL",
    }

    def replace_if_allowed(match):
        var_name = match.group(1) or match.group(2)
        original_pattern = match.group(0)

        if var_name in allowed_env_vars:
            return os.getenv(var_name, original_pattern)  # Keep original if not found
        logger.warning(
            "Environment variable not in allowlist, skipping expansion",
            variable=var_name,
            pattern=original_pattern,
        )
        return original_pattern

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", replace_if_allowed, content)


def _merge_config(base: dict[str, Any], update: dict[str, Any]) -> None:
    """Merge configuration dictionaries with deep merging."""
    for key, value in update.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_config(base[key], value)
        else:
            base[key] = value
