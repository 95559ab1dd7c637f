"""
Configuration management for the self-updater.

This module implements the UpdaterConfig Pydantic model and configuration
loading. The update core itself takes its paths and collaborators as
constructor arguments; this layer exists for host applications that prefer to
describe the updater declaratively.

Configuration is loaded from multiple sources with layered precedence:
1. Built-in defaults (Pydantic model defaults)
2. YAML config file (explicit path from the host application)
3. Environment variables (SELF_UPDATER_* prefix, __ for nesting)

The host application owns its command line; nothing here reads sys.argv.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_ENV_PREFIX = "SELF_UPDATER_"

_VALID_LOG_LEVELS = {"debug", "info", "warn", "warning", "error", "critical"}


def _normalize_log_level(v: str) -> str:
    v_lower = v.lower()
    if v_lower not in _VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: {v}. Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    if v_lower == "warn":
        return "warning"
    return v_lower


# =============================================================================
# Registry Configuration
# =============================================================================


class RegistryConfig(BaseModel):
    """Release registry settings.

    Attributes:
        owner: Repository owner on the registry.
        repo: Repository name on the registry.
        api_url: Base URL of the registry REST API.
        timeout_seconds: HTTP timeout for registry and artifact requests.
        token: Optional API token sent as a bearer token.
        user_agent: User-Agent header sent with every request.
    """

    owner: str = Field(
        default="OpenTabletDriver",
        description="Repository owner on the release registry",
    )
    repo: str = Field(
        default="OpenTabletDriver",
        description="Repository name on the release registry",
    )
    api_url: str = Field(
        default="https://api.github.com",
        description="Base URL of the registry REST API",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=3600,
        description="HTTP timeout in seconds",
    )
    token: str | None = Field(
        default=None,
        description="Optional API token for authenticated requests",
    )
    user_agent: str = Field(
        default="self-updater",
        description="User-Agent header for registry requests",
    )

    @field_validator("owner", "repo")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty repository coordinates."""
        v = v.strip()
        if not v:
            raise ValueError("Repository owner and name must not be empty")
        return v

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the API base URL."""
        return v.rstrip("/")


# =============================================================================
# Installation Configuration
# =============================================================================


class PathsConfig(BaseModel):
    """Installation directory layout.

    Attributes:
        binary_dir: Directory holding the live executable and libraries.
        app_data_dir: Directory holding mutable application state.
        rollback_dir: Parent directory of all versioned backups.
    """

    binary_dir: str = Field(
        default="/opt/app/bin",
        description="Live binary directory",
    )
    app_data_dir: str = Field(
        default="/var/lib/app",
        description="Application data directory",
    )
    rollback_dir: str = Field(
        default="/var/lib/app/rollback",
        description="Parent directory of versioned backups",
    )


class BackupConfig(BaseModel):
    """Backup selection settings.

    Attributes:
        include_list: Names (or fnmatch patterns) of binary directory entries
            to back up. None backs up every entry.
    """

    include_list: list[str] | None = Field(
        default=None,
        description="Binary directory entries to include in backups",
    )

    @field_validator("include_list", mode="before")
    @classmethod
    def split_include_list(cls, v: Any) -> Any:
        """Accept a comma-separated string such as ``app,lib``."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v


class ArchiveConfig(BaseModel):
    """Settings for the archive artifact backend.

    Attributes:
        asset_pattern: fnmatch pattern selecting the release asset to install.
        flatten_single_root: Hoist the contents of an archive whose only
            top-level entry is a directory.
    """

    asset_pattern: str = Field(
        default="*.tar.gz",
        description="fnmatch pattern selecting the release asset",
    )
    flatten_single_root: bool = Field(
        default=True,
        description="Unwrap a lone top-level directory after extraction",
    )

    @field_validator("asset_pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        """Reject an empty asset pattern."""
        if not v.strip():
            raise ValueError("Asset pattern must not be empty")
        return v.strip()


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level.
        log_to_stdout: Whether to log to stdout.
        json_format: Whether to emit JSON log lines.
    """

    level: str = Field(
        default="info",
        description="Log level: debug, info, warn, error",
    )
    log_to_stdout: bool = Field(
        default=True,
        description="Whether to log to stdout",
    )
    json_format: bool = Field(
        default=True,
        description="Whether to emit JSON formatted log lines",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        return _normalize_log_level(v)


# =============================================================================
# Main Configuration
# =============================================================================


class UpdaterConfig(BaseModel):
    """
    Main updater configuration model.

    Attributes:
        current_version: Installed version. None uses the package version.
        registry: Release registry settings.
        paths: Installation directory layout.
        backup: Backup selection settings.
        archive: Archive backend settings.
        logging: Logging configuration.
    """

    current_version: str | None = Field(
        default=None,
        description="Installed version; defaults to the running package version",
    )
    registry: RegistryConfig = Field(
        default_factory=RegistryConfig,
        description="Release registry settings",
    )
    paths: PathsConfig = Field(
        default_factory=PathsConfig,
        description="Installation directory layout",
    )
    backup: BackupConfig = Field(
        default_factory=BackupConfig,
        description="Backup selection settings",
    )
    archive: ArchiveConfig = Field(
        default_factory=ArchiveConfig,
        description="Archive backend settings",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )

    @field_validator("current_version", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> Any:
        """Accept versions that YAML parsed as numbers (e.g. ``1.2``)."""
        if isinstance(v, int | float) and not isinstance(v, bool):
            return str(v)
        return v


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: The base dictionary.
        override: The dictionary with values to override.

    Returns:
        A new dictionary with merged values.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


# Fields declared as plain or optional strings
_STRING_ANNOTATIONS = (str, str | None)


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to appropriate Python type.

    Version-like strings ("1.2.0") stay strings; only plain integers and
    floats are converted.
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    if value.count(".") == 1:
        try:
            return float(value)
        except ValueError:
            pass

    # Comma-separated lists
    if "," in value:
        return [item.strip() for item in value.split(",") if item.strip()]

    return value


def _is_string_field(parts: list[str]) -> bool:
    """Return True if the dotted key ``parts`` names a str-typed config field."""
    model: type[BaseModel] = UpdaterConfig
    for part in parts[:-1]:
        field = model.model_fields.get(part)
        if field is None:
            return False
        annotation = field.annotation
        if not (isinstance(annotation, type) and issubclass(annotation, BaseModel)):
            return False
        model = annotation

    field = model.model_fields.get(parts[-1])
    return field is not None and field.annotation in _STRING_ANNOTATIONS


def _load_env_config(prefix: str = DEFAULT_ENV_PREFIX) -> dict[str, Any]:
    """
    Load configuration from environment variables.

    - Prefix: SELF_UPDATER_ (configurable)
    - Nested keys: Double underscore (__) separator
    - Example: SELF_UPDATER_REGISTRY__OWNER=acme

    Values for string fields are kept verbatim, so a numeric token or a
    comma-separated user agent is not reinterpreted.
    """
    result: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        config_key = key[len(prefix) :].lower()
        parts = config_key.split("__")

        current = result
        for part in parts[:-1]:
            if part not in current:
                current[part] = {}
            current = current[part]

        if _is_string_field(parts):
            current[parts[-1]] = value
        else:
            current[parts[-1]] = _parse_env_value(value)

    return result


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
) -> UpdaterConfig:
    """
    Load configuration from all sources with layered precedence.

    Args:
        config_path: Path to YAML configuration file. If None, only defaults
            and environment variables are used.
        env_prefix: Prefix for environment variables.

    Returns:
        Fully configured UpdaterConfig instance.

    Raises:
        FileNotFoundError: If specified config file doesn't exist.
        ValidationError: If configuration is invalid.

    Example:
        Given ``/etc/app/updater.yml`` containing::

            registry:
              owner: acme
              repo: widget

        >>> config = load_config("/etc/app/updater.yml")
        >>> config.registry.owner
        'acme'
    """
    config_dict: dict[str, Any] = {}

    if config_path is not None:
        config_dict = _deep_merge(config_dict, _load_yaml_config(Path(config_path)))

    config_dict = _deep_merge(config_dict, _load_env_config(env_prefix))

    return UpdaterConfig(**config_dict)
