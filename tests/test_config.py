"""
Tests for the self_updater.config module.

Tests cover:
- Model defaults and validation
- YAML loading
- Environment variable overrides
- Precedence of environment variables over the file
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from self_updater.config import (
    ArchiveConfig,
    LoggingConfig,
    RegistryConfig,
    UpdaterConfig,
    _deep_merge,
    _is_string_field,
    _parse_env_value,
    load_config,
)

ENV_PREFIX = "SELF_UPDATER_TEST_"


# =============================================================================
# Model Tests
# =============================================================================


class TestModels:
    """Tests for configuration models."""

    def test_defaults(self) -> None:
        """Test default configuration values."""
        config = UpdaterConfig()
        assert config.current_version is None
        assert config.registry.owner == "OpenTabletDriver"
        assert config.registry.repo == "OpenTabletDriver"
        assert config.registry.api_url == "https://api.github.com"
        assert config.paths.rollback_dir == "/var/lib/app/rollback"
        assert config.backup.include_list is None
        assert config.archive.asset_pattern == "*.tar.gz"
        assert config.logging.level == "info"

    def test_api_url_trailing_slash_stripped(self) -> None:
        """Test API URL normalization."""
        assert RegistryConfig(api_url="https://ghe.local/api/v3/").api_url == (
            "https://ghe.local/api/v3"
        )

    def test_blank_repo_rejected(self) -> None:
        """Test that empty repository coordinates are rejected."""
        with pytest.raises(ValidationError):
            RegistryConfig(repo="  ")

    def test_timeout_must_be_positive(self) -> None:
        """Test timeout bounds."""
        with pytest.raises(ValidationError):
            RegistryConfig(timeout_seconds=0)

    def test_empty_asset_pattern_rejected(self) -> None:
        """Test that an empty asset pattern is rejected."""
        with pytest.raises(ValidationError):
            ArchiveConfig(asset_pattern="")

    def test_log_level_normalized(self) -> None:
        """Test that 'WARN' becomes 'warning'."""
        assert LoggingConfig(level="WARN").level == "warning"

    def test_invalid_log_level(self) -> None:
        """Test that an unknown level is rejected."""
        with pytest.raises(ValidationError):
            LoggingConfig(level="verbose")

    def test_numeric_version_coerced(self) -> None:
        """Test that a YAML-parsed float version becomes a string."""
        assert UpdaterConfig(current_version=1.2).current_version == "1.2"


# =============================================================================
# Helper Tests
# =============================================================================


class TestHelpers:
    """Tests for configuration helpers."""

    def test_deep_merge(self) -> None:
        """Test nested dictionaries merge key by key."""
        base = {"registry": {"owner": "a", "repo": "b"}, "x": 1}
        override = {"registry": {"repo": "c"}}
        assert _deep_merge(base, override) == {
            "registry": {"owner": "a", "repo": "c"},
            "x": 1,
        }
        assert base["registry"]["repo"] == "b"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("true", True),
            ("off", False),
            ("42", 42),
            ("2.5", 2.5),
            ("1.2.0", "1.2.0"),
            ("bin,lib", ["bin", "lib"]),
            ("acme", "acme"),
        ],
    )
    def test_parse_env_value(self, raw: str, expected: object) -> None:
        """Test environment value typing."""
        assert _parse_env_value(raw) == expected

    @pytest.mark.parametrize(
        ("parts", "expected"),
        [
            (["current_version"], True),
            (["registry", "token"], True),
            (["registry", "user_agent"], True),
            (["registry", "timeout_seconds"], False),
            (["backup", "include_list"], False),
            (["logging", "json_format"], False),
            (["registry", "unknown"], False),
            (["unknown", "owner"], False),
        ],
    )
    def test_is_string_field(self, parts: list[str], expected: bool) -> None:
        """Test detection of string-typed fields from dotted keys."""
        assert _is_string_field(parts) is expected


# =============================================================================
# Loading Tests
# =============================================================================


class TestLoadConfig:
    """Tests for load_config."""

    def test_no_sources(self) -> None:
        """Test that loading with no sources yields defaults."""
        config = load_config(env_prefix=ENV_PREFIX)
        assert config == UpdaterConfig()

    def test_yaml_file(self, tmp_path: Path) -> None:
        """Test loading from a YAML file."""
        path = tmp_path / "updater.yml"
        path.write_text(
            "current_version: 1.0.0\n"
            "registry:\n"
            "  owner: acme\n"
            "  repo: widget\n"
            "backup:\n"
            "  include_list: [widget, lib]\n"
        )
        config = load_config(path, env_prefix=ENV_PREFIX)
        assert config.current_version == "1.0.0"
        assert config.registry.owner == "acme"
        assert config.registry.repo == "widget"
        assert config.backup.include_list == ["widget", "lib"]

    def test_empty_yaml_file(self, tmp_path: Path) -> None:
        """Test that an empty YAML file yields defaults."""
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config(str(path), env_prefix=ENV_PREFIX) == UpdaterConfig()

    def test_missing_yaml_file(self, tmp_path: Path) -> None:
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yml", env_prefix=ENV_PREFIX)

    def test_env_overrides_yaml(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that environment variables override the file."""
        path = tmp_path / "updater.yml"
        path.write_text("registry:\n  owner: acme\n  repo: widget\n")
        monkeypatch.setenv(f"{ENV_PREFIX}REGISTRY__OWNER", "other")
        monkeypatch.setenv(f"{ENV_PREFIX}REGISTRY__TIMEOUT_SECONDS", "12")
        monkeypatch.setenv(f"{ENV_PREFIX}CURRENT_VERSION", "2.0")

        config = load_config(path, env_prefix=ENV_PREFIX)
        assert config.registry.owner == "other"
        assert config.registry.repo == "widget"
        assert config.registry.timeout_seconds == 12
        assert config.current_version == "2.0"


    def test_invalid_values_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that invalid merged values fail validation."""
        monkeypatch.setenv(f"{ENV_PREFIX}LOGGING__LEVEL", "loud")
        with pytest.raises(ValidationError):
            load_config(env_prefix=ENV_PREFIX)

    def test_env_string_fields_kept_verbatim(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that numeric or comma-separated values stay strings for str fields."""
        monkeypatch.setenv(f"{ENV_PREFIX}REGISTRY__TOKEN", "12345")
        monkeypatch.setenv(f"{ENV_PREFIX}REGISTRY__USER_AGENT", "widget,updater")
        monkeypatch.setenv(f"{ENV_PREFIX}REGISTRY__REPO", "2024")
        monkeypatch.setenv(f"{ENV_PREFIX}CURRENT_VERSION", "3")

        config = load_config(env_prefix=ENV_PREFIX)
        assert config.registry.token == "12345"
        assert config.registry.user_agent == "widget,updater"
        assert config.registry.repo == "2024"
        assert config.current_version == "3"

    def test_env_include_list(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that include lists accept one or several comma-separated names."""
        monkeypatch.setenv(f"{ENV_PREFIX}BACKUP__INCLUDE_LIST", "app,lib")
        assert load_config(env_prefix=ENV_PREFIX).backup.include_list == ["app", "lib"]

        monkeypatch.setenv(f"{ENV_PREFIX}BACKUP__INCLUDE_LIST", "app")
        assert load_config(env_prefix=ENV_PREFIX).backup.include_list == ["app"]

    def test_env_disables_flattening(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that boolean options are still typed from the environment."""
        monkeypatch.setenv(f"{ENV_PREFIX}ARCHIVE__FLATTEN_SINGLE_ROOT", "false")
        assert load_config(env_prefix=ENV_PREFIX).archive.flatten_single_root is False

    def test_command_line_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the host's command line plays no part in loading."""
        monkeypatch.setattr("sys.argv", ["host", "--log-level", "debug", "--debug"])
        config = load_config(env_prefix=ENV_PREFIX)
        assert config == UpdaterConfig()
        assert "debug_mode" not in LoggingConfig.model_fields
