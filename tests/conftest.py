"""
Pytest configuration for the self-updater tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (deselect with '-m \"not integration\"')",
    )


@pytest.fixture
def installation(tmp_path: Path) -> dict[str, Path]:
    """
    A small installation on disk.

    Layout:
        bin/app, bin/lib/core.so, bin/README
        appdata/settings.json, appdata/plugins/p.dll,
        appdata/userdata/profile.json, appdata/rollback/
    """
    binary_dir = tmp_path / "bin"
    (binary_dir / "lib").mkdir(parents=True)
    (binary_dir / "app").write_text("old app")
    (binary_dir / "lib" / "core.so").write_text("old core")
    (binary_dir / "README").write_text("old readme")

    app_data_dir = tmp_path / "appdata"
    (app_data_dir / "plugins").mkdir(parents=True)
    (app_data_dir / "settings.json").write_text('{"theme": "dark"}')
    (app_data_dir / "plugins" / "p.dll").write_text("plugin")
    (app_data_dir / "userdata").mkdir()
    (app_data_dir / "userdata" / "profile.json").write_text("{}")

    rollback_dir = app_data_dir / "rollback"
    rollback_dir.mkdir()

    return {
        "binary_dir": binary_dir,
        "app_data_dir": app_data_dir,
        "rollback_dir": rollback_dir,
        "download_dir": tmp_path / "download",
    }
