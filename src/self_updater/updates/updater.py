"""
Update orchestrator for the self-updater.

This module implements the Updater class that ties the release source, the
artifact backend, the backup manager and the file transfer primitives into a
single install transaction:

    check -> download -> backup -> swap -> post-install -> installed

Install sentinel states:
- IDLE: updates may be checked and installed
- INSTALLING: one caller is running the install pipeline
- INSTALLED: an update was installed; checks report nothing until restart

Backup always completes before any binary is replaced. A failed swap is NOT
rolled back automatically; ``last_backup`` points at the backup a recovery
tool can restore from.
"""

from __future__ import annotations

import asyncio
import shutil
import tempfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generic

from pydantic import BaseModel, ConfigDict, Field

from self_updater import __version__
from self_updater.config import PathsConfig, RegistryConfig, UpdaterConfig
from self_updater.errors import (
    ArtifactError,
    BackupError,
    PostInstallError,
    SwapError,
    UpdaterError,
)
from self_updater.logging import get_logger
from self_updater.updates.backends import InstallContext, UpdateBackend, UpdateInfoT
from self_updater.updates.backup import BackupManager
from self_updater.updates.operations import ensure_directory, move
from self_updater.updates.release_source import (
    GitHubReleaseSource,
    ReleaseDescriptor,
    ReleaseSource,
)
from self_updater.updates.sentinel import InstallSentinel, InstallState
from self_updater.updates.version import Version

logger = get_logger(__name__)

DOWNLOAD_DIR_PREFIX = "self-updater-"


class InstallationPaths(BaseModel):
    """
    Directory layout of an installation.

    Attributes:
        binary_dir: Live executable and libraries; replaced by an update.
        app_data_dir: Mutable application state; preserved across updates.
        rollback_dir: Parent of all versioned backups.
        download_dir: Scratch directory the backend unpacks updates into.
    """

    model_config = ConfigDict(frozen=True)

    binary_dir: Path = Field(..., description="Live binary directory")
    app_data_dir: Path = Field(..., description="Application data directory")
    rollback_dir: Path = Field(..., description="Parent of versioned backups")
    download_dir: Path = Field(..., description="Scratch directory for downloads")

    @classmethod
    def from_config(
        cls, config: PathsConfig, download_dir: Path | None = None
    ) -> InstallationPaths:
        """Build paths from configuration, creating a fresh scratch directory."""
        return cls(
            binary_dir=Path(config.binary_dir),
            app_data_dir=Path(config.app_data_dir),
            rollback_dir=Path(config.rollback_dir),
            download_dir=download_dir or _new_download_dir(),
        )


def _new_download_dir() -> Path:
    return Path(tempfile.mkdtemp(prefix=DOWNLOAD_DIR_PREFIX))


def _reset_directory(path: Path) -> None:
    # Leftovers of a failed attempt must not leak into the next swap
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)


@contextmanager
def _pipeline_step(
    step: str,
    error_cls: type[UpdaterError],
    **details: Any,
) -> Iterator[None]:
    """Log a pipeline step and translate its failures into ``error_cls``."""
    logger.info(f"Install step: {step}", extra={"step": step, **details})
    try:
        yield
    except UpdaterError:
        raise
    except Exception as e:
        raise error_cls(
            f"{step.capitalize()} failed: {e}",
            details={"step": step, "error": str(e), **details},
        ) from e


class Updater(Generic[UpdateInfoT]):
    """
    Checks for, downloads and installs application updates.

    The rollback and download directories exist once the Updater is
    constructed. One Updater owns one scratch directory for its lifetime.

    Attributes:
        current_version: Version of the running installation.
        paths: Installation directory layout.
        backend: Platform-specific artifact backend.
        release_source: Where release metadata comes from.
    """

    def __init__(
        self,
        backend: UpdateBackend[UpdateInfoT],
        binary_dir: Path | str,
        app_data_dir: Path | str,
        rollback_dir: Path | str,
        *,
        current_version: Version | str | None = None,
        release_source: ReleaseSource | None = None,
        download_dir: Path | str | None = None,
        include_list: Sequence[str] | None = None,
        backup_manager: BackupManager | None = None,
    ) -> None:
        """
        Initialize the Updater.

        Args:
            backend: Artifact backend for the deployment target.
            binary_dir: Live binary directory.
            app_data_dir: Application data directory.
            rollback_dir: Parent directory for versioned backups.
            current_version: Installed version. Defaults to this package's
                own version.
            release_source: Release metadata source. Defaults to the
                registry named by the default RegistryConfig.
            download_dir: Scratch directory. Defaults to a new randomly named
                directory under the system temp directory.
            include_list: Binary entries to back up. Overrides the
                backend's own include list when given.
            backup_manager: Custom backup manager. Defaults to one built from
                the paths and the include list.
        """
        if current_version is None:
            current_version = Version.parse(__version__)
        elif isinstance(current_version, str):
            current_version = Version.from_tag(current_version)

        self._current_version = current_version
        self._backend = backend
        self._release_source = release_source or GitHubReleaseSource.from_config(
            RegistryConfig()
        )
        self._paths = InstallationPaths(
            binary_dir=Path(binary_dir),
            app_data_dir=Path(app_data_dir),
            rollback_dir=Path(rollback_dir),
            download_dir=Path(download_dir) if download_dir else _new_download_dir(),
        )

        ensure_directory(self._paths.rollback_dir)
        ensure_directory(self._paths.download_dir)

        self._backup_manager = backup_manager or BackupManager(
            current_version,
            self._paths.binary_dir,
            self._paths.app_data_dir,
            self._paths.rollback_dir,
            include_list=(
                include_list if include_list is not None else backend.include_list
            ),
            protected_dirs=(self._paths.download_dir,),
        )
        self._sentinel = InstallSentinel()
        self._latest_release: ReleaseDescriptor | None = None

    @classmethod
    def from_config(
        cls,
        config: UpdaterConfig,
        backend: UpdateBackend[UpdateInfoT],
        *,
        release_source: ReleaseSource | None = None,
    ) -> Updater[UpdateInfoT]:
        """Create an Updater from configuration."""
        return cls(
            backend,
            config.paths.binary_dir,
            config.paths.app_data_dir,
            config.paths.rollback_dir,
            current_version=config.current_version,
            include_list=config.backup.include_list,
            release_source=release_source
            or GitHubReleaseSource.from_config(config.registry),
        )

    @property
    def current_version(self) -> Version:
        """Version of the running installation."""
        return self._current_version

    @property
    def paths(self) -> InstallationPaths:
        """Installation directory layout."""
        return self._paths

    @property
    def download_dir(self) -> Path:
        """Scratch directory the backend unpacks updates into."""
        return self._paths.download_dir

    @property
    def backend(self) -> UpdateBackend[UpdateInfoT]:
        """Artifact backend."""
        return self._backend

    @property
    def release_source(self) -> ReleaseSource:
        """Release metadata source."""
        return self._release_source

    @property
    def state(self) -> InstallState:
        """Current install sentinel state."""
        return self._sentinel.state

    @property
    def latest_release(self) -> ReleaseDescriptor | None:
        """Release cached by the last check, if any."""
        return self._latest_release

    @property
    def last_backup(self) -> Path | None:
        """Versioned backup directory of the last install attempt, if any."""
        return self._backup_manager.last_backup

    async def check_for_updates(self, forced: bool = True) -> bool:
        """
        Check whether a newer release than the running version exists.

        Never raises: registry and parsing failures are logged and reported
        as "no update".

        Args:
            forced: Query the registry even if a release is already cached.

        Returns:
            True if the latest release is newer than the current version.
        """
        if self._sentinel.state == InstallState.INSTALLED:
            return False

        try:
            if forced or self._latest_release is None:
                self._latest_release = await self._release_source.get_latest_release()

            latest_version = self._latest_release.version
        except Exception as e:
            logger.warning(
                f"Update check failed: {e}",
                exc_info=True,
                extra={"forced": forced},
            )
            return False

        available = latest_version > self._current_version
        logger.info(
            "Update available" if available else "No update available",
            extra={
                "current_version": str(self._current_version),
                "latest_version": str(latest_version),
            },
        )
        return available

    async def get_info(self) -> UpdateInfoT | None:
        """
        Describe the update the backend would install.

        Returns:
            The backend's UpdateInfo if it is newer than the current version,
            otherwise None. Always None once an update has been installed.
        """
        if self._sentinel.state == InstallState.INSTALLED:
            return None

        try:
            release = self._latest_release
            if release is None:
                release = await self._release_source.get_latest_release()
                self._latest_release = release

            update = await self._backend.resolve_update(release)
        except Exception as e:
            logger.warning(f"Failed to resolve update info: {e}", exc_info=True)
            return None

        if update is not None and update.version > self._current_version:
            return update
        return None

    async def install_update(self) -> None:
        """
        Install the latest release if it is newer than the current version.

        Only one install runs at a time. A call made while another install is
        in flight, or after one has completed, returns immediately without
        doing anything.

        Raises:
            ArtifactError: If the download failed.
            BackupError: If the backup failed; binaries are untouched.
            SwapError: If replacing binaries failed; see ``last_backup``.
            PostInstallError: If finalization failed; the swap is kept.
        """
        if not self._sentinel.compare_and_set(InstallState.IDLE, InstallState.INSTALLING):
            logger.debug(
                "Install skipped: already in progress or installed",
                extra={"state": self._sentinel.state.name},
            )
            return

        installed = False
        try:
            available = await self.check_for_updates(forced=False)
            release = self._latest_release
            if available and release is not None:
                await self.install(release)
                installed = True
        finally:
            self._sentinel.store(
                InstallState.INSTALLED if installed else InstallState.IDLE
            )

        if installed:
            logger.info(
                "Update installed",
                extra={
                    "previous_version": str(self._current_version),
                    "backup_dir": str(self.last_backup),
                },
            )

    async def install(self, release: ReleaseDescriptor) -> None:
        """
        Run the install pipeline for ``release``.

        Steps run strictly in order: download, backup, swap, post-install.
        Subclasses may override to add steps; the sentinel handling in
        ``install_update`` wraps whatever this does.
        """
        paths = self._paths

        with _pipeline_step("download", ArtifactError, tag=release.tag_name):
            await asyncio.to_thread(_reset_directory, paths.download_dir)
            await self._backend.download(release, paths.download_dir)

        with _pipeline_step("backup", BackupError, rollback_dir=str(paths.rollback_dir)):
            await asyncio.to_thread(self._backup_manager.perform_backup)

        with _pipeline_step(
            "swap",
            SwapError,
            binary_dir=str(paths.binary_dir),
            backup_dir=str(self.last_backup),
        ):
            await asyncio.to_thread(move, paths.download_dir, paths.binary_dir)

        with _pipeline_step("post_install", PostInstallError):
            await self._backend.post_install(
                InstallContext(
                    release=release,
                    previous_version=self._current_version,
                    binary_dir=paths.binary_dir,
                    app_data_dir=paths.app_data_dir,
                    backup_dir=self.last_backup,
                )
            )

    def get_status(self) -> dict[str, Any]:
        """
        Get a snapshot of the updater's status.

        Returns:
            Dictionary with current status.
        """
        release = self._latest_release
        return {
            "state": self._sentinel.state.name.lower(),
            "current_version": str(self._current_version),
            "latest_tag": release.tag_name if release else None,
            "last_backup": str(self.last_backup) if self.last_backup else None,
            "binary_dir": str(self._paths.binary_dir),
            "app_data_dir": str(self._paths.app_data_dir),
            "rollback_dir": str(self._paths.rollback_dir),
            "download_dir": str(self._paths.download_dir),
        }
