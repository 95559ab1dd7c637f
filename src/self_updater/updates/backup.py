"""
Versioned backups of an installation.

A backup lives at ``<rollback_dir>/<current_version>-<UTC timestamp>`` and
holds two subtrees:
- bin/: the binary directory's entries, MOVED out (the binary directory is
  about to be replaced, so the backup becomes their only home)
- appdata/: the app-data directory's entries, COPIED (app data stays live)

App data is copied before any binary is moved, so a failed copy leaves the
live installation intact.

The app-data snapshot never includes the rollback directory, the backup being
written, or the user-owned ``userdata`` folder, at any depth below the app-data
directory. Backups are never deleted here; they are the recovery path for a
failed swap.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from self_updater.logging import get_logger
from self_updater.updates.operations import copy, move
from self_updater.updates.snapshot import DirectorySnapshot
from self_updater.updates.version import Version

logger = get_logger(__name__)

BIN_SUBDIR = "bin"
APPDATA_SUBDIR = "appdata"
USERDATA_DIR = "userdata"

# Microsecond resolution keeps back-to-back backups in distinct directories
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S-%f"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _populate(
    entries: Iterable[Path],
    target_dir: Path,
    file_op: Callable[[Path, Path], None],
) -> int:
    # Start from an empty subtree so a reused path never merges attempts
    if target_dir.exists():
        shutil.rmtree(target_dir)
    target_dir.mkdir(parents=True)

    count = 0
    for entry in entries:
        file_op(entry, target_dir / entry.name)
        count += 1
    return count


class BackupManager:
    """
    Builds timestamped backups of the binary and app-data directories.

    Attributes:
        current_version: Version being backed up; names the backup directory.
        binary_dir: Live binary directory.
        app_data_dir: Live application data directory.
        rollback_dir: Parent directory of all versioned backups.
        include_list: Binary entries to back up (names or fnmatch patterns).
            None backs up every entry.
        protected_dirs: Directories never moved out of the binary directory
            (e.g. the scratch directory when it lives there).
    """

    def __init__(
        self,
        current_version: Version,
        binary_dir: Path | str,
        app_data_dir: Path | str,
        rollback_dir: Path | str,
        *,
        include_list: Sequence[str] | None = None,
        protected_dirs: Iterable[Path | str] = (),
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.current_version = current_version
        self.binary_dir = Path(binary_dir)
        self.app_data_dir = Path(app_data_dir)
        self.rollback_dir = Path(rollback_dir)
        self.include_list = tuple(include_list) if include_list is not None else None
        self.protected_dirs = tuple(Path(p) for p in protected_dirs)
        self._clock = clock
        self._last_backup: Path | None = None

    @property
    def last_backup(self) -> Path | None:
        """Path of the most recent backup started by this manager."""
        return self._last_backup

    def versioned_backup_path(self) -> Path:
        """Compute the path for a new backup taken now."""
        timestamp = self._clock().strftime(TIMESTAMP_FORMAT)
        return self.rollback_dir / f"{self.current_version}-{timestamp}"

    def perform_backup(self) -> Path:
        """
        Snapshot the installation into a new versioned backup directory.

        The backup path is recorded as ``last_backup`` before any entry is
        transferred, so it is available even when a later step fails.

        Returns:
            The versioned backup directory.

        Raises:
            OSError: If any entry cannot be moved or copied.
        """
        backup_dir = self.versioned_backup_path()
        self._last_backup = backup_dir

        logger.info(
            "Creating versioned backup",
            extra={
                "backup_dir": str(backup_dir),
                "version": str(self.current_version),
            },
        )

        # App data first: a failure here leaves the live binaries in place
        copied = self._backup_app_data(backup_dir)
        moved = self._backup_binaries(backup_dir)

        logger.info(
            "Versioned backup complete",
            extra={
                "backup_dir": str(backup_dir),
                "binary_entries": moved,
                "appdata_entries": copied,
            },
        )
        return backup_dir

    def _backup_binaries(self, backup_dir: Path) -> int:
        entries = DirectorySnapshot(self.binary_dir).inclusive(
            self.include_list,
            never=(self.rollback_dir, backup_dir, *self.protected_dirs),
        )
        return _populate(entries, backup_dir / BIN_SUBDIR, move)

    def _backup_app_data(self, backup_dir: Path) -> int:
        excluded = (
            self.rollback_dir,
            backup_dir,
            self.app_data_dir / USERDATA_DIR,
        )
        entries = DirectorySnapshot(self.app_data_dir).exclusive(excluded)

        def copy_pruned(source: Path, target: Path) -> None:
            copy(source, target, exclude=excluded)

        return _populate(entries, backup_dir / APPDATA_SUBDIR, copy_pruned)
