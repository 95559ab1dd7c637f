"""
Self-update mechanism.

This package implements the update pipeline:
- Version parsing and ordering
- Release registry access (GitHub Releases)
- Artifact backend abstraction and an archive-based backend
- Directory snapshots and move/copy primitives
- Versioned backups of binaries and app data
- The Updater orchestrator and its install sentinel
"""

from self_updater.updates.archive_backend import ArchiveBackend
from self_updater.updates.backends import (
    AssetUpdateInfo,
    InstallContext,
    UpdateBackend,
    UpdateInfo,
)
from self_updater.updates.backup import BackupManager
from self_updater.updates.operations import (
    copy,
    ensure_directory,
    move,
    safe_remove_directory,
)
from self_updater.updates.release_source import (
    GitHubReleaseSource,
    ReleaseAsset,
    ReleaseDescriptor,
    ReleaseSource,
)
from self_updater.updates.sentinel import InstallSentinel, InstallState
from self_updater.updates.snapshot import DirectorySnapshot
from self_updater.updates.updater import InstallationPaths, Updater
from self_updater.updates.version import Version, compare_versions, is_newer

__all__ = [
    # Versions
    "Version",
    "compare_versions",
    "is_newer",
    # Releases
    "ReleaseSource",
    "GitHubReleaseSource",
    "ReleaseDescriptor",
    "ReleaseAsset",
    # Backends
    "UpdateBackend",
    "UpdateInfo",
    "AssetUpdateInfo",
    "InstallContext",
    "ArchiveBackend",
    # Filesystem
    "move",
    "copy",
    "ensure_directory",
    "safe_remove_directory",
    "DirectorySnapshot",
    # Backup
    "BackupManager",
    # Orchestration
    "Updater",
    "InstallationPaths",
    "InstallSentinel",
    "InstallState",
]
