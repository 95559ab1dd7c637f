"""
Artifact backend abstraction for the self-updater.

This module defines the UpdateBackend abstract base class and the UpdateInfo
model. A backend is selected per deployment target and supplies the three
platform-specific capabilities of an update:
- resolve_update: derive an UpdateInfo from a release (which asset, etc.)
- download: populate the scratch directory with the new binaries
- post_install: platform finalization after the swap (no-op by default)

The backend abstraction separates "how to obtain and finalize the update" from
the backup, swap and state handling done by the Updater.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from self_updater.updates.release_source import ReleaseDescriptor
from self_updater.updates.version import Version


class UpdateInfo(BaseModel):
    """
    Describes an update a backend is able to install.

    Backends subclass this to carry their own fields (asset URL, checksum...).

    Attributes:
        version: Version of the update.
        release_notes: Optional release notes for display.
    """

    model_config = ConfigDict(frozen=True)

    version: Version = Field(..., description="Version of the update")
    release_notes: str | None = Field(
        default=None,
        description="Release notes for display",
    )


class AssetUpdateInfo(UpdateInfo):
    """
    UpdateInfo for backends that install a single release asset.

    Attributes:
        asset_name: File name of the selected asset.
        download_url: Direct download URL of the asset.
        size: Asset size in bytes, if reported.
    """

    asset_name: str = Field(..., description="Selected asset file name")
    download_url: str = Field(..., description="Asset download URL")
    size: int | None = Field(default=None, ge=0, description="Asset size in bytes")


class InstallContext(BaseModel):
    """
    What a backend's post_install hook gets to see of a finished swap.

    Attributes:
        release: The release that was installed.
        previous_version: Version that was replaced.
        binary_dir: Live binary directory, now holding the new binaries.
        app_data_dir: Application data directory.
        backup_dir: Versioned backup of the replaced installation.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    release: ReleaseDescriptor
    previous_version: Version
    binary_dir: Path
    app_data_dir: Path
    backup_dir: Path | None = None


UpdateInfoT = TypeVar("UpdateInfoT", bound=UpdateInfo)


class UpdateBackend(ABC, Generic[UpdateInfoT]):
    """
    Abstract base class for artifact backends.

    Attributes:
        include_list: Names (or fnmatch patterns) of binary directory entries
            the backup should move. None moves every entry.
    """

    include_list: tuple[str, ...] | None = None

    @abstractmethod
    async def resolve_update(self, release: ReleaseDescriptor) -> UpdateInfoT | None:
        """
        Derive the platform-specific update description for a release.

        Args:
            release: Release metadata from the registry.

        Returns:
            The update description, or None if this release has nothing
            installable for this platform.
        """

    @abstractmethod
    async def download(self, release: ReleaseDescriptor, download_dir: Path) -> None:
        """
        Fetch the release artifact and unpack it into ``download_dir``.

        After this returns, ``download_dir`` must hold exactly the files that
        will replace the binary directory's contents.

        Args:
            release: Release to download.
            download_dir: Existing scratch directory to populate.

        Raises:
            ArtifactError: If the artifact is missing, corrupt or cannot be
                downloaded.
        """

    async def post_install(self, context: InstallContext) -> None:
        """
        Finalize an installation after the new binaries are in place.

        The default does nothing. Typical overrides fix file permissions or
        signal the host to relaunch.

        Args:
            context: Details of the finished swap.
        """
        return None

