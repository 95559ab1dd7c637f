"""
Archive artifact backend for the self-updater.

This module implements ArchiveBackend, an UpdateBackend for releases that
ship the application as a single archive asset (.zip, .tar, .tar.gz/.tgz).

The update flow:
1. resolve_update: pick the first asset whose name matches ``asset_pattern``
2. download: stream the asset with httpx into a temporary file, then extract
   it into the scratch directory
3. post_install: nothing (inherited no-op)

Archives whose only top-level entry is a directory (``app-1.2.0/...``) are
flattened so the scratch directory holds the binaries themselves, unless the
backend is created with ``flatten_root=False``.
"""

from __future__ import annotations

import asyncio
import fnmatch
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

import httpx

from self_updater.errors import ArtifactError
from self_updater.logging import get_logger
from self_updater.updates.backends import AssetUpdateInfo, UpdateBackend
from self_updater.updates.release_source import ReleaseAsset, ReleaseDescriptor

if TYPE_CHECKING:
    from self_updater.config import ArchiveConfig, RegistryConfig

logger = get_logger(__name__)

# Archive limits
MAX_ARCHIVE_ENTRIES = 20_000
MAX_ARCHIVE_TOTAL_BYTES = 2 * 1024 * 1024 * 1024

DOWNLOAD_CHUNK_SIZE = 64 * 1024

_ZIP_SUFFIXES = (".zip",)
_TAR_SUFFIXES = (".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tar.xz")


def _safe_member_path(root: Path, name: str) -> Path:
    """Resolve an archive member name inside ``root`` or raise ArtifactError."""
    member = PurePosixPath(name.replace("\\", "/"))
    if member.is_absolute() or ".." in member.parts:
        raise ArtifactError(
            "Update archive contained an unsafe path",
            details={"member": name},
        )
    destination = (root / Path(*member.parts)).resolve()
    try:
        destination.relative_to(root)
    except ValueError as e:
        raise ArtifactError(
            "Update archive contained an unsafe path",
            details={"member": name},
        ) from e
    return destination


def _check_limits(entries: int, total_bytes: int) -> None:
    if entries > MAX_ARCHIVE_ENTRIES:
        raise ArtifactError(
            "Update archive contained too many entries",
            details={"entries": entries, "limit": MAX_ARCHIVE_ENTRIES},
        )
    if total_bytes > MAX_ARCHIVE_TOTAL_BYTES:
        raise ArtifactError(
            "Update archive expanded beyond safe limits",
            details={"bytes": total_bytes, "limit": MAX_ARCHIVE_TOTAL_BYTES},
        )


def extract_zip(archive_path: Path, target_dir: Path) -> int:
    """
    Extract a zip archive into ``target_dir``.

    Returns:
        Number of members extracted.

    Raises:
        ArtifactError: If the archive is corrupt or contains unsafe paths.
    """
    root = target_dir.resolve()
    total_bytes = 0
    count = 0
    try:
        with zipfile.ZipFile(archive_path) as archive:
            for member in archive.infolist():
                if not member.filename:
                    continue
                count += 1
                total_bytes += member.file_size
                _check_limits(count, total_bytes)

                destination = _safe_member_path(root, member.filename)
                if member.is_dir():
                    destination.mkdir(parents=True, exist_ok=True)
                    continue
                destination.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(member) as source, destination.open("wb") as target:
                    shutil.copyfileobj(source, target)

                # Keep unix permission bits (executables) when present
                mode = (member.external_attr >> 16) & 0o777
                if mode:
                    destination.chmod(mode)
    except (OSError, zipfile.BadZipFile) as e:
        raise ArtifactError(
            f"Failed to extract update archive: {e}",
            details={"archive": str(archive_path)},
        ) from e
    return count


def extract_tar(archive_path: Path, target_dir: Path) -> int:
    """
    Extract a (possibly compressed) tar archive into ``target_dir``.

    Only regular files, directories and symlinks pointing inside the archive
    are extracted; device nodes and hard links are rejected.

    Returns:
        Number of members extracted.

    Raises:
        ArtifactError: If the archive is corrupt or contains unsafe entries.
    """
    root = target_dir.resolve()
    total_bytes = 0
    count = 0
    try:
        with tarfile.open(archive_path, "r:*") as archive:
            for member in archive:
                count += 1
                total_bytes += member.size
                _check_limits(count, total_bytes)

                destination = _safe_member_path(root, member.name)
                if member.isdir():
                    destination.mkdir(parents=True, exist_ok=True)
                elif member.isfile():
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    source = archive.extractfile(member)
                    if source is None:
                        raise ArtifactError(
                            "Update archive member could not be read",
                            details={"member": member.name},
                        )
                    with source, destination.open("wb") as target:
                        shutil.copyfileobj(source, target)
                    destination.chmod(member.mode & 0o777)
                elif member.issym():
                    link_target = (destination.parent / member.linkname).resolve()
                    try:
                        link_target.relative_to(root)
                    except ValueError as e:
                        raise ArtifactError(
                            "Update archive contained a symlink leaving the archive",
                            details={"member": member.name, "link": member.linkname},
                        ) from e
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    destination.symlink_to(member.linkname)
                else:
                    raise ArtifactError(
                        "Update archive contained an unsupported entry type",
                        details={"member": member.name},
                    )
    except (OSError, tarfile.TarError) as e:
        raise ArtifactError(
            f"Failed to extract update archive: {e}",
            details={"archive": str(archive_path)},
        ) from e
    return count


def extract_archive(archive_path: Path, target_dir: Path) -> int:
    """
    Extract ``archive_path`` into ``target_dir`` based on its file name.

    Raises:
        ArtifactError: If the format is unsupported or extraction fails.
    """
    name = archive_path.name.lower()
    if name.endswith(_ZIP_SUFFIXES):
        return extract_zip(archive_path, target_dir)
    if name.endswith(_TAR_SUFFIXES):
        return extract_tar(archive_path, target_dir)
    raise ArtifactError(
        f"Unsupported archive format: {archive_path.name}",
        details={"supported": [*_ZIP_SUFFIXES, *_TAR_SUFFIXES]},
    )


def flatten_single_root(directory: Path) -> None:
    """
    Hoist the contents of a lone top-level directory into ``directory``.

    ``directory/app-1.2.0/{bin,lib}`` becomes ``directory/{bin,lib}``.
    Anything else is left as is.
    """
    children = list(directory.iterdir())
    if len(children) != 1 or not children[0].is_dir() or children[0].is_symlink():
        return

    wrapper = children[0]
    # Rename first so a child named like the wrapper cannot collide
    staging = directory / f".{wrapper.name}.unwrap"
    wrapper.rename(staging)
    for child in staging.iterdir():
        child.rename(directory / child.name)
    staging.rmdir()


class ArchiveBackend(UpdateBackend[AssetUpdateInfo]):
    """
    Update backend for releases distributed as one archive asset.

    Attributes:
        asset_pattern: fnmatch pattern selecting the asset to install.
        include_list: Binary entries the backup should move (None for all).
        flatten_root: Whether a lone top-level directory is unwrapped after
            extraction.
    """

    def __init__(
        self,
        asset_pattern: str,
        *,
        timeout_seconds: float = 300.0,
        user_agent: str = "self-updater",
        include_list: tuple[str, ...] | None = None,
        flatten_root: bool = True,
    ) -> None:
        """
        Initialize the ArchiveBackend.

        Args:
            asset_pattern: fnmatch pattern for the asset name, e.g.
                ``"*linux-x64.tar.gz"``.
            timeout_seconds: HTTP timeout for the download.
            user_agent: User-Agent header for the download.
            include_list: Binary entries the backup should move.
            flatten_root: Unwrap an archive whose only top-level entry is a
                directory. Disable for artifacts that ship a single bundle
                directory (e.g. ``Widget.app``) as the installed entry.
        """
        self.asset_pattern = asset_pattern
        self.include_list = include_list
        self.flatten_root = flatten_root
        self._timeout = timeout_seconds
        self._user_agent = user_agent

    @classmethod
    def from_config(
        cls,
        config: ArchiveConfig,
        registry: RegistryConfig | None = None,
    ) -> ArchiveBackend:
        """Create an ArchiveBackend from configuration."""
        if registry is None:
            return cls(
                config.asset_pattern, flatten_root=config.flatten_single_root
            )
        return cls(
            config.asset_pattern,
            timeout_seconds=registry.timeout_seconds,
            user_agent=registry.user_agent,
            flatten_root=config.flatten_single_root,
        )

    def select_asset(self, release: ReleaseDescriptor) -> ReleaseAsset | None:
        """Return the first asset matching ``asset_pattern``."""
        for asset in release.assets:
            if fnmatch.fnmatch(asset.name, self.asset_pattern):
                return asset
        return None

    async def resolve_update(self, release: ReleaseDescriptor) -> AssetUpdateInfo | None:
        """Describe the archive asset this backend would install."""
        asset = self.select_asset(release)
        if asset is None:
            logger.info(
                "Release has no matching asset",
                extra={"tag": release.tag_name, "pattern": self.asset_pattern},
            )
            return None
        return AssetUpdateInfo(
            version=release.version,
            release_notes=release.body,
            asset_name=asset.name,
            download_url=asset.download_url,
            size=asset.size,
        )

    async def download(self, release: ReleaseDescriptor, download_dir: Path) -> None:
        """Download the matching asset and extract it into ``download_dir``."""
        asset = self.select_asset(release)
        if asset is None:
            raise ArtifactError(
                f"Release {release.tag_name} has no asset matching {self.asset_pattern!r}",
                details={
                    "tag": release.tag_name,
                    "pattern": self.asset_pattern,
                    "assets": [a.name for a in release.assets],
                },
            )

        with tempfile.TemporaryDirectory(prefix="self-updater-asset-") as tmp:
            archive_path = Path(tmp) / asset.name
            await self._fetch(asset, archive_path)

            count = await asyncio.to_thread(extract_archive, archive_path, download_dir)
            if self.flatten_root:
                await asyncio.to_thread(flatten_single_root, download_dir)

        logger.info(
            "Extracted update archive",
            extra={"asset": asset.name, "entries": count, "target": str(download_dir)},
        )

    async def _fetch(self, asset: ReleaseAsset, destination: Path) -> None:
        logger.info(
            "Downloading release asset",
            extra={"asset": asset.name, "url": asset.download_url},
        )

        written = 0
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": self._user_agent},
            ) as client:
                async with client.stream("GET", asset.download_url) as response:
                    response.raise_for_status()
                    with destination.open("wb") as target:
                        async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                            target.write(chunk)
                            written += len(chunk)
        except httpx.HTTPError as e:
            raise ArtifactError(
                f"Failed to download release asset: {e}",
                details={"asset": asset.name, "url": asset.download_url},
            ) from e
        except OSError as e:
            raise ArtifactError(
                f"Failed to write release asset: {e}",
                details={"asset": asset.name, "path": str(destination)},
            ) from e

        if asset.size is not None and written != asset.size:
            raise ArtifactError(
                "Downloaded asset size does not match the release metadata",
                details={"asset": asset.name, "expected": asset.size, "actual": written},
            )
