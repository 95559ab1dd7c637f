"""
Release registry access for the self-updater.

This module defines the ReleaseDescriptor/ReleaseAsset models and the
ReleaseSource abstraction the orchestrator queries for the latest release.
GitHubReleaseSource implements it against the GitHub Releases REST API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from self_updater.errors import RegistryError, ReleaseNotFoundError
from self_updater.logging import get_logger
from self_updater.updates.version import Version

if TYPE_CHECKING:
    from self_updater.config import RegistryConfig

logger = get_logger(__name__)

GITHUB_API_VERSION = "2022-11-28"


class ReleaseAsset(BaseModel):
    """
    A downloadable file attached to a release.

    Attributes:
        name: File name of the asset.
        download_url: Direct download URL.
        size: Size in bytes, if reported.
        content_type: MIME type, if reported.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Asset file name")
    download_url: str = Field(
        ...,
        alias="browser_download_url",
        description="Direct download URL",
    )
    size: int | None = Field(default=None, ge=0, description="Size in bytes")
    content_type: str | None = Field(default=None, description="MIME type")


class ReleaseDescriptor(BaseModel):
    """
    Identity of a published release.

    Immutable once fetched. The orchestrator caches one until the next
    forced update check.

    Attributes:
        tag_name: Release tag, e.g. "v1.2.0".
        name: Display name of the release.
        body: Release notes.
        html_url: Web page of the release.
        published_at: Publication timestamp as reported by the registry.
        prerelease: Whether the registry marks this as a pre-release.
        assets: Downloadable assets.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tag_name: str = Field(..., min_length=1, description="Release tag")
    name: str | None = Field(default=None, description="Release display name")
    body: str | None = Field(default=None, description="Release notes")
    html_url: str | None = Field(default=None, description="Release web page")
    published_at: str | None = Field(
        default=None,
        description="ISO 8601 publication timestamp",
    )
    prerelease: bool = Field(default=False, description="Pre-release flag")
    assets: tuple[ReleaseAsset, ...] = Field(
        default=(),
        description="Downloadable assets",
    )

    @property
    def version(self) -> Version:
        """
        Version parsed from the tag.

        Raises:
            InvalidArgumentError: If the tag holds no valid version.
        """
        return Version.from_tag(self.tag_name)

    def find_asset(self, name: str) -> ReleaseAsset | None:
        """Return the asset with the given file name, if present."""
        for asset in self.assets:
            if asset.name == name:
                return asset
        return None


class ReleaseSource(ABC):
    """
    Abstract source of release metadata.

    Implementations must raise RegistryError (or ReleaseNotFoundError) for any
    failure so the update check can recover from it uniformly.
    """

    @abstractmethod
    async def get_latest_release(self) -> ReleaseDescriptor:
        """
        Fetch the latest published release.

        Raises:
            ReleaseNotFoundError: If the registry has no release.
            RegistryError: On network, HTTP or parse failure.
        """


class GitHubReleaseSource(ReleaseSource):
    """
    Fetches the latest release of a GitHub repository.

    Example:
        >>> source = GitHubReleaseSource("OpenTabletDriver", "OpenTabletDriver")
        >>> release = await source.get_latest_release()
        >>> release.tag_name
        'v0.6.4.0'
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        *,
        api_url: str = "https://api.github.com",
        timeout_seconds: float = 30.0,
        token: str | None = None,
        user_agent: str = "self-updater",
    ) -> None:
        """
        Initialize the GitHub release source.

        Args:
            owner: Repository owner.
            repo: Repository name.
            api_url: Base URL of the GitHub REST API.
            timeout_seconds: HTTP timeout.
            token: Optional token for authenticated (higher rate limit) requests.
            user_agent: User-Agent header; GitHub rejects requests without one.
        """
        self._owner = owner
        self._repo = repo
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout_seconds
        self._token = token
        self._user_agent = user_agent

    @classmethod
    def from_config(cls, config: RegistryConfig) -> GitHubReleaseSource:
        """Create a GitHubReleaseSource from configuration."""
        return cls(
            owner=config.owner,
            repo=config.repo,
            api_url=config.api_url,
            timeout_seconds=config.timeout_seconds,
            token=config.token,
            user_agent=config.user_agent,
        )

    @property
    def latest_release_url(self) -> str:
        """URL of the latest-release endpoint."""
        return f"{self._api_url}/repos/{self._owner}/{self._repo}/releases/latest"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self._user_agent,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def get_latest_release(self) -> ReleaseDescriptor:
        """Fetch and parse the latest release."""
        url = self.latest_release_url
        details = {"owner": self._owner, "repo": self._repo, "url": url}

        logger.debug("Fetching latest release", extra=details)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, headers=self._headers())
                if response.status_code == 404:
                    raise ReleaseNotFoundError(
                        f"No published release for {self._owner}/{self._repo}",
                        details=details,
                    )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            raise RegistryError(
                f"Failed to fetch latest release: {e}",
                details={**details, "error": str(e)},
            ) from e
        except ValueError as e:
            raise RegistryError(
                f"Invalid release response: {e}",
                details=details,
            ) from e

        return self._parse_release(payload, details)

    def _parse_release(
        self, payload: Any, details: dict[str, Any]
    ) -> ReleaseDescriptor:
        if not isinstance(payload, dict):
            raise RegistryError("Release response is not a JSON object", details=details)

        try:
            release = ReleaseDescriptor.model_validate(payload)
        except ValidationError as e:
            raise RegistryError(
                f"Failed to parse release: {e.error_count()} validation error(s)",
                details={**details, "errors": e.errors(include_url=False)},
            ) from e

        logger.debug(
            "Fetched release",
            extra={"tag": release.tag_name, "assets": len(release.assets)},
        )
        return release
