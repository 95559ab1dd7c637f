"""
Tests for release registry access.

Tests cover:
- ReleaseDescriptor / ReleaseAsset parsing
- GitHubReleaseSource request construction
- Error handling for network, HTTP and payload failures
"""

from __future__ import annotations

from typing import Any
from unittest import mock

import httpx
import pytest

from self_updater.config import RegistryConfig
from self_updater.errors import InvalidArgumentError, RegistryError, ReleaseNotFoundError
from self_updater.updates.release_source import (
    GitHubReleaseSource,
    ReleaseAsset,
    ReleaseDescriptor,
)
from self_updater.updates.version import Version

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def sample_release() -> dict[str, Any]:
    """Sample GitHub latest-release payload."""
    return {
        "url": "https://api.github.com/repos/acme/widget/releases/1",
        "html_url": "https://github.com/acme/widget/releases/tag/v1.2.0",
        "tag_name": "v1.2.0",
        "name": "Widget 1.2.0",
        "body": "Bug fixes",
        "prerelease": False,
        "published_at": "2024-05-01T12:00:00Z",
        "assets": [
            {
                "name": "widget-linux-x64.tar.gz",
                "browser_download_url": "https://example.com/widget-linux-x64.tar.gz",
                "size": 1024,
                "content_type": "application/gzip",
            },
            {
                "name": "widget-win-x64.zip",
                "browser_download_url": "https://example.com/widget-win-x64.zip",
                "size": 2048,
            },
        ],
    }


@pytest.fixture
def source() -> GitHubReleaseSource:
    """Create a GitHubReleaseSource for testing."""
    return GitHubReleaseSource("acme", "widget", timeout_seconds=5.0)


def _response(payload: Any = None, status_code: int = 200) -> mock.MagicMock:
    response = mock.MagicMock()  # json() is sync
    response.status_code = status_code
    response.json.return_value = payload
    response.raise_for_status = mock.Mock()
    return response


# =============================================================================
# Model Tests
# =============================================================================


class TestReleaseDescriptor:
    """Tests for the release models."""

    def test_parse_payload(self, sample_release: dict[str, Any]) -> None:
        """Test parsing a registry payload, ignoring unknown fields."""
        release = ReleaseDescriptor.model_validate(sample_release)
        assert release.tag_name == "v1.2.0"
        assert release.version == Version.parse("1.2.0")
        assert len(release.assets) == 2
        assert release.assets[0].download_url.endswith("linux-x64.tar.gz")

    def test_find_asset(self, sample_release: dict[str, Any]) -> None:
        """Test finding an asset by name."""
        release = ReleaseDescriptor.model_validate(sample_release)
        asset = release.find_asset("widget-win-x64.zip")
        assert asset is not None
        assert asset.size == 2048
        assert release.find_asset("missing.zip") is None

    def test_asset_by_field_name(self) -> None:
        """Test building an asset with the Python field name."""
        asset = ReleaseAsset(name="a.zip", download_url="https://example.com/a.zip")
        assert asset.download_url == "https://example.com/a.zip"

    def test_unparseable_tag(self) -> None:
        """Test that a tag without a version fails on access."""
        release = ReleaseDescriptor(tag_name="nightly")
        with pytest.raises(InvalidArgumentError):
            _ = release.version

    def test_frozen(self) -> None:
        """Test that descriptors are immutable."""
        release = ReleaseDescriptor(tag_name="v1.0.0")
        with pytest.raises(ValueError):
            release.tag_name = "v2.0.0"  # type: ignore[misc]


# =============================================================================
# GitHubReleaseSource Tests
# =============================================================================


class TestGitHubReleaseSource:
    """Tests for GitHubReleaseSource."""

    def test_latest_release_url(self, source: GitHubReleaseSource) -> None:
        """Test the endpoint URL."""
        assert source.latest_release_url == (
            "https://api.github.com/repos/acme/widget/releases/latest"
        )

    def test_from_config(self) -> None:
        """Test creation from RegistryConfig."""
        config = RegistryConfig(
            owner="acme", repo="widget", api_url="https://ghe.local/api/v3/"
        )
        source = GitHubReleaseSource.from_config(config)
        assert source.latest_release_url == (
            "https://ghe.local/api/v3/repos/acme/widget/releases/latest"
        )

    @pytest.mark.asyncio
    async def test_get_latest_release_success(
        self, source: GitHubReleaseSource, sample_release: dict[str, Any]
    ) -> None:
        """Test a successful fetch."""
        with mock.patch("httpx.AsyncClient") as mock_client_class:
            mock_client = mock.AsyncMock()
            mock_client.get.return_value = _response(sample_release)
            mock_client_class.return_value.__aenter__.return_value = mock_client

            release = await source.get_latest_release()

            assert release.tag_name == "v1.2.0"
            mock_client_class.assert_called_once_with(timeout=5.0)
            url = mock_client.get.call_args.args[0]
            headers = mock_client.get.call_args.kwargs["headers"]
            assert url == source.latest_release_url
            assert headers["Accept"] == "application/vnd.github+json"
            assert headers["User-Agent"] == "self-updater"
            assert "Authorization" not in headers

    @pytest.mark.asyncio
    async def test_token_sent_as_bearer(self, sample_release: dict[str, Any]) -> None:
        """Test that a configured token is sent."""
        source = GitHubReleaseSource("acme", "widget", token="secret")
        with mock.patch("httpx.AsyncClient") as mock_client_class:
            mock_client = mock.AsyncMock()
            mock_client.get.return_value = _response(sample_release)
            mock_client_class.return_value.__aenter__.return_value = mock_client

            await source.get_latest_release()

            headers = mock_client.get.call_args.kwargs["headers"]
            assert headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_not_found(self, source: GitHubReleaseSource) -> None:
        """Test that a 404 means no release exists."""
        with mock.patch("httpx.AsyncClient") as mock_client_class:
            mock_client = mock.AsyncMock()
            mock_client.get.return_value = _response({"message": "Not Found"}, 404)
            mock_client_class.return_value.__aenter__.return_value = mock_client

            with pytest.raises(ReleaseNotFoundError):
                await source.get_latest_release()

    @pytest.mark.asyncio
    async def test_http_error_status(self, source: GitHubReleaseSource) -> None:
        """Test that a non-success status becomes RegistryError."""
        request = httpx.Request("GET", source.latest_release_url)
        response = _response(status_code=503)
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Service Unavailable",
            request=request,
            response=httpx.Response(503, request=request),
        )
        with mock.patch("httpx.AsyncClient") as mock_client_class:
            mock_client = mock.AsyncMock()
            mock_client.get.return_value = response
            mock_client_class.return_value.__aenter__.return_value = mock_client

            with pytest.raises(RegistryError, match="Failed to fetch latest release"):
                await source.get_latest_release()

    @pytest.mark.asyncio
    async def test_network_error(self, source: GitHubReleaseSource) -> None:
        """Test error handling for network failures."""
        with mock.patch("httpx.AsyncClient") as mock_client_class:
            mock_client = mock.AsyncMock()
            mock_client.get.side_effect = httpx.ConnectError("Connection failed")
            mock_client_class.return_value.__aenter__.return_value = mock_client

            with pytest.raises(RegistryError, match="Failed to fetch latest release"):
                await source.get_latest_release()

    @pytest.mark.asyncio
    async def test_invalid_json(self, source: GitHubReleaseSource) -> None:
        """Test error handling for invalid JSON."""
        response = _response()
        response.json.side_effect = ValueError("Invalid JSON")
        with mock.patch("httpx.AsyncClient") as mock_client_class:
            mock_client = mock.AsyncMock()
            mock_client.get.return_value = response
            mock_client_class.return_value.__aenter__.return_value = mock_client

            with pytest.raises(RegistryError, match="Invalid release response"):
                await source.get_latest_release()

    @pytest.mark.asyncio
    async def test_payload_not_object(self, source: GitHubReleaseSource) -> None:
        """Test that a JSON array is rejected."""
        with mock.patch("httpx.AsyncClient") as mock_client_class:
            mock_client = mock.AsyncMock()
            mock_client.get.return_value = _response([1, 2, 3])
            mock_client_class.return_value.__aenter__.return_value = mock_client

            with pytest.raises(RegistryError, match="not a JSON object"):
                await source.get_latest_release()

    @pytest.mark.asyncio
    async def test_payload_missing_tag(self, source: GitHubReleaseSource) -> None:
        """Test that a payload without tag_name is rejected."""
        with mock.patch("httpx.AsyncClient") as mock_client_class:
            mock_client = mock.AsyncMock()
            mock_client.get.return_value = _response({"name": "no tag"})
            mock_client_class.return_value.__aenter__.return_value = mock_client

            with pytest.raises(RegistryError, match="Failed to parse release"):
                await source.get_latest_release()
