"""
Error types for the self-updater.

This module defines the UpdaterError base class and the subclasses raised by
the update pipeline. Domain errors are expressed as UpdaterError subclasses
instead of ad-hoc status codes, so callers can inspect ``error_code`` and
``details`` or serialize the error with ``to_dict()``.

Pipeline error kinds:
- RegistryError: release registry unreachable or returned garbage
- ArtifactError: release artifact could not be downloaded or unpacked
- BackupError: the versioned backup could not be written
- SwapError: the live binaries could not be replaced
- PostInstallError: platform-specific finalization failed
"""

from __future__ import annotations

from typing import Any


class UpdaterError(Exception):
    """
    Base exception class for self-updater errors.

    Attributes:
        error_code: Internal error code string (e.g., "invalid_argument",
            "unavailable", "backup_failed").
        message: Human-readable error message.
        details: Optional structured details (e.g., paths, versions).

    Example:
        >>> raise UpdaterError(
        ...     error_code="backup_failed",
        ...     message="Could not copy app data",
        ...     details={"path": "/opt/app/data"},
        ... )
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize an UpdaterError.

        Args:
            error_code: Internal error code string identifying the error category.
            message: Human-readable error message.
            details: Optional dictionary with structured error details.
        """
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        """Return a detailed string representation."""
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r}, "
            f"details={self.details!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the error to a dictionary for serialization.

        Returns:
            Dictionary with error_code, message, and details.
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidArgumentError(UpdaterError):
    """Error raised for malformed input such as an unparseable version string."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InvalidArgumentError."""
        super().__init__(
            error_code="invalid_argument", message=message, details=details
        )


class UnavailableError(UpdaterError):
    """Error raised when a required resource or service is unavailable."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an UnavailableError."""
        super().__init__(error_code="unavailable", message=message, details=details)


class FailedPreconditionError(UpdaterError):
    """
    Error raised when a precondition for the operation is not met.

    Used when a directory cannot be created or the filesystem is in a state
    the operation cannot proceed from.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a FailedPreconditionError."""
        super().__init__(
            error_code="failed_precondition", message=message, details=details
        )


class InternalError(UpdaterError):
    """Error raised for unexpected internal errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InternalError."""
        super().__init__(error_code="internal", message=message, details=details)


# =============================================================================
# Update pipeline errors
# =============================================================================


class RegistryError(UnavailableError):
    """
    Error raised when the release registry cannot be queried.

    Covers network failures, non-success HTTP responses and payloads that
    cannot be parsed into a release. The update check recovers from this
    error locally; it is never surfaced to callers of ``check_for_updates``.
    """


class ReleaseNotFoundError(RegistryError):
    """Error raised when the registry reports that no release exists."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a ReleaseNotFoundError."""
        super().__init__(message=message, details=details)
        self.error_code = "not_found"


class ArtifactError(UpdaterError):
    """
    Error raised when the release artifact cannot be fetched or unpacked.

    Fatal to the current install attempt. Binaries have not been touched yet.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an ArtifactError."""
        super().__init__(
            error_code="artifact_failed", message=message, details=details
        )


class BackupError(UpdaterError):
    """
    Error raised when the versioned backup cannot be written.

    Fatal to the current install attempt. The new binaries have not been
    swapped in yet.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a BackupError."""
        super().__init__(error_code="backup_failed", message=message, details=details)


class SwapError(UpdaterError):
    """
    Error raised when the new binaries cannot be moved into place.

    The installation may be partially swapped. The versioned backup is the
    only recovery path and is not restored automatically.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a SwapError."""
        super().__init__(error_code="swap_failed", message=message, details=details)


class PostInstallError(UpdaterError):
    """Error raised when post-install finalization fails. The swap is kept."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a PostInstallError."""
        super().__init__(
            error_code="post_install_failed", message=message, details=details
        )
