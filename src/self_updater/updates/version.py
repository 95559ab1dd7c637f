"""
Version parsing and ordering for the self-updater.

Release tags are compared against the running version with a total order in
which every numeric component compares numerically ("2.10.0" > "2.9.0").

Accepted forms:
- 1 to 4 numeric components: 1, 1.2, 1.2.3, 1.2.3.4
- optional pre-release suffix: 1.2.0-beta.1 (sorts before 1.2.0)
- optional build metadata: 1.2.0+g1a2b3c (ignored for ordering)

Tags may carry a leading non-numeric prefix ("v1.2.0", "release-1.2.0")
which ``Version.from_tag`` strips.
"""

from __future__ import annotations

import functools
import re
from typing import Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

from self_updater.errors import InvalidArgumentError

VERSION_PATTERN = re.compile(
    r"^(?P<release>\d+(?:\.\d+){0,3})"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<buildmetadata>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

_TAG_PREFIX = re.compile(r"^[^0-9]*")

# Components are padded to this width so 1.2 == 1.2.0 == 1.2.0.0
_RELEASE_WIDTH = 4


def _prerelease_key(prerelease: str | None) -> tuple[Any, ...]:
    # A release without suffix sorts after every pre-release of it
    if prerelease is None:
        return (1,)
    identifiers = []
    for part in prerelease.split("."):
        if part.isdigit():
            identifiers.append((0, int(part), ""))
        else:
            identifiers.append((1, 0, part))
    return (0, *identifiers)


@functools.total_ordering
class Version:
    """
    An ordered release version.

    Attributes:
        release: Numeric components, as given (1 to 4 of them).
        prerelease: Pre-release identifier, or None.
        build: Build metadata, or None. Not part of the ordering.

    Example:
        >>> Version.from_tag("v2.10.0") > Version.parse("2.9.0")
        True
    """

    __slots__ = ("release", "prerelease", "build")

    def __init__(
        self,
        release: tuple[int, ...],
        prerelease: str | None = None,
        build: str | None = None,
    ) -> None:
        if not 1 <= len(release) <= _RELEASE_WIDTH:
            raise InvalidArgumentError(
                f"Version must have 1 to {_RELEASE_WIDTH} numeric components",
                details={"release": list(release)},
            )
        if any(part < 0 for part in release):
            raise InvalidArgumentError(
                "Version components must not be negative",
                details={"release": list(release)},
            )
        self.release = tuple(release)
        self.prerelease = prerelease
        self.build = build

    @classmethod
    def parse(cls, version: str) -> Version:
        """
        Parse a version string without a tag prefix.

        Raises:
            InvalidArgumentError: If the string is not a valid version.
        """
        if not version:
            raise InvalidArgumentError(
                "Version string cannot be empty",
                details={"version": version},
            )

        match = VERSION_PATTERN.match(version.strip())
        if not match:
            raise InvalidArgumentError(
                f"Invalid version: {version}",
                details={
                    "version": version,
                    "format": "N[.N[.N[.N]]][-PRERELEASE][+BUILD]",
                    "examples": ["1.0.0", "0.6.4.0", "2.0.0-beta.1"],
                },
            )

        return cls(
            tuple(int(part) for part in match.group("release").split(".")),
            match.group("prerelease"),
            match.group("buildmetadata"),
        )

    @classmethod
    def from_tag(cls, tag: str) -> Version:
        """
        Parse a release tag, stripping any leading non-numeric prefix.

        Raises:
            InvalidArgumentError: If no valid version remains after stripping.
        """
        stripped = _TAG_PREFIX.sub("", tag.strip())
        try:
            return cls.parse(stripped)
        except InvalidArgumentError as e:
            raise InvalidArgumentError(
                f"Release tag does not contain a valid version: {tag!r}",
                details={"tag": tag},
            ) from e

    @property
    def is_prerelease(self) -> bool:
        """Whether this version carries a pre-release suffix."""
        return self.prerelease is not None

    def _key(self) -> tuple[Any, ...]:
        padded = self.release + (0,) * (_RELEASE_WIDTH - len(self.release))
        return (padded, _prerelease_key(self.prerelease))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        text = ".".join(str(part) for part in self.release)
        if self.prerelease is not None:
            text += f"-{self.prerelease}"
        if self.build is not None:
            text += f"+{self.build}"
        return text

    def __repr__(self) -> str:
        return f"Version({str(self)!r})"

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """Let pydantic models declare ``Version`` fields and accept tag strings."""
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.to_string_ser_schema(),
        )

    @classmethod
    def _validate(cls, value: Any) -> Version:
        if isinstance(value, Version):
            return value
        if isinstance(value, str):
            try:
                return cls.from_tag(value)
            except InvalidArgumentError as e:
                raise ValueError(e.message) from e
        raise ValueError(f"Cannot interpret {type(value).__name__} as a version")


def compare_versions(v1: str | Version, v2: str | Version) -> int:
    """
    Compare two versions.

    Args:
        v1: First version (string tags are accepted).
        v2: Second version.

    Returns:
        -1 if v1 < v2, 0 if v1 == v2, 1 if v1 > v2

    Raises:
        InvalidArgumentError: If either version is invalid.
    """
    p1 = v1 if isinstance(v1, Version) else Version.from_tag(v1)
    p2 = v2 if isinstance(v2, Version) else Version.from_tag(v2)

    if p1 < p2:
        return -1
    if p1 > p2:
        return 1
    return 0


def is_newer(candidate: str | Version, current: str | Version) -> bool:
    """Return True if ``candidate`` is strictly newer than ``current``."""
    return compare_versions(candidate, current) > 0
