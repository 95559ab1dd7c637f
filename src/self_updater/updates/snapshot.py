"""
Selective enumeration of a directory's immediate entries.

DirectorySnapshot decides exactly which entries a backup touches:
- inclusive: only entries named by an allow-list (names or fnmatch patterns)
- exclusive: every entry except an explicit set of paths
"""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterable
from pathlib import Path


def _same_path(a: Path, b: Path) -> bool:
    return os.path.normcase(a.resolve()) == os.path.normcase(b.resolve())


class DirectorySnapshot:
    """
    Immediate children of ``root``, filtered by inclusion or exclusion.

    Each query reads the directory afresh; nothing is cached.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def entries(self) -> list[Path]:
        """
        Return every entry directly under the root, sorted by name.

        Raises:
            FileNotFoundError: If the root directory does not exist.
        """
        if not self.root.is_dir():
            raise FileNotFoundError(f"Snapshot root is not a directory: {self.root}")
        return sorted(self.root.iterdir())

    def inclusive(
        self,
        names: Iterable[str] | None,
        *,
        never: Iterable[Path] = (),
    ) -> list[Path]:
        """
        Return entries whose name matches the allow-list.

        Args:
            names: Entry names or fnmatch patterns. None selects every entry.
            never: Paths that are never selected, even when listed.
        """
        excluded = [Path(p) for p in never]
        entries = [
            entry
            for entry in self.entries()
            if not any(_same_path(entry, p) for p in excluded)
        ]
        if names is None:
            return entries

        patterns = list(names)
        return [
            entry
            for entry in entries
            if any(fnmatch.fnmatchcase(entry.name, pattern) for pattern in patterns)
        ]

    def exclusive(self, excluded: Iterable[Path | str]) -> list[Path]:
        """
        Return every entry except the excluded paths.

        Excluded paths are compared after resolution, so relative and
        absolute spellings of the same directory match.
        """
        excluded_paths = [Path(p) for p in excluded]
        return [
            entry
            for entry in self.entries()
            if not any(_same_path(entry, p) for p in excluded_paths)
        ]
