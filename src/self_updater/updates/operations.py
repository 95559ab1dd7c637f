"""
Filesystem transfer primitives for the self-updater.

This module implements the move/copy operations used to build backups and to
swap new binaries into place:
- move: rename a file or directory, merging into an existing directory
- copy: copy a file or directory tree, merging into an existing directory
- ensure_directory / safe_remove_directory helpers

Merge semantics: when the target is an existing directory, each immediate
child of the source is transferred by name. Unrelated entries already in the
target are left untouched. A same-named entry at the destination is never
overwritten; the operation raises FileExistsError instead.

Entry type (file or directory) is decided when the call is made. Neither
primitive retries, polls, or attempts to make a multi-entry transfer atomic.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Iterable
from pathlib import Path

from self_updater.errors import FailedPreconditionError
from self_updater.logging import get_logger

logger = get_logger(__name__)


def _exists(path: Path) -> bool:
    # Broken symlinks count as existing entries
    return os.path.lexists(path)


def _require_absent(target: Path, source: Path) -> None:
    if _exists(target):
        raise FileExistsError(
            f"Destination already exists: {target} (source: {source})"
        )


def move(source: Path | str, target: Path | str) -> None:
    """
    Move a file or directory to ``target``.

    - File: moved to ``target``; fails if ``target`` exists.
    - Directory, ``target`` absent: the whole directory is moved.
    - Directory, ``target`` is a directory: every immediate child of
      ``source`` is moved into ``target``; ``source`` is left empty.

    Args:
        source: File or directory to move.
        target: Destination path.

    Raises:
        FileNotFoundError: If ``source`` does not exist.
        FileExistsError: If a same-named entry exists at the destination.
        OSError: For any other filesystem failure.
    """
    source = Path(source)
    target = Path(target)

    if not _exists(source):
        raise FileNotFoundError(f"Move source does not exist: {source}")

    if source.is_symlink() or not source.is_dir():
        _require_absent(target, source)
        shutil.move(source, target)
        logger.debug("Moved file", extra={"source": str(source), "target": str(target)})
        return

    if not _exists(target):
        shutil.move(source, target)
        logger.debug(
            "Moved directory", extra={"source": str(source), "target": str(target)}
        )
        return

    if not target.is_dir() or target.is_symlink():
        raise FileExistsError(
            f"Cannot merge directory {source} into non-directory {target}"
        )

    for child in sorted(source.iterdir()):
        destination = target / child.name
        _require_absent(destination, child)
        shutil.move(child, destination)

    logger.debug(
        "Merged directory", extra={"source": str(source), "target": str(target)}
    )


def _normalized(path: Path) -> str:
    return os.path.normcase(path.resolve())


def copy(
    source: Path | str,
    target: Path | str,
    *,
    exclude: Iterable[Path | str] = (),
) -> None:
    """
    Copy a file or directory to ``target``.

    - File: copied with metadata; fails if ``target`` exists.
    - Directory: ``target`` is created if absent, then every child is copied
      by recursive descent with the same rules.

    Symlinks are copied as links, not followed.

    Args:
        source: File or directory to copy.
        target: Destination path.
        exclude: Paths skipped wherever they occur below ``source``,
            together with everything under them.

    Raises:
        FileNotFoundError: If ``source`` does not exist.
        FileExistsError: If a same-named file exists at the destination.
        OSError: For any other filesystem failure.
    """
    source = Path(source)
    target = Path(target)
    _copy(source, target, frozenset(_normalized(Path(p)) for p in exclude))


def _copy(source: Path, target: Path, excluded: frozenset[str]) -> None:
    if not _exists(source):
        raise FileNotFoundError(f"Copy source does not exist: {source}")

    if source.is_symlink() or not source.is_dir():
        _require_absent(target, source)
        shutil.copy2(source, target, follow_symlinks=False)
        return

    if _exists(target) and (target.is_symlink() or not target.is_dir()):
        raise FileExistsError(
            f"Cannot copy directory {source} onto non-directory {target}"
        )
    target.mkdir(parents=True, exist_ok=True)

    for child in sorted(source.iterdir()):
        if excluded and not child.is_symlink() and _normalized(child) in excluded:
            logger.debug("Skipped excluded path", extra={"path": str(child)})
            continue
        _copy(child, target / child.name, excluded)


def ensure_directory(path: Path, *, parents: bool = True, mode: int = 0o755) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Path to the directory.
        parents: If True, create parent directories as needed.
        mode: Directory permissions (default 0o755).

    Returns:
        The directory path.

    Raises:
        FailedPreconditionError: If directory cannot be created.
    """
    try:
        path.mkdir(parents=parents, mode=mode, exist_ok=True)
        return path
    except OSError as e:
        raise FailedPreconditionError(
            f"Failed to create directory: {path}",
            details={"path": str(path), "error": str(e)},
        ) from e


def safe_remove_directory(path: Path, *, ignore_errors: bool = True) -> bool:
    """
    Safely remove a directory and its contents.

    Args:
        path: Path to the directory to remove.
        ignore_errors: If True, ignore errors during removal.

    Returns:
        True if directory was removed, False if it didn't exist.

    Raises:
        FailedPreconditionError: If removal fails and ignore_errors is False.
    """
    if not path.exists():
        return False

    try:
        shutil.rmtree(path, ignore_errors=ignore_errors)
        logger.debug("Removed directory", extra={"path": str(path)})
        return True
    except OSError as e:
        if not ignore_errors:
            raise FailedPreconditionError(
                f"Failed to remove directory: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e
        return False
