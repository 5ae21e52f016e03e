"""Directory tree helpers: walking, glob searches, sizes and depths."""

from __future__ import annotations

import os
from collections.abc import Iterable
from fnmatch import fnmatchcase
from pathlib import Path

from shellwatch.util.logging import get_logger

_LOGGER = get_logger("shellwatch.fs")


class FileTreeError(ValueError):
    """Raised when a path is not located under the expected root."""


def dir_depth(root: Path | str, path: Path | str) -> int:
    """Return how many directory levels ``path`` sits below ``root``.

    A file is measured from its parent directory.

    Args:
        root: Root directory.
        path: Directory or file below the root.

    Returns:
        Zero when both point to the same directory.

    Raises:
        FileTreeError: If ``path`` is not located under ``root``.
        FileNotFoundError: If ``path`` does not exist.
    """

    root_path = Path(os.path.abspath(root))
    target = Path(os.path.abspath(path))
    if target == root_path:
        return 0
    if not target.is_relative_to(root_path):
        raise FileTreeError(f"{root_path} is not a parent of {target}")
    if not target.exists():
        raise FileNotFoundError(f"No such file or directory: {target}")
    if not target.is_dir():
        target = target.parent
    return len(target.relative_to(root_path).parts)


def walk_tree(
    root: Path | str,
    exclude_dirs: Iterable[str] = (),
    max_depth: int = 0,
) -> tuple[list[Path], list[Path]]:
    """Walk a tree top-down and collect directories and files.

    Args:
        root: Directory to start from; it is included in the directory list.
        exclude_dirs: Directory names that are not entered.
        max_depth: When positive, directories deeper than this are not entered.

    Returns:
        A ``(dirs, files)`` tuple in walk order.
    """

    excluded = set(exclude_dirs)
    root_path = Path(root)
    dirs: list[Path] = []
    files: list[Path] = []

    def raise_error(error: OSError) -> None:
        raise error

    for current, subdirs, filenames in os.walk(root_path, onerror=raise_error):
        current_path = Path(current)
        if current_path.name in excluded or (
            max_depth > 0 and dir_depth(root_path, current_path) > max_depth
        ):
            subdirs.clear()
            continue
        dirs.append(current_path)
        subdirs.sort()
        files.extend(current_path / name for name in sorted(filenames))
    return dirs, files


def find_dirs(
    start: Path | str,
    name_glob: str,
    max_depth: int = 0,
    ignore: Iterable[str] = (),
) -> list[Path]:
    """Return directories below ``start`` whose name matches ``name_glob``."""

    dirs, _ = walk_tree(start, ignore, max_depth)
    return [path for path in dirs if fnmatchcase(path.name, name_glob)]


def find_files(
    start: Path | str,
    name_glob: str,
    max_depth: int = 0,
    ignore: Iterable[str] = (),
) -> list[Path]:
    """Return files below ``start`` whose name matches ``name_glob``."""

    _, files = walk_tree(start, ignore, max_depth)
    return [path for path in files if fnmatchcase(path.name, name_glob)]


def remove_files(
    start: Path | str,
    name_glob: str,
    max_depth: int = 0,
    ignore: Iterable[str] = (),
) -> list[Path]:
    """Delete files below ``start`` whose name matches ``name_glob``.

    Returns:
        The paths that were removed.
    """

    removed: list[Path] = []
    for path in find_files(start, name_glob, max_depth, ignore):
        _LOGGER.debug("Removing %s", path)
        path.unlink()
        removed.append(path)
    _LOGGER.info("Removed %d file(s) matching %r under %s", len(removed), name_glob, start)
    return removed


def dir_tree_size(root: Path | str, exclude_dirs: Iterable[str] = ()) -> int:
    """Return the total size in bytes of all files below ``root``."""

    _, files = walk_tree(root, exclude_dirs)
    return sum(path.lstat().st_size for path in files)
