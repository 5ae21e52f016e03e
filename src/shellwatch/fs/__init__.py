"""Filesystem helpers used alongside command execution."""

from shellwatch.fs.tree import (
    FileTreeError,
    dir_depth,
    dir_tree_size,
    find_dirs,
    find_files,
    remove_files,
    walk_tree,
)

__all__ = [
    "FileTreeError",
    "dir_depth",
    "dir_tree_size",
    "find_dirs",
    "find_files",
    "remove_files",
    "walk_tree",
]
