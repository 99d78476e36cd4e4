"""Cache-backed filesystem scan producing ``TreeNode`` hierarchies."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from ..cache import DirectoryCache, TreeCaches
from ..config import TreeConfig
from ..errors import FileSystemError, error_details, is_not_found_error, is_permission_error, is_transient_error
from ..gitignore import IgnoreFilter, build_ignore_filter
from .types import GitStatus, TreeNode

logger = logging.getLogger(__name__)

_DIGITS_RE = re.compile(r"(\d+)")


@dataclass(frozen=True)
class DirectoryChild:
    """One raw listing record as stored in the directory cache."""

    name: str
    path: str
    is_dir: bool
    is_symlink: bool = False


def read_directory(directory: str) -> list[DirectoryChild]:
    """List ``directory`` without following symlinks.

    Raises ``OSError`` when the directory cannot be scanned.
    """
    children: list[DirectoryChild] = []
    with os.scandir(directory) as entries:
        for entry in entries:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_symlink = entry.is_symlink()
            except OSError:
                is_dir = False
                is_symlink = False
            children.append(DirectoryChild(name=entry.name, path=entry.path, is_dir=is_dir, is_symlink=is_symlink))
    children.sort(key=lambda child: child.name)
    return children


def cached_directory_listing(cache: DirectoryCache, directory: str, force_refresh: bool = False) -> list[DirectoryChild]:
    """Return the listing for ``directory`` through ``cache``; errors propagate."""
    return cache.get_or_load(directory, read_directory, force=force_refresh)


def natural_key(name: str) -> tuple[object, ...]:
    parts = _DIGITS_RE.split(name.casefold())
    return tuple(int(part) if part.isdigit() else part for part in parts)


def sort_nodes(nodes: list[TreeNode], config: TreeConfig) -> list[TreeNode]:
    """Directories first, then by ``config.sort_by`` in ``config.sort_direction``."""
    reverse = config.sort_direction == "desc"

    def value_key(node: TreeNode) -> object:
        if config.sort_by == "size":
            return node.size or 0
        if config.sort_by == "modified":
            return node.modified.timestamp() if node.modified is not None else 0.0
        return natural_key(node.name)

    dirs = sorted((node for node in nodes if node.is_dir), key=value_key, reverse=reverse)
    files = sorted((node for node in nodes if not node.is_dir), key=value_key, reverse=reverse)
    return dirs + files


def _stat_metadata(path: str, is_dir: bool, config: TreeConfig) -> tuple[int | None, datetime | None]:
    if not (config.show_file_size or config.show_modified_time or config.sort_by in {"size", "modified"}):
        return None, None
    try:
        st = os.lstat(path)
    except OSError:
        return None, None
    size = int(st.st_size) if not is_dir else None
    modified = datetime.fromtimestamp(st.st_mtime)
    return size, modified


def _log_unreadable(directory: str, exc: OSError) -> None:
    """Expected races and permission gaps are debug noise; anything else is a warning."""
    if is_permission_error(exc) or is_not_found_error(exc) or is_transient_error(exc):
        logger.debug("skipping unreadable directory %s: %s", directory, exc)
        return
    error = FileSystemError("cannot read directory", {"path": directory})
    error.__cause__ = exc
    logger.warning("directory scan failed: %s", error_details(error))


def build_file_tree(
    root_path: str | Path,
    config: TreeConfig,
    caches: TreeCaches,
    git_status: Mapping[str, GitStatus] | None = None,
    force_refresh: bool = False,
) -> list[TreeNode]:
    """Build the root-level nodes for ``root_path``.

    Returns ``[]`` when the root is missing, not a directory, or unreadable.
    Unreadable subdirectories contribute an empty child list.
    """
    try:
        root = Path(root_path).resolve()
        if not root.is_dir():
            return []
    except OSError:
        return []

    ignore_filter = build_ignore_filter(
        root,
        show_hidden=config.show_hidden,
        respect_gitignore=config.respect_gitignore,
        custom_ignores=config.custom_ignores,
    )
    root_str = str(root)
    try:
        return _build_children(root_str, root, 0, config, caches.directories, ignore_filter, git_status, force_refresh)
    except OSError as exc:
        _log_unreadable(root_str, exc)
        return []


def _build_children(
    directory: str,
    root: Path,
    depth: int,
    config: TreeConfig,
    cache: DirectoryCache,
    ignore_filter: IgnoreFilter,
    git_status: Mapping[str, GitStatus] | None,
    force_refresh: bool,
) -> list[TreeNode]:
    listing = cached_directory_listing(cache, directory, force_refresh)
    nodes: list[TreeNode] = []
    for child in listing:
        child_path = Path(child.path)
        if ignore_filter.is_excluded(child_path, child.name):
            continue
        size, modified = _stat_metadata(child.path, child.is_dir, config)
        node = TreeNode(
            name=child.name,
            path=child.path,
            type="directory" if child.is_dir else "file",
            depth=depth,
            size=size if config.show_file_size or config.sort_by == "size" else None,
            modified=modified if config.show_modified_time or config.sort_by == "modified" else None,
        )
        if git_status:
            node.git_status = git_status.get(child_path.relative_to(root).as_posix())
        if child.is_dir:
            depth_limit_reached = config.max_depth is not None and depth >= config.max_depth
            if depth_limit_reached:
                node.children = []
            else:
                try:
                    node.children = _build_children(
                        child.path, root, depth + 1, config, cache, ignore_filter, git_status, force_refresh
                    )
                except OSError as exc:
                    _log_unreadable(child.path, exc)
                    node.children = []
        nodes.append(node)
    return sort_nodes(nodes, config)


def count_total_files(nodes: list[TreeNode]) -> int:
    count = 0
    for node in nodes:
        if not node.is_dir:
            count += 1
        if node.children:
            count += count_total_files(node.children)
    return count


class TreeBuilder:
    """``build(root, config)`` bound to one cache handle."""

    def __init__(self, caches: TreeCaches) -> None:
        self.caches = caches

    def build(
        self,
        root_path: str | Path,
        config: TreeConfig,
        git_status: Mapping[str, GitStatus] | None = None,
        force_refresh: bool = False,
    ) -> list[TreeNode]:
        return build_file_tree(root_path, config, self.caches, git_status=git_status, force_refresh=force_refresh)


__all__ = [
    "DirectoryChild",
    "read_directory",
    "cached_directory_listing",
    "natural_key",
    "sort_nodes",
    "build_file_tree",
    "count_total_files",
    "TreeBuilder",
]
