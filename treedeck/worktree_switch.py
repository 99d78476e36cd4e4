"""Switching the active root between worktrees.

A switch stops the old watcher (and waits for it), rebuilds the tree for the
target, carries the selection over when the same file exists there, and starts
a watcher on the new root. Nothing here raises for ordinary failures: a missing
or unreadable target degrades to an empty tree with a cleared selection.
"""

from __future__ import annotations

import enum
import logging
import os
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .cache import TreeCaches
from .config import TreeConfig
from .errors import WatcherError, error_details
from .gitignore import watcher_ignore_globs
from .tree_model.build import TreeBuilder
from .tree_model.flatten import iter_tree
from .tree_model.types import TreeNode
from .watcher import FileChangeCallbacks, FileWatcher, create_file_watcher
from .worktrees import Worktree

logger = logging.getLogger(__name__)

WatcherFactory = Callable[..., FileWatcher]


class SwitchState(enum.Enum):
    IDLE = "idle"
    SWITCHING = "switching"
    FAILED = "failed"


@dataclass(frozen=True)
class SwitchResult:
    tree: list[TreeNode]
    selected_path: str | None
    watcher: FileWatcher
    build_failed: bool = False
    watcher_error: WatcherError | None = None


def _segments(path: str) -> list[str]:
    return [part for part in path.replace("\\", "/").split("/") if part and part != "."]


def _is_exact(node_path: str, target: str) -> bool:
    return os.path.normpath(node_path) == os.path.normpath(target)


def _is_relative_match(node_path: str, target: str, root: str) -> bool:
    normalized_target = os.path.normpath(target)
    if os.path.isabs(normalized_target):
        normalized_target = os.path.relpath(normalized_target, root)
    return os.path.relpath(os.path.normpath(node_path), root) == normalized_target


def _is_suffix_match(node_path: str, target: str) -> bool:
    if os.path.isabs(target):
        return False
    target_segments = _segments(os.path.normpath(target))
    node_segments = _segments(os.path.normpath(node_path))
    if not target_segments or len(target_segments) > len(node_segments):
        return False
    return node_segments[-len(target_segments):] == target_segments


def path_matches(node_path: str, target: str, root: str) -> bool:
    """Whether ``target`` names ``node_path``.

    Matches on exact path, on equal root-relative paths, or (for a relative
    ``target``) when its segments equal the tail segments of ``node_path``.
    """
    return (
        _is_exact(node_path, target)
        or _is_relative_match(node_path, target, root)
        or _is_suffix_match(node_path, target)
    )


def find_path_in_tree(tree: Sequence[TreeNode], target: str, root: str) -> TreeNode | None:
    """Return the node ``target`` names, trying exact, then relative, then suffix matches."""
    candidates = list(iter_tree(tree))
    for matches in (
        lambda path: _is_exact(path, target),
        lambda path: _is_relative_match(path, target, root),
        lambda path: _is_suffix_match(path, target),
    ):
        for node in candidates:
            if matches(node.path):
                return node
    return None


def _relative_to_tree(path: str, tree: Sequence[TreeNode]) -> str | None:
    """Path of ``path`` relative to the directory holding ``tree``, if it is in ``tree``."""
    if not tree or not os.path.isabs(path):
        return None
    tree_root = os.path.dirname(tree[0].path)
    node = find_path_in_tree(tree, path, tree_root)
    if node is None:
        return None
    return os.path.relpath(node.path, tree_root)


def _stop_watcher(watcher: FileWatcher | None) -> None:
    if watcher is None:
        return
    try:
        watcher.stop()
    except Exception as exc:
        logger.warning("stopping previous watcher failed: %s", error_details(exc))


def switch_worktree(
    target: Worktree,
    current_watcher: FileWatcher | None,
    current_tree: Sequence[TreeNode],
    selected_path: str | None,
    config: TreeConfig,
    on_file_change: FileChangeCallbacks,
    *,
    caches: TreeCaches,
    builder: TreeBuilder | None = None,
    watcher_factory: WatcherFactory = create_file_watcher,
) -> SwitchResult:
    """Move the active root to ``target`` and return the new tree/selection/watcher.

    A fresh build is always made for the target. ``current_tree`` is only used
    to turn an absolute selection from the old root into a root-relative one,
    so ``/old/src/App.tsx`` can land on ``/new/src/App.tsx``.
    """
    _stop_watcher(current_watcher)

    root = str(Path(target.path).resolve())
    build_failed = not os.path.isdir(root)

    # The target was not watched while inactive, so its cached listings may be stale.
    caches.clear_dir_cache()
    caches.invalidate_git_status_cache(root)

    tree: list[TreeNode] = []
    if not build_failed:
        tree_builder = builder or TreeBuilder(caches)
        try:
            tree = tree_builder.build(root, config)
        except Exception as exc:
            logger.warning("building tree for %s failed: %s", root, error_details(exc))
            build_failed = True
            tree = []

    new_selected: str | None = None
    if selected_path and not build_failed:
        for candidate in (selected_path, _relative_to_tree(selected_path, current_tree)):
            if candidate and find_path_in_tree(tree, candidate, root) is not None:
                new_selected = candidate
                break

    watcher = watcher_factory(
        root,
        on_file_change,
        ignored=watcher_ignore_globs(config.respect_gitignore, config.custom_ignores),
        debounce_ms=config.refresh_debounce_ms,
    )
    watcher_error: WatcherError | None = None
    try:
        watcher.start()
    except WatcherError as exc:
        watcher_error = exc

    logger.info(
        "switched to worktree %s (%d root entries, selection %s)",
        target.name,
        len(tree),
        "kept" if new_selected else "cleared",
    )
    return SwitchResult(
        tree=tree,
        selected_path=new_selected,
        watcher=watcher,
        build_failed=build_failed,
        watcher_error=watcher_error,
    )


class WorktreeSwitcher:
    """``IDLE -> SWITCHING -> IDLE`` state machine around ``switch_worktree``.

    An unexpected failure leaves the switcher ``FAILED``; the next call may
    retry from there.
    """

    def __init__(
        self,
        caches: TreeCaches,
        *,
        builder: TreeBuilder | None = None,
        watcher_factory: WatcherFactory = create_file_watcher,
    ) -> None:
        self.caches = caches
        self.builder = builder
        self.watcher_factory = watcher_factory
        self.state = SwitchState.IDLE
        self.last_error: Exception | None = None
        self._lock = threading.Lock()

    def switch(
        self,
        target: Worktree,
        current_watcher: FileWatcher | None,
        current_tree: Sequence[TreeNode],
        selected_path: str | None,
        config: TreeConfig,
        on_file_change: FileChangeCallbacks,
    ) -> SwitchResult | None:
        """Run one switch; returns ``None`` when it failed unexpectedly."""
        with self._lock:
            self.state = SwitchState.SWITCHING
            try:
                result = switch_worktree(
                    target,
                    current_watcher,
                    current_tree,
                    selected_path,
                    config,
                    on_file_change,
                    caches=self.caches,
                    builder=self.builder,
                    watcher_factory=self.watcher_factory,
                )
            except Exception as exc:
                self.state = SwitchState.FAILED
                self.last_error = exc
                logger.error("switch to %s failed: %s", target.path, error_details(exc))
                return None
            self.state = SwitchState.IDLE
            self.last_error = None
            return result


__all__ = [
    "SwitchState",
    "SwitchResult",
    "path_matches",
    "find_path_in_tree",
    "switch_worktree",
    "WorktreeSwitcher",
]
