"""Single owner of the live tree: rebuilds, git overlay, filters, selection and scrolling.

Watcher batches, debounced refreshes and worktree switches all funnel through
``TreeState``. A rebuild always produces a fresh raw tree that replaces the
previous one wholesale. The git overlay is kept apart from it and projected on
top, so a tree rebuild and a git refresh never overwrite each other's results.
Within each stream, results computed for an older root or an older request are
dropped instead of applied.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from .cache import TreeCaches
from .change_processor import ChangeProcessor
from .config import TreeConfig
from .debounce import Debouncer
from .errors import WatcherError, user_message
from .git_status import GitStatusProvider
from .gitignore import watcher_ignore_globs
from .notifications import NotificationCenter
from .tree_model.build import TreeBuilder
from .tree_model.filtering import filter_tree, with_git_status
from .tree_model.flatten import flatten_visible_tree, with_expansion
from .tree_model.navigation import move_index
from .tree_model.scroll_anchor import ScrollAnchor
from .tree_model.types import FlattenedNode, GitStatus, TreeNode, VisibleWindow
from .tree_model.viewport import calculate_visible_window, find_node_index
from .watcher import FileChangeCallbacks, FileChangeEvent, FileWatcher, create_file_watcher
from .worktree_switch import WatcherFactory, WorktreeSwitcher, find_path_in_tree
from .worktrees import Worktree

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT_HEIGHT = 20


class TreeState:
    def __init__(
        self,
        root: str | Path,
        config: TreeConfig,
        *,
        caches: TreeCaches | None = None,
        builder: TreeBuilder | None = None,
        git_provider: GitStatusProvider | None = None,
        watcher_factory: WatcherFactory = create_file_watcher,
        viewport_height: int = DEFAULT_VIEWPORT_HEIGHT,
        notifications: NotificationCenter | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.root = str(Path(root).resolve())
        self.config = config
        self.caches = caches or TreeCaches()
        self.builder = builder or TreeBuilder(self.caches)
        self.git = git_provider or GitStatusProvider(self.caches.git_status)
        self.notifications = notifications or NotificationCenter()
        self.anchor = ScrollAnchor(viewport_height)
        self.change_processor = ChangeProcessor(self.root, self.caches, self.refresh_tree, self.refresh_git)
        self.switcher = WorktreeSwitcher(self.caches, builder=self.builder, watcher_factory=watcher_factory)
        self.watcher_factory = watcher_factory
        self.on_change = on_change

        self.tree: list[TreeNode] = []
        self.name_filter: str | None = None
        self.git_status_filter: frozenset[GitStatus] = frozenset()
        self.expanded: set[str] = set()
        self.selected_path: str | None = None
        self.git_status: dict[str, GitStatus] = {}
        self.watcher: FileWatcher | None = None
        self.worktree: Worktree | None = None

        self._lock = threading.RLock()
        self._root_generation = 0
        self._request_counter = 0
        self._raw_tree: list[TreeNode] = []
        self._applied_tree_request = 0
        self._applied_git_request = 0
        self._rows: list[FlattenedNode] | None = None
        self._closed = False
        self._refresh_debouncer = Debouncer(
            self._debounced_refresh,
            config.refresh_debounce_seconds,
            name="treedeck-refresh",
        )

    # -- loading and refreshing -------------------------------------------------

    def load(self, initial_selected_path: str | None = None, initial_expanded: Iterable[str] = ()) -> None:
        """Initial build; selection falls back to the first row."""
        with self._lock:
            self.expanded = {self._absolute(path) for path in initial_expanded}
        self.refresh_tree()
        self.refresh_git()
        with self._lock:
            selected: str | None = None
            if initial_selected_path:
                node = find_path_in_tree(self.tree, initial_selected_path, self.root)
                selected = node.path if node is not None else None
            if selected is None:
                rows = self.rows()
                selected = rows[0].path if rows else None
            self.selected_path = selected
        logger.debug("loaded %s (%d root entries)", self.root, len(self.tree))

    def _absolute(self, path: str) -> str:
        return os.path.normpath(path if os.path.isabs(path) else os.path.join(self.root, path))

    def _next_request(self) -> tuple[int, int, str]:
        with self._lock:
            self._request_counter += 1
            return self._root_generation, self._request_counter, self.root

    def _is_current(self, generation: int) -> bool:
        if self._closed or generation != self._root_generation:
            logger.debug("dropping result computed for a previous root")
            return False
        return True

    def _project(self) -> None:
        # Caller holds the lock.
        if self.config.show_git_status and self.git_status:
            self.tree = with_git_status(self._raw_tree, self.root, self.git_status)
        else:
            self.tree = self._raw_tree
        self._rows = None

    def _swap_tree(self, generation: int, request: int, raw_tree: list[TreeNode]) -> bool:
        with self._lock:
            if not self._is_current(generation):
                return False
            if request < self._applied_tree_request:
                logger.debug("dropping superseded tree build %d", request)
                return False
            self._applied_tree_request = request
            self._raw_tree = raw_tree
            self._project()
        self._notify_change()
        return True

    def _swap_git_status(self, generation: int, request: int, statuses: dict[str, GitStatus]) -> bool:
        with self._lock:
            if not self._is_current(generation):
                return False
            if request < self._applied_git_request:
                logger.debug("dropping superseded git status query %d", request)
                return False
            self._applied_git_request = request
            if statuses == self.git_status:
                return False
            self.git_status = statuses
            self._project()
        self._notify_change()
        return True

    def refresh_tree(self, force: bool = False) -> bool:
        """Rebuild the raw tree wholesale from the directory cache.

        Returns whether the result was applied. ``force`` bypasses cached
        listings entirely. The current git overlay is re-projected onto the
        new tree.
        """
        generation, request, root = self._next_request()
        try:
            raw_tree = self.builder.build(root, self.config, force_refresh=force)
        except Exception as exc:
            logger.warning("tree rebuild for %s failed: %s", root, exc)
            self.notifications.push("error", f"Could not refresh tree: {user_message(exc)}")
            return False
        return self._swap_tree(generation, request, raw_tree)

    def refresh_git(self, force: bool = False) -> bool:
        """Refresh the git overlay; returns whether the status map changed."""
        if not self.config.show_git_status:
            return False
        generation, request, root = self._next_request()
        statuses = self.git.get_git_status_cached(root, force=force)
        return self._swap_git_status(generation, request, dict(statuses))

    @property
    def git_enabled(self) -> bool:
        return self.config.show_git_status and self.git.enabled

    def schedule_refresh(self) -> None:
        """Coalesce refresh requests into one cache-clearing refresh per quiet period."""
        with self._lock:
            generation = self._root_generation
        self._refresh_debouncer(generation)

    def _debounced_refresh(self, generation: int) -> None:
        with self._lock:
            if self._closed or generation != self._root_generation:
                return
        self.change_processor.clear_all_caches()
        self.refresh_tree()
        self.refresh_git(force=True)

    def handle_batch(self, events: Sequence[FileChangeEvent]) -> None:
        self.change_processor.process_batch(events)

    def _notify_change(self) -> None:
        if self.on_change is not None:
            try:
                self.on_change()
            except Exception:
                logger.exception("tree change listener failed")

    # -- rows, selection and scrolling ------------------------------------------

    def visible_tree(self) -> tuple[list[TreeNode], set[str]]:
        """The tree after filters, plus directories forced open to show matches."""
        with self._lock:
            return filter_tree(self.tree, self.name_filter, self.git_status_filter)

    def rows(self) -> list[FlattenedNode]:
        """Visible rows; the list object is reused until tree, filters or expansion change."""
        with self._lock:
            if self._rows is None:
                tree, forced_expanded = self.visible_tree()
                self._rows = flatten_visible_tree(with_expansion(tree, self.expanded | forced_expanded))
            return self._rows

    def set_name_filter(self, query: str | None) -> None:
        """Show only nodes whose name fuzzy-matches ``query``; blank clears it."""
        with self._lock:
            self.name_filter = query.strip() if query and query.strip() else None
            self._filters_changed()
        self._notify_change()

    def set_git_status_filter(self, statuses: Iterable[GitStatus] | None) -> None:
        """Show only files with one of ``statuses``; empty or ``None`` clears it."""
        with self._lock:
            self.git_status_filter = frozenset(statuses or ())
            self._filters_changed()
        self._notify_change()

    def clear_filters(self) -> None:
        with self._lock:
            self.name_filter = None
            self.git_status_filter = frozenset()
            self._filters_changed()
        self._notify_change()

    def _filters_changed(self) -> None:
        # Caller holds the lock. A selection hidden by the filter moves to the first row.
        self._rows = None
        rows = self.rows()
        if find_node_index(rows, self.selected_path) < 0:
            self.selected_path = rows[0].path if rows else None

    def visible_window(self) -> VisibleWindow:
        with self._lock:
            rows = self.rows()
            self.anchor.update_rows(rows)
            self.anchor.follow_cursor(self.selected_path)
            return calculate_visible_window(rows, self.anchor.scroll_offset, self.anchor.viewport_height)

    def emit_select(self, path: str | None) -> None:
        with self._lock:
            self.selected_path = path
        self._notify_change()

    def emit_toggle_expand(self, path: str) -> None:
        """Toggle a directory; collapsing an ancestor of the selection selects it."""
        with self._lock:
            if path in self.expanded:
                self.expanded.discard(path)
                selected = self.selected_path
                if selected is not None and selected.startswith(path.rstrip(os.sep) + os.sep):
                    self.selected_path = path
            else:
                self.expanded.add(path)
            self._rows = None
        self._notify_change()

    def move_cursor(self, delta: int) -> str | None:
        with self._lock:
            rows = self.rows()
            if not rows:
                return None
            current = find_node_index(rows, self.selected_path)
            index = move_index(current, delta, len(rows)) if current >= 0 else 0
            self.selected_path = rows[index].path
            selected = self.selected_path
        self._notify_change()
        return selected

    def scroll_by(self, delta: int) -> int:
        with self._lock:
            self.anchor.update_rows(self.rows())
            return self.anchor.scroll_by(delta)

    def resize(self, viewport_height: int) -> None:
        with self._lock:
            self.anchor.resize(viewport_height)

    # -- watching and switching -------------------------------------------------

    def _callbacks(self) -> FileChangeCallbacks:
        return FileChangeCallbacks(on_batch=self.handle_batch, on_error=self._on_watcher_error)

    def _on_watcher_error(self, error: Exception) -> None:
        self.notifications.push("warning", f"File watching unavailable: {user_message(error)}")

    def start_watching(self) -> bool:
        """Start the watcher for the current root; failures only notify."""
        if not self.config.auto_refresh:
            return False
        watcher = self.watcher_factory(
            self.root,
            self._callbacks(),
            ignored=watcher_ignore_globs(self.config.respect_gitignore, self.config.custom_ignores),
            debounce_ms=self.config.refresh_debounce_ms,
        )
        try:
            watcher.start()
        except WatcherError as exc:
            logger.warning("watcher did not start for %s: %s", self.root, exc)
            return False
        with self._lock:
            self.watcher = watcher
        return True

    def switch_to(self, worktree: Worktree) -> bool:
        """Make ``worktree`` the active root, carrying expansion and selection over."""
        self._refresh_debouncer.cancel()
        with self._lock:
            self._root_generation += 1
            old_root = self.root
            relative_expanded = {os.path.relpath(path, old_root) for path in self.expanded}
            current_watcher = self.watcher
            current_tree = self.tree
            selected = os.path.relpath(self.selected_path, old_root) if self.selected_path else None
            self.watcher = None

        result = self.switcher.switch(
            worktree, current_watcher, current_tree, selected, self.config, self._callbacks()
        )
        if result is None:
            self.notifications.push("error", f"Could not switch to {worktree.name}")
            return False

        new_root = str(Path(worktree.path).resolve())
        with self._lock:
            self.root = new_root
            self.worktree = worktree
            self.change_processor.set_root_path(new_root)
            self._raw_tree = result.tree
            self.git_status = {}
            self._project()
            self.expanded = {os.path.normpath(os.path.join(new_root, rel)) for rel in relative_expanded}
            matched = find_path_in_tree(result.tree, result.selected_path, new_root) if result.selected_path else None
            self.selected_path = matched.path if matched is not None else None
            self._applied_tree_request = self._request_counter
            self._applied_git_request = self._request_counter
            self.anchor.reset()
            self.watcher = result.watcher if result.watcher_error is None else None

        if result.watcher_error is not None:
            # The watcher already reported the failure through on_error.
            logger.warning("watcher did not start for %s: %s", new_root, result.watcher_error)
        if result.build_failed:
            self.notifications.push("error", f"Worktree {worktree.name} is not readable")
        elif result.watcher_error is None:
            self.notifications.push("success", f"Switched to {worktree.name}")
        self.refresh_git(force=True)
        self._notify_change()
        return True

    def close(self) -> None:
        self._refresh_debouncer.cancel()
        with self._lock:
            self._closed = True
            self._root_generation += 1
            watcher = self.watcher
            self.watcher = None
        if watcher is not None:
            watcher.stop()


__all__ = ["DEFAULT_VIEWPORT_HEIGHT", "TreeState"]
