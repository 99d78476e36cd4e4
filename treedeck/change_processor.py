"""Turns batches of filesystem events into cache invalidation and refreshes."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .cache import TreeCaches
from .errors import error_details
from .watcher import FileChangeEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchStats:
    event_count: int
    affected_directories: tuple[str, ...]
    git_invalidated: bool
    duration_seconds: float


def absolute_event_path(root_path: str, rel_path: str) -> str:
    return os.path.normpath(os.path.join(root_path, *rel_path.split("/")))


class ChangeProcessor:
    """Handles one debounced batch at a time for a single watch root.

    Git status is repository-wide, so any event invalidates the root's status
    entry, once per batch. Directory listings are invalidated only for the
    parents of changed paths (plus the directory itself for directory events).
    """

    def __init__(
        self,
        root_path: str,
        caches: TreeCaches,
        on_tree_refresh: Callable[[], None],
        on_git_refresh: Callable[[bool], None],
        *,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.root_path = os.path.normpath(root_path)
        self.caches = caches
        self._on_tree_refresh = on_tree_refresh
        self._on_git_refresh = on_git_refresh
        self._monotonic = monotonic
        self.last_batch: BatchStats | None = None

    def set_root_path(self, root_path: str) -> None:
        self.root_path = os.path.normpath(root_path)

    def clear_all_caches(self) -> None:
        """Drop git status for the current root and every directory listing."""
        self.caches.invalidate_git_status_cache(self.root_path)
        self.caches.clear_dir_cache()

    def affected_directories(self, events: Sequence[FileChangeEvent]) -> list[str]:
        """Directory cache keys a batch invalidates, in first-seen order."""
        affected: dict[str, None] = {}
        for event in events:
            absolute = absolute_event_path(self.root_path, event.path)
            affected.setdefault(os.path.dirname(absolute), None)
            if event.is_directory_event:
                affected.setdefault(absolute, None)
        return list(affected)

    def process_batch(self, events: Sequence[FileChangeEvent]) -> None:
        """Invalidate caches for ``events`` then trigger tree and git refresh.

        An empty batch does nothing. Callback failures are logged, not raised.
        """
        if not events:
            return
        started = self._monotonic()

        directories = self.affected_directories(events)
        for directory in directories:
            self.caches.invalidate_dir_cache(directory)
        self.caches.invalidate_git_status_cache(self.root_path)

        try:
            self._on_tree_refresh()
        except Exception as exc:
            logger.error("tree refresh after change batch failed: %s", error_details(exc))
        try:
            self._on_git_refresh(True)
        except Exception as exc:
            logger.error("git refresh after change batch failed: %s", error_details(exc))

        self.last_batch = BatchStats(
            event_count=len(events),
            affected_directories=tuple(directories),
            git_invalidated=True,
            duration_seconds=self._monotonic() - started,
        )
        logger.debug(
            "processed %d events under %s (%d directories invalidated)",
            len(events),
            self.root_path,
            len(directories),
        )


__all__ = ["BatchStats", "ChangeProcessor", "absolute_event_path"]
