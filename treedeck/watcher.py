"""Filesystem watcher delivering debounced batches of root-relative events.

Raw events come from a ``watchdog`` observer thread. They are translated to
``add``/``change``/``unlink``/``addDir``/``unlinkDir`` records, filtered by
ignore globs and queued; once the burst goes quiet for ``debounce_ms`` the
queued events are delivered together.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Literal

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .debounce import Debouncer
from .errors import WatcherError, error_details
from .gitignore import match_pattern

logger = logging.getLogger(__name__)

EventType = Literal["add", "change", "unlink", "addDir", "unlinkDir"]
EVENT_TYPES: tuple[str, ...] = ("add", "change", "unlink", "addDir", "unlinkDir")
DEFAULT_DEBOUNCE_MS = 100
STOP_JOIN_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class FileChangeEvent:
    type: EventType
    path: str

    @property
    def is_directory_event(self) -> bool:
        return self.type in ("addDir", "unlinkDir")


@dataclass
class FileChangeCallbacks:
    """Callback bundle; per-type callbacks run before ``on_batch`` for each batch."""

    on_add: Callable[[str], None] | None = None
    on_change: Callable[[str], None] | None = None
    on_unlink: Callable[[str], None] | None = None
    on_add_dir: Callable[[str], None] | None = None
    on_unlink_dir: Callable[[str], None] | None = None
    on_batch: Callable[[list[FileChangeEvent]], None] | None = None
    on_error: Callable[[Exception], None] | None = None

    def for_type(self, event_type: str) -> Callable[[str], None] | None:
        return {
            "add": self.on_add,
            "change": self.on_change,
            "unlink": self.on_unlink,
            "addDir": self.on_add_dir,
            "unlinkDir": self.on_unlink_dir,
        }.get(event_type)


def to_relative_posix(root: str, path: str) -> str | None:
    """Root-relative POSIX path, or ``None`` when ``path`` is outside ``root``."""
    rel = os.path.relpath(path, root)
    if rel == "." or rel == ".." or rel.startswith(".." + os.sep):
        return None
    return rel.replace(os.sep, "/")


def translate_event(root: str, event: FileSystemEvent) -> list[FileChangeEvent]:
    """Map one watchdog event onto zero or more change events."""
    src = os.fsdecode(event.src_path)
    is_dir = bool(event.is_directory)
    added: EventType = "addDir" if is_dir else "add"
    removed: EventType = "unlinkDir" if is_dir else "unlink"

    kind = event.event_type
    if kind == "created":
        pairs = [(added, src)]
    elif kind == "deleted":
        pairs = [(removed, src)]
    elif kind == "modified":
        if is_dir:
            return []
        pairs = [("change", src)]
    elif kind == "moved":
        dest = os.fsdecode(getattr(event, "dest_path", "") or "")
        pairs = [(removed, src)]
        if dest:
            pairs.append((added, dest))
    else:
        return []

    out: list[FileChangeEvent] = []
    for event_type, raw_path in pairs:
        rel = to_relative_posix(root, raw_path)
        if rel is not None:
            out.append(FileChangeEvent(type=event_type, path=rel))
    return out


class _QueueingHandler(FileSystemEventHandler):
    def __init__(self, watcher: FileWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        self._watcher._enqueue(translate_event(self._watcher.root, event))


class FileWatcher:
    """Watches ``root`` recursively; at most one batch is delivered at a time."""

    def __init__(
        self,
        root: str,
        callbacks: FileChangeCallbacks,
        *,
        ignored: Sequence[str] = (),
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        observer_factory: Callable[[], object] = Observer,
    ) -> None:
        self.root = os.path.abspath(root)
        self.callbacks = callbacks
        self.ignored = tuple(ignored)
        self.debounce_ms = debounce_ms
        self._observer_factory = observer_factory
        self._observer = None
        self._lock = threading.Lock()
        self._deliver_lock = threading.RLock()
        self._pending: list[FileChangeEvent] = []
        self._active = False
        self._debouncer = Debouncer(self._deliver_pending, debounce_ms / 1000.0, name="treedeck-watch-debounce")

    def is_watching(self) -> bool:
        return self._active

    def is_ignored(self, rel_path: str) -> bool:
        return any(match_pattern(rel_path, pattern) for pattern in self.ignored)

    def start(self) -> None:
        """Begin watching; raises ``WatcherError`` when the observer cannot start.

        A missing root starts an idle watcher that reports watching but sees no
        events, so a switch to a vanished worktree stays switchable.
        """
        if self._active:
            logger.warning("file watcher already running for %s", self.root)
            return
        if not os.path.isdir(self.root):
            logger.info("watch root %s does not exist; watcher idle", self.root)
            self._active = True
            return
        try:
            observer = self._observer_factory()
            observer.schedule(_QueueingHandler(self), self.root, recursive=True)
            observer.start()
        except Exception as exc:
            error = WatcherError("failed to start file watcher", {"root": self.root})
            error.__cause__ = exc
            logger.error("file watcher start failed: %s", error_details(error))
            if self.callbacks.on_error is not None:
                self.callbacks.on_error(error)
            raise error from exc
        self._observer = observer
        self._active = True
        logger.debug("file watcher started for %s", self.root)

    def stop(self) -> None:
        """Stop watching and wait for the observer thread to release its handles.

        Pending events are discarded; no callback fires after this returns.
        """
        with self._lock:
            self._active = False
            self._pending.clear()
        self._debouncer.cancel()
        observer = self._observer
        self._observer = None
        if observer is not None:
            try:
                observer.stop()
                observer.join(STOP_JOIN_TIMEOUT_SECONDS)
            except RuntimeError as exc:
                logger.debug("observer for %s was not running: %s", self.root, exc)
        # Wait out a delivery already in progress.
        with self._deliver_lock:
            pass
        logger.debug("file watcher stopped for %s", self.root)

    def _enqueue(self, events: list[FileChangeEvent]) -> None:
        if not events:
            return
        accepted = [event for event in events if not self.is_ignored(event.path)]
        if not accepted:
            return
        with self._lock:
            if not self._active:
                return
            self._pending.extend(accepted)
        self._debouncer()

    def _take_pending(self) -> list[FileChangeEvent]:
        with self._lock:
            events = self._pending
            self._pending = []
        seen: set[FileChangeEvent] = set()
        unique: list[FileChangeEvent] = []
        for event in events:
            if event in seen:
                continue
            seen.add(event)
            unique.append(event)
        return unique

    def _deliver_pending(self) -> None:
        with self._deliver_lock:
            if not self._active:
                return
            batch = self._take_pending()
            if batch:
                self.deliver(batch)

    def deliver(self, batch: list[FileChangeEvent]) -> None:
        """Dispatch ``batch`` to the per-type callbacks and then ``on_batch``."""
        for event in batch:
            callback = self.callbacks.for_type(event.type)
            if callback is not None:
                callback(event.path)
        if self.callbacks.on_batch is not None:
            self.callbacks.on_batch(batch)

    def flush(self) -> None:
        """Deliver queued events immediately instead of waiting out the debounce."""
        self._debouncer.flush()


def create_file_watcher(
    root: str,
    callbacks: FileChangeCallbacks,
    *,
    ignored: Sequence[str] = (),
    debounce_ms: int = DEFAULT_DEBOUNCE_MS,
) -> FileWatcher:
    return FileWatcher(root, callbacks, ignored=ignored, debounce_ms=debounce_ms)


__all__ = [
    "EventType",
    "EVENT_TYPES",
    "FileChangeEvent",
    "FileChangeCallbacks",
    "FileWatcher",
    "create_file_watcher",
    "to_relative_posix",
    "translate_event",
]
