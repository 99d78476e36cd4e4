"""In-memory caches for directory listings and git status maps.

There is no TTL: entries stay valid until ``ChangeProcessor`` or the worktree
switcher invalidates them. All operations are plain dict mutations under a
lock and never raise.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    invalidations: int = 0
    clears: int = 0


class KeyedCache(Generic[K, V]):
    """Thread-safe key/value cache with explicit invalidation only."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._entries: dict[K, V] = {}
        # Bumped by invalidate and clear; a load only stores if its token is unchanged.
        self._generations: dict[K, int] = {}
        self._epoch = 0
        self.stats = CacheStats()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: K) -> V | None:
        with self._lock:
            if key in self._entries:
                self.stats.hits += 1
                return self._entries[key]
            self.stats.misses += 1
            return None

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._entries[key] = value

    def get_or_load(self, key: K, loader: Callable[[K], V], *, force: bool = False) -> V:
        """Return the cached value or compute, store and return it.

        A value whose key was invalidated or cleared while ``loader`` ran is
        returned to the caller but not stored.
        """
        with self._lock:
            if not force and key in self._entries:
                self.stats.hits += 1
                return self._entries[key]
            self.stats.misses += 1
            token = (self._epoch, self._generations.get(key, 0))
        value = loader(key)
        with self._lock:
            if token == (self._epoch, self._generations.get(key, 0)):
                self._entries[key] = value
            else:
                logger.debug("%s cache: discarding load for %r invalidated in flight", self.name, key)
        return value

    def invalidate(self, key: K) -> None:
        """Drop ``key``; invalidating a missing key is a no-op."""
        with self._lock:
            self.stats.invalidations += 1
            self._entries.pop(key, None)
            self._generations[key] = self._generations.get(key, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self.stats.clears += 1
            self._entries.clear()
            self._generations.clear()
            self._epoch += 1

    def keys(self) -> list[K]:
        with self._lock:
            return list(self._entries)


class DirectoryCache(KeyedCache[str, list]):
    """Directory path -> sorted listing records."""

    def __init__(self) -> None:
        super().__init__("directory")


class GitStatusCache(KeyedCache[str, dict]):
    """Root path -> ``{relative_path: status}``."""

    def __init__(self) -> None:
        super().__init__("git-status")


@dataclass
class TreeCaches:
    """Cache handle owned by one ``TreeState`` and passed to collaborators."""

    directories: DirectoryCache = field(default_factory=DirectoryCache)
    git_status: GitStatusCache = field(default_factory=GitStatusCache)

    def invalidate_dir_cache(self, path: str) -> None:
        self.directories.invalidate(path)

    def clear_dir_cache(self) -> None:
        self.directories.clear()

    def invalidate_git_status_cache(self, root_path: str) -> None:
        self.git_status.invalidate(root_path)

    def clear_git_status_cache(self) -> None:
        self.git_status.clear()

    def clear_all(self) -> None:
        logger.debug(
            "clearing caches (%d directories, %d git roots)",
            len(self.directories),
            len(self.git_status),
        )
        self.clear_dir_cache()
        self.clear_git_status_cache()


__all__ = [
    "CacheStats",
    "KeyedCache",
    "DirectoryCache",
    "GitStatusCache",
    "TreeCaches",
]
