"""Keyed caches used for directory listings and git status maps."""

from __future__ import annotations

import unittest

from treedeck.cache import DirectoryCache, GitStatusCache, KeyedCache, TreeCaches


class KeyedCacheTests(unittest.TestCase):
    def test_get_or_load_memoizes_until_invalidated(self) -> None:
        cache: KeyedCache[str, int] = KeyedCache("test")
        loads: list[str] = []

        def loader(key: str) -> int:
            loads.append(key)
            return len(loads)

        self.assertEqual(cache.get_or_load("a", loader), 1)
        self.assertEqual(cache.get_or_load("a", loader), 1)
        cache.invalidate("a")
        self.assertEqual(cache.get_or_load("a", loader), 2)
        self.assertEqual(cache.get_or_load("a", loader, force=True), 3)
        self.assertEqual(loads, ["a", "a", "a"])
        self.assertEqual(cache.stats.hits, 1)
        self.assertEqual(cache.stats.misses, 3)

    def test_loader_errors_propagate_and_store_nothing(self) -> None:
        cache: KeyedCache[str, int] = KeyedCache("test")

        def loader(_key: str) -> int:
            raise OSError("denied")

        with self.assertRaises(OSError):
            cache.get_or_load("a", loader)
        self.assertNotIn("a", cache)

    def test_load_invalidated_while_running_is_returned_but_not_stored(self) -> None:
        caches = TreeCaches()

        def loader(key: str) -> list:
            # A watcher batch lands while the scan is still running.
            caches.invalidate_dir_cache(key)
            return ["stale listing"]

        self.assertEqual(caches.directories.get_or_load("/r", loader), ["stale listing"])
        self.assertNotIn("/r", caches.directories)
        self.assertEqual(caches.directories.get_or_load("/r", lambda _key: ["fresh"]), ["fresh"])
        self.assertEqual(caches.directories.get("/r"), ["fresh"])

    def test_load_cleared_while_running_is_not_stored(self) -> None:
        cache = GitStatusCache()

        def loader(_key: str) -> dict:
            cache.clear()
            return {"a.py": "modified"}

        cache.get_or_load("/r", loader)
        self.assertNotIn("/r", cache)

    def test_invalidating_another_key_does_not_discard_load(self) -> None:
        cache = DirectoryCache()

        def loader(_key: str) -> list:
            cache.invalidate("/other")
            return []

        cache.get_or_load("/r", loader)
        self.assertIn("/r", cache)

    def test_invalidating_missing_key_is_a_no_op(self) -> None:
        cache = DirectoryCache()
        cache.invalidate("/nowhere")
        cache.invalidate("/nowhere")
        self.assertEqual(len(cache), 0)
        self.assertEqual(cache.stats.invalidations, 2)

    def test_get_put_clear(self) -> None:
        cache = GitStatusCache()
        self.assertIsNone(cache.get("/r"))
        cache.put("/r", {"a.py": "added"})
        self.assertEqual(cache.get("/r"), {"a.py": "added"})
        self.assertEqual(cache.keys(), ["/r"])
        cache.clear()
        self.assertEqual(len(cache), 0)
        self.assertEqual(cache.stats.clears, 1)


class TreeCachesTests(unittest.TestCase):
    def test_helpers_target_the_right_cache(self) -> None:
        caches = TreeCaches()
        caches.directories.put("/r", [])
        caches.directories.put("/r/src", [])
        caches.git_status.put("/r", {})

        caches.invalidate_dir_cache("/r/src")
        self.assertEqual(caches.directories.keys(), ["/r"])
        caches.invalidate_git_status_cache("/r")
        self.assertEqual(len(caches.git_status), 0)

        caches.git_status.put("/r", {})
        caches.clear_all()
        self.assertEqual(len(caches.directories), 0)
        self.assertEqual(len(caches.git_status), 0)


if __name__ == "__main__":
    unittest.main()
