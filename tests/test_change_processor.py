"""Change batches turning into cache invalidation and refresh callbacks."""

from __future__ import annotations

import os
import unittest
from unittest import mock

from treedeck.cache import TreeCaches
from treedeck.change_processor import ChangeProcessor, absolute_event_path
from treedeck.watcher import FileChangeEvent

ROOT = os.path.abspath(os.path.join(os.sep, "work", "repo"))


def _p(*parts: str) -> str:
    return os.path.join(ROOT, *parts)


class ChangeProcessorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.caches = TreeCaches()
        self.calls: list[tuple[str, object]] = []
        self.processor = ChangeProcessor(
            ROOT,
            self.caches,
            on_tree_refresh=lambda: self.calls.append(("tree", None)),
            on_git_refresh=lambda forced: self.calls.append(("git", forced)),
        )

    def test_empty_batch_touches_nothing(self) -> None:
        self.caches.directories.put(ROOT, [])
        self.caches.git_status.put(ROOT, {})

        self.processor.process_batch([])

        self.assertEqual(self.calls, [])
        self.assertEqual(self.caches.directories.stats.invalidations, 0)
        self.assertEqual(self.caches.git_status.stats.invalidations, 0)
        self.assertIsNone(self.processor.last_batch)

    def test_invalidates_parent_directories_and_git_status_once(self) -> None:
        for key in (ROOT, _p("src"), _p("docs"), _p("other")):
            self.caches.directories.put(key, [])
        self.caches.git_status.put(ROOT, {"a": "modified"})
        events = [
            FileChangeEvent("change", "src/a.py"),
            FileChangeEvent("add", "src/b.py"),
            FileChangeEvent("unlink", "docs/old.md"),
            FileChangeEvent("change", "README.md"),
        ]

        with mock.patch.object(self.caches.git_status, "invalidate", wraps=self.caches.git_status.invalidate) as git_inv:
            self.processor.process_batch(events)

        git_inv.assert_called_once_with(ROOT)
        self.assertEqual(set(self.caches.directories.keys()), {_p("other")})
        self.assertEqual(self.caches.directories.stats.invalidations, 3)
        self.assertNotIn(ROOT, self.caches.git_status)
        self.assertEqual(self.processor.last_batch.affected_directories, (_p("src"), _p("docs"), ROOT))

    def test_directory_events_invalidate_their_own_listing_too(self) -> None:
        events = [FileChangeEvent("addDir", "pkg/new"), FileChangeEvent("unlinkDir", "gone")]

        self.assertEqual(
            self.processor.affected_directories(events),
            [_p("pkg"), _p("pkg", "new"), ROOT, _p("gone")],
        )

    def test_tree_refresh_runs_before_forced_git_refresh(self) -> None:
        self.processor.process_batch([FileChangeEvent("change", "a.txt")])
        self.assertEqual(self.calls, [("tree", None), ("git", True)])

    def test_same_batch_twice_is_safe(self) -> None:
        batch = [FileChangeEvent("change", "src/a.py")]
        self.processor.process_batch(batch)
        self.processor.process_batch(batch)

        self.assertEqual(self.calls, [("tree", None), ("git", True)] * 2)
        self.assertEqual(len(self.caches.directories), 0)

    def test_callback_failures_are_logged_not_raised(self) -> None:
        git_calls: list[bool] = []

        def broken_tree() -> None:
            raise RuntimeError("boom")

        processor = ChangeProcessor(ROOT, self.caches, broken_tree, git_calls.append)
        with self.assertLogs("treedeck.change_processor", level="ERROR"):
            processor.process_batch([FileChangeEvent("change", "a.txt")])

        self.assertEqual(git_calls, [True])

    def test_large_batch_still_invalidates_git_once(self) -> None:
        events = [FileChangeEvent("change", f"dir{idx % 7}/f{idx}.txt") for idx in range(500)]

        self.processor.process_batch(events)

        self.assertEqual(self.caches.git_status.stats.invalidations, 1)
        self.assertEqual(len(self.processor.last_batch.affected_directories), 7)
        self.assertEqual(self.processor.last_batch.event_count, 500)

    def test_clear_all_caches_and_root_change(self) -> None:
        self.caches.directories.put(_p("src"), [])
        self.caches.git_status.put(ROOT, {})

        self.processor.clear_all_caches()
        self.assertEqual(len(self.caches.directories), 0)
        self.assertEqual(len(self.caches.git_status), 0)

        other = os.path.join(os.sep, "work", "other")
        self.processor.set_root_path(other + os.sep)
        self.assertEqual(self.processor.root_path, os.path.normpath(other))

    def test_absolute_event_path_joins_posix_segments(self) -> None:
        self.assertEqual(absolute_event_path(ROOT, "a/b/c.txt"), _p("a", "b", "c.txt"))


if __name__ == "__main__":
    unittest.main()
