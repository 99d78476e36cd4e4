"""Cache-backed tree building over real temporary directories."""

from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from treedeck.cache import TreeCaches
from treedeck.config import TreeConfig
from treedeck.tree_model import TreeBuilder, build_file_tree, count_total_files, flatten_visible_tree, iter_tree
from treedeck.tree_model.build import natural_key, read_directory


def _touch(path: Path, text: str = "x") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class BuildFileTreeTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()
        self.config = TreeConfig(respect_gitignore=False)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_directories_first_then_natural_name_order(self) -> None:
        for name in ("file10.txt", "file2.txt", "B.txt", "a.txt"):
            _touch(self.root / name)
        (self.root / "zdir").mkdir()
        (self.root / "adir").mkdir()

        tree = build_file_tree(self.root, self.config, TreeCaches())

        self.assertEqual([node.name for node in tree], ["adir", "zdir", "a.txt", "B.txt", "file2.txt", "file10.txt"])

    def test_nodes_carry_absolute_paths_and_depth(self) -> None:
        _touch(self.root / "src" / "pkg" / "mod.py")

        tree = build_file_tree(self.root, self.config, TreeCaches())
        nodes = {node.name: node for node in iter_tree(tree)}

        self.assertEqual(nodes["mod.py"].path, str(self.root / "src" / "pkg" / "mod.py"))
        self.assertEqual(nodes["src"].depth, 0)
        self.assertEqual(nodes["mod.py"].depth, 2)
        self.assertTrue(nodes["pkg"].is_dir)
        self.assertFalse(nodes["pkg"].expanded)

    def test_hidden_and_always_ignored_entries(self) -> None:
        _touch(self.root / ".env")
        _touch(self.root / "node_modules" / "dep.js")
        _touch(self.root / "visible.txt")

        hidden_off = build_file_tree(self.root, self.config, TreeCaches())
        hidden_on = build_file_tree(self.root, self.config.with_overrides(show_hidden=True), TreeCaches())

        self.assertEqual([node.name for node in hidden_off], ["visible.txt"])
        self.assertEqual([node.name for node in hidden_on], [".env", "visible.txt"])

    def test_custom_ignores_and_gitignore_patterns(self) -> None:
        _touch(self.root / ".gitignore", "*.log\nbuild/\n# comment\n!keep.log\n")
        _touch(self.root / "app.log")
        _touch(self.root / "build" / "out.bin")
        _touch(self.root / "dist" / "bundle.js")
        _touch(self.root / "main.py")
        config = TreeConfig(respect_gitignore=True, custom_ignores=("dist",))

        with mock.patch("treedeck.gitignore.load_git_ignore_matcher", return_value=None):
            tree = build_file_tree(self.root, config, TreeCaches())

        self.assertEqual([node.name for node in tree], ["main.py"])

    def test_max_depth_stops_descending(self) -> None:
        _touch(self.root / "a" / "b" / "c" / "deep.txt")

        tree = build_file_tree(self.root, self.config.with_overrides(max_depth=1), TreeCaches())
        nodes = {node.name: node for node in iter_tree(tree)}

        self.assertIn("b", nodes)
        self.assertEqual(nodes["b"].children, [])
        self.assertNotIn("c", nodes)

    def test_git_status_overlay_uses_root_relative_keys(self) -> None:
        _touch(self.root / "src" / "changed.py")
        _touch(self.root / "clean.py")

        tree = build_file_tree(self.root, self.config, TreeCaches(), git_status={"src/changed.py": "modified"})
        nodes = {node.name: node for node in iter_tree(tree)}

        self.assertEqual(nodes["changed.py"].git_status, "modified")
        self.assertIsNone(nodes["clean.py"].git_status)

    def test_missing_root_builds_empty_tree(self) -> None:
        self.assertEqual(build_file_tree(self.root / "nope", self.config, TreeCaches()), [])

    def test_file_root_builds_empty_tree(self) -> None:
        _touch(self.root / "file.txt")
        self.assertEqual(build_file_tree(self.root / "file.txt", self.config, TreeCaches()), [])

    def test_cached_listing_is_reused_until_invalidated(self) -> None:
        _touch(self.root / "one.txt")
        caches = TreeCaches()
        builder = TreeBuilder(caches)

        first = builder.build(self.root, self.config)
        _touch(self.root / "two.txt")
        stale = builder.build(self.root, self.config)
        caches.invalidate_dir_cache(str(self.root))
        fresh = builder.build(self.root, self.config)

        self.assertEqual([node.name for node in first], ["one.txt"])
        self.assertEqual([node.name for node in stale], ["one.txt"])
        self.assertEqual([node.name for node in fresh], ["one.txt", "two.txt"])

    def test_force_refresh_bypasses_cache(self) -> None:
        _touch(self.root / "one.txt")
        caches = TreeCaches()
        build_file_tree(self.root, self.config, caches)
        _touch(self.root / "two.txt")

        tree = build_file_tree(self.root, self.config, caches, force_refresh=True)

        self.assertEqual(len(tree), 2)

    def test_each_build_returns_new_node_objects(self) -> None:
        _touch(self.root / "one.txt")
        caches = TreeCaches()

        first = build_file_tree(self.root, self.config, caches)
        second = build_file_tree(self.root, self.config, caches)

        self.assertIsNot(first[0], second[0])

    def test_size_sort_descending(self) -> None:
        _touch(self.root / "small.txt", "a")
        _touch(self.root / "big.txt", "a" * 100)
        config = self.config.with_overrides(sort_by="size", sort_direction="desc")

        tree = build_file_tree(self.root, config, TreeCaches())

        self.assertEqual([node.name for node in tree], ["big.txt", "small.txt"])
        self.assertEqual(tree[0].size, 100)

    @unittest.skipIf(not hasattr(os, "symlink"), "symlinks unavailable")
    def test_symlinked_directories_are_not_followed(self) -> None:
        _touch(self.root / "real" / "inner.txt")
        try:
            os.symlink(self.root, self.root / "real" / "loop")
        except OSError:
            self.skipTest("cannot create symlink")

        tree = build_file_tree(self.root, self.config, TreeCaches())
        for node in iter_tree(tree):
            node.expanded = node.is_dir

        names = [row.name for row in flatten_visible_tree(tree)]
        self.assertEqual(names, ["real", "inner.txt", "loop"])
        self.assertEqual(count_total_files(tree), 2)


class UnreadableDirectoryTests(unittest.TestCase):
    def test_unreadable_subdirectory_becomes_empty_and_unexpected_errors_warn(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _touch(root / "locked" / "hidden.txt")
            _touch(root / "broken" / "x.txt")
            _touch(root / "ok.txt")

            def flaky(directory: str):
                if directory.endswith("locked"):
                    raise PermissionError(13, "Permission denied", directory)
                if directory.endswith("broken"):
                    raise OSError(5, "I/O error", directory)
                return read_directory(directory)

            with mock.patch("treedeck.tree_model.build.read_directory", side_effect=flaky), self.assertLogs(
                "treedeck.tree_model.build", level="WARNING"
            ) as logs:
                tree = build_file_tree(root, TreeConfig(respect_gitignore=False), TreeCaches())

        nodes = {node.name: node for node in tree}
        self.assertEqual(nodes["locked"].children, [])
        self.assertEqual(nodes["broken"].children, [])
        self.assertEqual(len(logs.records), 1)
        self.assertIn("broken", logs.output[0])


class DirectoryListingTests(unittest.TestCase):
    def test_read_directory_raises_for_missing_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(OSError):
                read_directory(os.path.join(tmp, "missing"))

    def test_natural_key_orders_numbers_numerically(self) -> None:
        names = ["item10", "Item2", "item1"]
        self.assertEqual(sorted(names, key=natural_key), ["item1", "Item2", "item10"])


if __name__ == "__main__":
    unittest.main()
