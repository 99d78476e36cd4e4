"""CLI argument handling and printed output."""

from __future__ import annotations

import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from treedeck import cli
from treedeck.log import reset_logging
from treedeck.worktrees import Worktree


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve() / "project"
        (self.root / "src").mkdir(parents=True)
        (self.root / "src" / "main.py").write_text("print()\n", encoding="utf-8")
        (self.root / "README.md").write_text("# demo\n", encoding="utf-8")
        (self.root / ".treedeck.json").write_text(json.dumps({"showGitStatus": False}), encoding="utf-8")
        patcher = mock.patch("treedeck.config.GLOBAL_CONFIG_PATH", Path(self._tmp.name) / "no-global.json")
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(reset_logging)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _run(self, *argv: str) -> str:
        with mock.patch("sys.stdout", new_callable=io.StringIO) as out:
            cli.main(list(argv))
        return out.getvalue()

    def test_print_expanded_tree(self) -> None:
        output = self._run(str(self.root), "--print", "--expand-all", "--height", "10")

        self.assertEqual(output, "> ▾ src/\n  └─ main.py\n  README.md\n")

    def test_default_action_prints_collapsed_tree(self) -> None:
        output = self._run(str(self.root), "--height", "10")
        self.assertEqual(output, "> ▸ src/\n  README.md\n")

    def test_small_height_reports_remaining_rows(self) -> None:
        output = self._run(str(self.root), "--expand-all", "--height", "1")
        self.assertEqual(output, "> ▾ src/\n  ... 2 more\n")

    def test_name_filter_opens_ancestors_of_matches(self) -> None:
        output = self._run(str(self.root), "--filter", "main", "--height", "10")
        self.assertEqual(output, "> ▾ src/\n  └─ main.py\n")

    def test_unknown_git_status_is_rejected(self) -> None:
        with mock.patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                cli.main([str(self.root), "--git-status", "dirty"])

    def test_default_path_is_used_without_positional(self) -> None:
        with mock.patch("sys.stdout", new_callable=io.StringIO) as out:
            cli.main(["--height", "5"], default_path=self.root)
        self.assertIn("README.md", out.getvalue())

    def test_missing_directory_exits(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            cli.main([str(self.root / "nope")])
        self.assertIn("Not a directory", str(ctx.exception.code))

    def test_invalid_project_config_exits_with_details(self) -> None:
        (self.root / ".treedeck.json").write_text(json.dumps({"treeIndent": 99}), encoding="utf-8")

        with self.assertRaises(SystemExit) as ctx:
            cli.main([str(self.root)])

        self.assertIn("tree_indent", str(ctx.exception.code))

    def test_show_hidden_flag(self) -> None:
        (self.root / ".env").write_text("X=1\n", encoding="utf-8")
        self.assertNotIn(".env", self._run(str(self.root), "--height", "10"))
        self.assertIn(".env", self._run(str(self.root), "--show-hidden", "--height", "10"))

    def test_worktree_listing(self) -> None:
        worktrees = [
            Worktree(id=str(self.root), path=str(self.root), name="main", branch="main"),
            Worktree(id="/tmp/feature", path="/tmp/feature", name="feature", branch="feature"),
        ]
        statuses = {str(self.root): {}, "/tmp/feature": {"a.py": "modified", "b.py": "added"}}

        with mock.patch("treedeck.cli.get_worktrees", return_value=worktrees), mock.patch(
            "treedeck.git_status.collect_git_status", side_effect=lambda root: statuses[str(root)]
        ):
            output = self._run(str(self.root), "--worktrees")

        lines = output.splitlines()
        self.assertTrue(lines[0].startswith("* main"))
        self.assertIn("   0 changed", lines[0])
        self.assertIn("   2 changed  active", lines[1])

    def test_no_worktrees(self) -> None:
        with mock.patch("treedeck.cli.get_worktrees", return_value=[]):
            self.assertEqual(self._run(str(self.root), "--worktrees"), "No git worktrees found.\n")

    def test_rejects_non_positive_height(self) -> None:
        with mock.patch("sys.stderr", new_callable=io.StringIO), self.assertRaises(SystemExit):
            cli.main([str(self.root), "--height", "0"])


if __name__ == "__main__":
    unittest.main()
