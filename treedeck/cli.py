"""Command-line front door for treedeck.

Loads config, builds the tree for a directory and prints the visible window,
lists worktrees, or follows live changes for a bounded time.
"""

from __future__ import annotations

import argparse
import sys
import time
from collections.abc import Sequence
from pathlib import Path

from .cache import GitStatusCache
from .config import load_config
from .errors import ConfigError
from .git_status import GitStatusProvider
from .log import configure_logging
from .tree_model.flatten import iter_tree
from .tree_model.guides import format_row
from .tree_model.types import GIT_STATUSES
from .tree_model.viewport import calculate_viewport_height
from .tree_state import TreeState
from .worktrees import get_current_worktree, get_worktrees, mark_current, summarize_worktrees


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def _non_negative_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("value must be >= 0")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="treedeck",
        description="Browse a directory tree with git status and live refresh.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Directory to show. Defaults to current directory.")
    parser.add_argument("--worktrees", action="store_true", help="List git worktrees with change counts and mood.")
    parser.add_argument("--print", dest="print_tree", action="store_true", help="Print the visible tree window and exit.")
    parser.add_argument(
        "--watch",
        type=_non_negative_float,
        metavar="SECONDS",
        default=None,
        help="Follow filesystem changes for SECONDS, reprinting on each refresh.",
    )
    parser.add_argument("--height", type=_positive_int, default=None, help="Viewport height in rows (default: terminal).")
    parser.add_argument("--expand-all", action="store_true", help="Expand every directory before printing.")
    parser.add_argument("--show-hidden", action="store_true", help="Include dotfiles.")
    parser.add_argument("--filter", metavar="QUERY", default=None, help="Show only entries whose name fuzzy-matches QUERY.")
    parser.add_argument(
        "--git-status",
        dest="git_statuses",
        action="append",
        choices=GIT_STATUSES,
        default=None,
        help="Show only files with this git status (repeatable).",
    )
    parser.add_argument("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ...).")
    return parser


def render_window(state: TreeState) -> str:
    window = state.visible_window()
    indent = state.config.tree_indent
    lines = [format_row(row, selected=row.path == state.selected_path, indent=indent) for row in window.nodes]
    if window.scrolled_past:
        lines.insert(0, f"  ... {window.scrolled_past} above")
    if window.remaining:
        lines.append(f"  ... {window.remaining} more")
    return "\n".join(lines) + "\n"


def render_worktrees(path: Path, main_branch: str, stale_threshold_days: float) -> str:
    worktrees = get_worktrees(path)
    if not worktrees:
        return "No git worktrees found.\n"
    current = get_current_worktree(path, worktrees)
    worktrees = mark_current(worktrees, current.id if current is not None else None)
    provider = GitStatusProvider(GitStatusCache())
    updated, changes = summarize_worktrees(worktrees, provider, main_branch, stale_threshold_days)
    lines: list[str] = []
    for worktree in updated:
        marker = "*" if worktree.is_current else " "
        branch = worktree.branch or "(detached)"
        count = changes[worktree.id].changed_file_count
        lines.append(f"{marker} {worktree.name:<24} {branch:<24} {count:>4} changed  {worktree.mood:<7} {worktree.path}")
    return "\n".join(lines) + "\n"


def main(argv: Sequence[str] | None = None, default_path: Path | None = None) -> None:
    """Parse CLI arguments and run treedeck on a directory.

    ``default_path`` is primarily for tests; when omitted the current working
    directory is used.
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    path = Path(args.path or default_path or Path.cwd())
    if not path.is_dir():
        raise SystemExit(f"Not a directory: {path}")

    try:
        config = load_config(path)
    except ConfigError as exc:
        raise SystemExit(str(exc)) from exc
    if args.show_hidden:
        config = config.with_overrides(show_hidden=True)

    if args.worktrees:
        sys.stdout.write(render_worktrees(path, config.main_branch, config.stale_threshold_days))
        return

    height = args.height or calculate_viewport_height()
    state = TreeState(path, config, viewport_height=height)
    state.load()
    if args.expand_all:
        for node in iter_tree(state.tree):
            if node.is_dir:
                state.emit_toggle_expand(node.path)
    if args.git_statuses:
        state.set_git_status_filter(args.git_statuses)
    if args.filter:
        state.set_name_filter(args.filter)

    if args.print_tree or args.watch is None:
        sys.stdout.write(render_window(state))
        return

    state.on_change = lambda: sys.stdout.write(render_window(state) + "\n")
    sys.stdout.write(render_window(state) + "\n")
    if not state.start_watching():
        sys.stderr.write("treedeck: file watching unavailable\n")
    try:
        time.sleep(args.watch)
    except KeyboardInterrupt:
        pass
    finally:
        state.close()


if __name__ == "__main__":
    main()
