"""Git worktree discovery, per-worktree change summaries and mood labels."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Literal

from .errors import GitError, error_details
from .git_status import GitStatusProvider, run_git
from .tree_model.types import GitStatus

logger = logging.getLogger(__name__)

Mood = Literal["stable", "active", "stale", "error"]
SECONDS_PER_DAY = 60 * 60 * 24
_REF_PREFIXES = ("refs/heads/", "refs/remotes/", "refs/tags/")


@dataclass(frozen=True)
class Worktree:
    """One working directory of a repository; ``branch`` is ``None`` when detached."""

    id: str
    path: str
    name: str
    branch: str | None = None
    is_current: bool = False
    mood: Mood = "stable"


@dataclass(frozen=True)
class WorktreeChange:
    path: str
    status: GitStatus


@dataclass(frozen=True)
class WorktreeChanges:
    """Change summary for one worktree, replaced wholesale on each refresh."""

    worktree_id: str
    root_path: str
    changes: tuple[WorktreeChange, ...]
    last_updated: float

    @property
    def changed_file_count(self) -> int:
        return len(self.changes)


def normalize_worktree_path(path: str) -> str:
    """Resolve symlinks when possible, otherwise just absolutize."""
    try:
        return os.path.normpath(os.path.realpath(path))
    except OSError:
        return os.path.normpath(os.path.abspath(path))


def _friendly_branch(ref: str) -> str:
    for prefix in _REF_PREFIXES:
        if ref.startswith(prefix):
            return ref[len(prefix):]
    return ref


def _finalize(path: str, branch: str | None) -> Worktree:
    return Worktree(
        id=normalize_worktree_path(path),
        path=path,
        name=branch or os.path.basename(path.rstrip("/\\")) or path,
        branch=branch,
    )


def parse_worktree_list(output: str) -> list[Worktree]:
    """Parse ``git worktree list --porcelain`` output."""
    worktrees: list[Worktree] = []
    path: str | None = None
    branch: str | None = None
    for line in output.strip().splitlines():
        if line.startswith("worktree "):
            if path:
                worktrees.append(_finalize(path, branch))
            path = line[len("worktree "):]
            branch = None
        elif line.startswith("branch "):
            branch = _friendly_branch(line[len("branch "):])
        elif not line.strip():
            if path:
                worktrees.append(_finalize(path, branch))
            path = None
            branch = None
    if path:
        worktrees.append(_finalize(path, branch))
    return worktrees


def get_worktrees(cwd: str | Path) -> list[Worktree]:
    """List worktrees of the repository containing ``cwd``; ``[]`` on any git failure."""
    try:
        proc = run_git(Path(cwd), ["worktree", "list", "--porcelain"])
    except GitError as exc:
        logger.debug("worktree listing unavailable: %s", error_details(exc))
        return []
    if proc.returncode != 0:
        return []
    return parse_worktree_list(proc.stdout)


def get_current_worktree(cwd: str | Path, worktrees: Sequence[Worktree]) -> Worktree | None:
    """Return the worktree containing ``cwd`` (deepest match) marked current."""
    normalized_cwd = normalize_worktree_path(str(cwd))
    for worktree in sorted(worktrees, key=lambda wt: len(wt.path), reverse=True):
        root = normalize_worktree_path(worktree.path)
        if normalized_cwd == root or normalized_cwd.startswith(root.rstrip(os.sep) + os.sep):
            return replace(worktree, is_current=True)
    return None


def mark_current(worktrees: Sequence[Worktree], current_id: str | None) -> list[Worktree]:
    """Return new records with ``is_current`` set only on ``current_id``."""
    return [replace(wt, is_current=(wt.id == current_id)) for wt in worktrees]


def collect_worktree_changes(
    worktree: Worktree,
    provider: GitStatusProvider,
    *,
    force: bool = False,
    now: Callable[[], float] = time.time,
) -> WorktreeChanges:
    statuses = provider.get_git_status_cached(worktree.path, force=force)
    changes = tuple(WorktreeChange(path=path, status=status) for path, status in sorted(statuses.items()))
    return WorktreeChanges(worktree_id=worktree.id, root_path=worktree.path, changes=changes, last_updated=now())


def last_commit_age_days(worktree_path: str, now: Callable[[], float] = time.time) -> float | None:
    """Days since the last commit in ``worktree_path``; ``None`` when unknown."""
    try:
        proc = run_git(Path(worktree_path), ["log", "-1", "--format=%ct"])
    except GitError:
        return None
    if proc.returncode != 0:
        return None
    text = proc.stdout.strip()
    if not text.isdigit():
        return None
    age = (now() - int(text)) / SECONDS_PER_DAY
    return max(0.0, age)


def categorize_worktree(
    worktree: Worktree,
    changes: WorktreeChanges | None,
    main_branch: str,
    stale_threshold_days: float = 7.0,
    commit_age: Callable[[str], float | None] = last_commit_age_days,
) -> Mood:
    """Derive a mood from branch, change count and last-commit age."""
    try:
        changed = changes.changed_file_count if changes is not None else 0
        if worktree.branch == main_branch and changed == 0:
            return "stable"
        if changed > 0:
            return "active"
        age = commit_age(worktree.path)
        if age is not None and age > stale_threshold_days:
            return "stale"
        return "stable"
    except Exception as exc:
        logger.warning("failed to categorize worktree %s: %s", worktree.path, exc)
        return "error"


def with_mood(worktree: Worktree, mood: Mood) -> Worktree:
    return worktree if worktree.mood == mood else replace(worktree, mood=mood)


def summarize_worktrees(
    worktrees: Sequence[Worktree],
    provider: GitStatusProvider,
    main_branch: str,
    stale_threshold_days: float = 7.0,
    commit_age: Callable[[str], float | None] = last_commit_age_days,
) -> tuple[list[Worktree], dict[str, WorktreeChanges]]:
    """Collect changes for each worktree and return mood-updated records."""
    updated: list[Worktree] = []
    changes_by_id: dict[str, WorktreeChanges] = {}
    for worktree in worktrees:
        changes = collect_worktree_changes(worktree, provider)
        changes_by_id[worktree.id] = changes
        mood = categorize_worktree(worktree, changes, main_branch, stale_threshold_days, commit_age)
        updated.append(with_mood(worktree, mood))
    return updated, changes_by_id


__all__ = [
    "Mood",
    "Worktree",
    "WorktreeChange",
    "WorktreeChanges",
    "normalize_worktree_path",
    "parse_worktree_list",
    "get_worktrees",
    "get_current_worktree",
    "mark_current",
    "collect_worktree_changes",
    "last_commit_age_days",
    "categorize_worktree",
    "with_mood",
    "summarize_worktrees",
]
