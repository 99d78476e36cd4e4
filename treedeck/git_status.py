"""Git status collection and the cache-backed status provider.

Status maps are keyed by POSIX paths relative to the root they were requested
for. Clean tracked files are absent from the map.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .cache import GitStatusCache
from .errors import GitError, error_details
from .tree_model.types import GitStatus

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 5.0


def run_git(cwd: Path, args: list[str], timeout_seconds: float = GIT_TIMEOUT_SECONDS) -> subprocess.CompletedProcess[str]:
    """Run ``git -C cwd *args`` and return the completed process.

    Raises ``GitError`` when git cannot be executed at all; a non-zero exit is
    left to the caller.
    """
    try:
        return subprocess.run(
            ["git", "-C", str(cwd), *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            timeout=timeout_seconds,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise GitError(f"git {' '.join(args[:1])} failed to run", {"cwd": str(cwd)}) from exc


def resolve_git_paths(path: Path, timeout_seconds: float = GIT_TIMEOUT_SECONDS) -> tuple[Path | None, Path | None]:
    """Return ``(repo_root, git_dir)`` for ``path`` or ``(None, None)``."""
    try:
        proc = run_git(path, ["rev-parse", "--show-toplevel", "--git-dir"], timeout_seconds)
    except GitError:
        return None, None
    if proc.returncode != 0:
        return None, None

    lines = [line.strip() for line in proc.stdout.splitlines() if line.strip()]
    if len(lines) < 2:
        return None, None

    repo_root = Path(lines[0]).resolve()
    git_dir_raw = Path(lines[1])
    git_dir = git_dir_raw if git_dir_raw.is_absolute() else (repo_root / git_dir_raw)
    return repo_root, git_dir.resolve()


def is_git_repository(path: Path | str) -> bool:
    """Return whether ``path`` is inside a git work tree; never raises."""
    target = Path(path)
    if not target.is_dir():
        return False
    try:
        proc = run_git(target, ["rev-parse", "--is-inside-work-tree"])
    except GitError:
        return False
    return proc.returncode == 0 and proc.stdout.strip() == "true"


def iter_porcelain_records(output: str) -> list[tuple[str, str, str | None]]:
    """Parse ``git status --porcelain=v1 -z`` into ``(xy, path, orig_path)``."""
    records: list[tuple[str, str, str | None]] = []
    tokens = output.split("\0")
    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if len(token) < 4 or token[2] != " ":
            continue
        status = token[:2]
        path_text = token[3:]
        orig_path: str | None = None
        # Renames/copies carry the source path as the following token.
        if "R" in status or "C" in status:
            if index < len(tokens):
                orig_path = tokens[index] or None
            index += 1
        records.append((status, path_text, orig_path))
    return records


def _is_conflict(status: str) -> bool:
    return "U" in status or status in {"AA", "DD"}


def status_for_code(status: str) -> GitStatus:
    """Map a porcelain ``XY`` code onto a single display status."""
    if status == "??":
        return "untracked"
    if status == "!!":
        return "ignored"
    if _is_conflict(status):
        return "modified"
    if "D" in status:
        return "deleted"
    if status[0] == "A" and status[1] != "M":
        return "added"
    return "modified"


def parse_git_status(output: str, repo_root: Path, tree_root: Path) -> dict[str, GitStatus]:
    """Build a ``{tree-relative path: status}`` map from porcelain output."""
    statuses: dict[str, GitStatus] = {}

    def relative(rel_to_repo: str) -> str | None:
        target = repo_root / rel_to_repo.rstrip("/")
        if not target.is_relative_to(tree_root):
            return None
        rel = target.relative_to(tree_root).as_posix()
        return rel if rel != "." else None

    for status, path_text, orig_path in iter_porcelain_records(output):
        key = relative(path_text)
        if "R" in status and orig_path:
            source_key = relative(orig_path)
            if source_key is not None:
                statuses[source_key] = "deleted"
            if key is not None and statuses.get(key) != "modified":
                statuses[key] = "modified" if status[1] == "M" else "added"
            continue
        if key is None:
            continue
        statuses[key] = status_for_code(status)
    return statuses


def collect_git_status(tree_root: Path | str) -> dict[str, GitStatus]:
    """Query git for the status of every changed path under ``tree_root``.

    Raises ``GitError`` when git is missing or ``tree_root`` is not a repo.
    """
    root = Path(tree_root).resolve()
    repo_root, _git_dir = resolve_git_paths(root)
    if repo_root is None:
        raise GitError("not a git repository", {"path": str(root)})
    proc = run_git(repo_root, ["status", "--porcelain=v1", "-z", "--untracked-files=all"])
    if proc.returncode != 0:
        raise GitError("git status failed", {"path": str(root), "stderr": proc.stderr.strip()})
    return parse_git_status(proc.stdout, repo_root, root)


class GitStatusProvider:
    """Memoizes status maps per root in a ``GitStatusCache``.

    Any git failure disables the provider (``enabled`` turns false) and yields
    an empty map; a later successful query re-enables it.
    """

    def __init__(self, cache: GitStatusCache, collect=None) -> None:
        self.cache = cache
        self._collect = collect or collect_git_status
        self.enabled = True
        self.last_error: GitError | None = None

    def is_git_repository(self, path: Path | str) -> bool:
        return is_git_repository(path)

    def _load(self, root_path: str) -> dict[str, GitStatus]:
        try:
            statuses = self._collect(root_path)
        except GitError as exc:
            if self.enabled:
                logger.info("git status disabled for %s: %s", root_path, error_details(exc))
            self.enabled = False
            self.last_error = exc
            return {}
        self.enabled = True
        self.last_error = None
        return statuses

    def get_git_status_cached(self, root_path: Path | str, force: bool = False) -> dict[str, GitStatus]:
        key = str(root_path)
        return self.cache.get_or_load(key, self._load, force=force)

    def invalidate(self, root_path: Path | str) -> None:
        self.cache.invalidate(str(root_path))


__all__ = [
    "GIT_TIMEOUT_SECONDS",
    "run_git",
    "resolve_git_paths",
    "is_git_repository",
    "iter_porcelain_records",
    "status_for_code",
    "parse_git_status",
    "collect_git_status",
    "GitStatusProvider",
]
