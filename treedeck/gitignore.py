"""Ignore-rule matching for tree builds and watcher filtering.

Combines three sources:
- a fixed set of noise entries that never show up in the tree
- glob patterns (``custom_ignores`` plus the root ``.gitignore``)
- git's own view of ignored paths when the root is inside a repository
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

ALWAYS_IGNORED_NAMES = frozenset(
    {
        ".git",
        ".svn",
        ".hg",
        ".DS_Store",
        "Thumbs.db",
        "Desktop.ini",
        "node_modules",
        "bower_components",
        "jspm_packages",
        "__pycache__",
        ".venv",
        "venv",
    }
)
WATCHER_IGNORED_GLOBS = ("**/.git/**", "**/node_modules/**")
GIT_TIMEOUT_SECONDS = 2.0


def _to_posix(value: str) -> str:
    return re.sub(r"/+", "/", value.replace("\\", "/"))


@lru_cache(maxsize=512)
def _compile_pattern(pattern: str) -> tuple[re.Pattern[str], bool]:
    normalized = _to_posix(pattern.strip())
    is_dir_pattern = normalized.endswith("/") and normalized != "/"
    normalized = normalized.rstrip("/") if is_dir_pattern else normalized
    normalized = normalized.lstrip("/") or normalized

    out: list[str] = []
    idx = 0
    while idx < len(normalized):
        char = normalized[idx]
        if normalized.startswith("**/", idx):
            out.append("(?:.*/)?")
            idx += 3
            continue
        if normalized.startswith("/**", idx) and idx + 3 == len(normalized):
            out.append("(?:/.*)?")
            idx += 3
            continue
        if char == "*":
            out.append(".*")
        elif char == "?":
            out.append(".")
        else:
            out.append(re.escape(char))
        idx += 1
    body = "".join(out)
    suffix = "(?:/.*)?" if is_dir_pattern else ""
    return re.compile(f"^{body}{suffix}$"), is_dir_pattern


def match_pattern(value: str, pattern: str) -> bool:
    """Glob match supporting ``*``, ``?``, ``**/`` and trailing-``/`` directory patterns."""
    if not pattern.strip():
        return False
    regex, _is_dir = _compile_pattern(pattern)
    return regex.match(_to_posix(value).rstrip("/")) is not None


def load_gitignore_patterns(root: Path) -> list[str]:
    """Read usable patterns from ``root/.gitignore`` (comments, blanks and negations dropped)."""
    path = root / ".gitignore"
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return []
    except OSError as exc:
        logger.warning("could not read %s: %s", path, exc)
        return []
    patterns: list[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or line.startswith("!"):
            continue
        patterns.append(line)
    return patterns


@dataclass(frozen=True)
class GitIgnoreMatcher:
    """Snapshot of paths git reports as ignored under ``root``."""

    root: Path
    ignored_files: frozenset[Path]
    ignored_dirs: frozenset[Path]

    def is_ignored(self, path: Path) -> bool:
        if path in self.ignored_files:
            return True
        current = path
        while True:
            if current in self.ignored_dirs:
                return True
            if current == self.root:
                return False
            parent = current.parent
            if parent == current:
                return False
            current = parent


def load_git_ignore_matcher(root: Path) -> GitIgnoreMatcher | None:
    """Ask git which paths under ``root`` are ignored.

    Returns ``None`` when git is unavailable, ``root`` is not inside a repo, or
    any probing command fails.
    """
    if shutil.which("git") is None:
        return None
    try:
        top_proc = subprocess.run(
            ["git", "-C", str(root), "rev-parse", "--show-toplevel"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            check=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
        repo_root = Path(top_proc.stdout.strip()).resolve()
        proc = subprocess.run(
            ["git", "-C", str(repo_root), "ls-files", "-z", "--others", "-i", "--exclude-standard", "--directory"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError, ValueError):
        return None

    resolved_root = root.resolve()
    ignored_files: set[Path] = set()
    ignored_dirs: set[Path] = set()
    for raw in proc.stdout.split(b"\x00"):
        if not raw:
            continue
        rel = raw.decode("utf-8", errors="replace")
        is_dir = rel.endswith("/")
        rel = rel.rstrip("/")
        if not rel:
            continue
        abs_path = repo_root / rel
        if not abs_path.is_relative_to(resolved_root):
            continue
        if is_dir:
            ignored_dirs.add(abs_path)
        else:
            ignored_files.add(abs_path)
    return GitIgnoreMatcher(root=resolved_root, ignored_files=frozenset(ignored_files), ignored_dirs=frozenset(ignored_dirs))


@dataclass
class IgnoreFilter:
    """Decides whether a directory entry is excluded from the tree."""

    root: Path
    show_hidden: bool = False
    patterns: tuple[str, ...] = ()
    git_matcher: GitIgnoreMatcher | None = None
    always_ignored: frozenset[str] = field(default=ALWAYS_IGNORED_NAMES)

    def is_excluded(self, path: Path, name: str) -> bool:
        if name in self.always_ignored:
            return True
        if not self.show_hidden and name.startswith("."):
            return True
        if self.patterns:
            try:
                relative = path.relative_to(self.root).as_posix()
            except ValueError:
                relative = name
            for pattern in self.patterns:
                if match_pattern(name, pattern) or match_pattern(relative, pattern):
                    return True
        if self.git_matcher is not None and self.git_matcher.is_ignored(path):
            return True
        return False


def build_ignore_filter(
    root: Path,
    *,
    show_hidden: bool,
    respect_gitignore: bool,
    custom_ignores: tuple[str, ...] | list[str] = (),
) -> IgnoreFilter:
    patterns = list(custom_ignores)
    git_matcher: GitIgnoreMatcher | None = None
    if respect_gitignore:
        patterns.extend(load_gitignore_patterns(root))
        git_matcher = load_git_ignore_matcher(root)
    return IgnoreFilter(root=root, show_hidden=show_hidden, patterns=tuple(patterns), git_matcher=git_matcher)


def watcher_ignore_globs(respect_gitignore: bool, custom_ignores: tuple[str, ...] | list[str] = ()) -> tuple[str, ...]:
    """Glob patterns handed to the file watcher for a given ignore configuration."""
    base = WATCHER_IGNORED_GLOBS if respect_gitignore else ()
    return tuple(base) + tuple(custom_ignores)


__all__ = [
    "ALWAYS_IGNORED_NAMES",
    "WATCHER_IGNORED_GLOBS",
    "match_pattern",
    "load_gitignore_patterns",
    "GitIgnoreMatcher",
    "load_git_ignore_matcher",
    "IgnoreFilter",
    "build_ignore_filter",
    "watcher_ignore_globs",
]
