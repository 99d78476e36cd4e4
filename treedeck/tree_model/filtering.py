"""Filtered tree projections for name and git-status filtering.

Every function here returns new nodes and leaves its input untouched, so the
raw tree from the last build can be re-projected whenever a filter or the git
overlay changes.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace

from .types import GitStatus, TreeNode


def matches_fuzzy(text: str, pattern: str) -> bool:
    """Whether the characters of ``pattern`` appear in ``text`` in order.

    Both arguments are expected lowercase; ``"cmp"`` matches ``"components"``.
    """
    position = 0
    for char in text:
        if position == len(pattern):
            break
        if char == pattern[position]:
            position += 1
    return position == len(pattern)


def with_git_status(roots: Sequence[TreeNode], root: str, statuses: Mapping[str, GitStatus]) -> list[TreeNode]:
    """Copy ``roots`` with ``git_status`` set from a root-relative status map."""
    seen: set[str] = set()

    def copy(nodes: Sequence[TreeNode]) -> list[TreeNode]:
        out: list[TreeNode] = []
        for node in nodes:
            if node.path in seen:
                continue
            seen.add(node.path)
            relative = os.path.relpath(node.path, root).replace(os.sep, "/")
            children = copy(node.children) if node.children is not None else None
            out.append(replace(node, git_status=statuses.get(relative), children=children))
        return out

    return copy(roots)


def _deep_copy(node: TreeNode, seen: set[str]) -> TreeNode:
    seen.add(node.path)
    if node.children is None:
        return replace(node)
    children = [_deep_copy(child, seen) for child in node.children if child.path not in seen]
    return replace(node, children=children)


def filter_tree_by_name(roots: Sequence[TreeNode], pattern: str) -> tuple[list[TreeNode], set[str]]:
    """Keep nodes whose name fuzzy-matches ``pattern``, plus their ancestors.

    A matching directory keeps its whole subtree. Returns the filtered roots and
    the directories that must be shown expanded to reveal every match. A blank
    pattern returns ``roots`` unchanged.
    """
    query = pattern.strip().lower()
    if not query:
        return list(roots), set()
    seen: set[str] = set()
    forced_expanded: set[str] = set()

    def visit(node: TreeNode) -> TreeNode | None:
        if node.path in seen:
            return None
        if matches_fuzzy(node.name.lower(), query):
            return _deep_copy(node, seen)
        seen.add(node.path)
        if not node.is_dir or not node.children:
            return None
        children = [kept for kept in (visit(child) for child in node.children) if kept is not None]
        if not children:
            return None
        forced_expanded.add(node.path)
        return replace(node, children=children)

    filtered = [kept for kept in (visit(node) for node in roots) if kept is not None]
    return filtered, forced_expanded


def filter_tree_by_git_status(
    roots: Sequence[TreeNode],
    statuses: Iterable[GitStatus],
) -> tuple[list[TreeNode], set[str]]:
    """Keep files whose git status is in ``statuses``, plus their ancestor directories."""
    wanted = frozenset(statuses)
    seen: set[str] = set()
    forced_expanded: set[str] = set()

    def visit(node: TreeNode) -> TreeNode | None:
        if node.path in seen:
            return None
        seen.add(node.path)
        if not node.is_dir:
            return replace(node) if node.git_status in wanted else None
        if not node.children:
            return None
        children = [kept for kept in (visit(child) for child in node.children) if kept is not None]
        if not children:
            return None
        forced_expanded.add(node.path)
        return replace(node, children=children)

    filtered = [kept for kept in (visit(node) for node in roots) if kept is not None]
    return filtered, forced_expanded


def filter_tree(
    roots: Sequence[TreeNode],
    name_query: str | None = None,
    git_statuses: Iterable[GitStatus] | None = None,
) -> tuple[list[TreeNode], set[str]]:
    """Apply the git-status filter, then the name filter.

    With neither filter active the input comes back as-is with nothing forced
    open.
    """
    result = list(roots)
    forced: set[str] = set()
    if git_statuses:
        result, forced_by_status = filter_tree_by_git_status(result, git_statuses)
        forced |= forced_by_status
    if name_query and name_query.strip():
        result, forced_by_name = filter_tree_by_name(result, name_query)
        forced |= forced_by_name
    return result, forced


__all__ = [
    "matches_fuzzy",
    "with_git_status",
    "filter_tree_by_name",
    "filter_tree_by_git_status",
    "filter_tree",
]
