"""Tree flattening: hierarchical nodes plus expansion state to visible rows."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace

from .types import FlattenedNode, TreeNode


def flatten_visible_tree(roots: Sequence[TreeNode], depth: int = 0) -> list[FlattenedNode]:
    """Return the ordered rows currently visible for ``roots``.

    Traversal is depth-first pre-order. Roots are always included; children are
    included only while every ancestor is an expanded directory. ``depth`` on
    each row is recomputed from traversal position, never read from the input.

    ``is_last_sibling_at_depth`` has one entry per level below the roots:
    entry ``d - 1`` tells whether the row's ancestor at depth ``d`` (or the row
    itself, for the last entry) is the final child of its parent. Renderers use
    it to decide where vertical guides continue.

    Paths already emitted are skipped so a symlink loop in a live listing can
    never recurse forever. Skipped siblings do not count when deciding which
    row is last.
    """
    result: list[FlattenedNode] = []
    visited: set[str] = set()

    def walk(nodes: Sequence[TreeNode], current_depth: int, parent_flags: tuple[bool, ...]) -> None:
        emitted: list[TreeNode] = []
        for node in nodes:
            if node.path not in visited:
                visited.add(node.path)
                emitted.append(node)
        last_index = len(emitted) - 1
        for position, node in enumerate(emitted):
            if current_depth > depth:
                flags = parent_flags + (position == last_index,)
            else:
                flags = parent_flags
            result.append(
                FlattenedNode(
                    node=node,
                    depth=current_depth,
                    index=len(result),
                    is_last_sibling_at_depth=flags,
                )
            )
            if node.is_dir and node.expanded and node.children:
                walk(node.children, current_depth + 1, flags)

    walk(roots, depth, ())
    return result


def with_expansion(roots: Sequence[TreeNode], expanded: Iterable[str]) -> list[TreeNode]:
    """Return a copy of ``roots`` whose directories are expanded exactly when listed.

    Input nodes are left untouched; unchanged leaves are shared with the input.
    """
    expanded_paths = expanded if isinstance(expanded, (set, frozenset)) else set(expanded)
    seen: set[str] = set()

    def copy(nodes: Sequence[TreeNode]) -> list[TreeNode]:
        out: list[TreeNode] = []
        for node in nodes:
            if node.path in seen:
                continue
            seen.add(node.path)
            if not node.is_dir:
                out.append(node)
                continue
            children = copy(node.children) if node.children is not None else None
            out.append(replace(node, expanded=node.path in expanded_paths, children=children))
        return out

    return copy(roots)


def count_reachable(roots: Sequence[TreeNode]) -> int:
    """Count nodes reachable from ``roots`` through expanded directories only."""
    count = 0
    seen: set[str] = set()
    stack = list(roots)
    while stack:
        node = stack.pop()
        if node.path in seen:
            continue
        seen.add(node.path)
        count += 1
        if node.is_dir and node.expanded and node.children:
            stack.extend(node.children)
    return count


def iter_tree(roots: Sequence[TreeNode]) -> Iterable[TreeNode]:
    """Yield every node in pre-order regardless of expansion state."""
    seen: set[str] = set()
    stack = list(reversed(roots))
    while stack:
        node = stack.pop()
        if node.path in seen:
            continue
        seen.add(node.path)
        yield node
        if node.children:
            stack.extend(reversed(node.children))


__all__ = [
    "flatten_visible_tree",
    "with_expansion",
    "count_reachable",
    "iter_tree",
]
