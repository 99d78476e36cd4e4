"""Cursor movement helpers over flattened rows."""

from __future__ import annotations

from collections.abc import Sequence

from .types import FlattenedNode


def move_index(current: int, delta: int, total: int) -> int:
    """Clamp ``current + delta`` into ``[0, total - 1]`` (``-1`` when empty)."""
    if total <= 0:
        return -1
    return max(0, min(total - 1, current + delta))


def parent_index(rows: Sequence[FlattenedNode], index: int) -> int:
    """Return the index of the row's parent directory, or ``-1`` for roots."""
    if not 0 <= index < len(rows):
        return -1
    depth = rows[index].depth
    for idx in range(index - 1, -1, -1):
        if rows[idx].depth < depth:
            return idx
    return -1


def next_sibling_index(rows: Sequence[FlattenedNode], index: int) -> int:
    """Index of the next row at the same depth under the same parent, or ``-1``."""
    if not 0 <= index < len(rows):
        return -1
    depth = rows[index].depth
    for idx in range(index + 1, len(rows)):
        if rows[idx].depth == depth:
            return idx
        if rows[idx].depth < depth:
            return -1
    return -1


__all__ = ["move_index", "parent_index", "next_sibling_index"]
