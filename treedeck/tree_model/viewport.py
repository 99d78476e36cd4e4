"""Viewport windowing over flattened tree rows."""

from __future__ import annotations

import shutil
from collections.abc import Sequence

from .types import FlattenedNode, VisibleWindow

DEFAULT_TERMINAL_ROWS = 24
DEFAULT_RESERVED_ROWS = 3


def calculate_visible_window(
    flat_nodes: Sequence[FlattenedNode],
    scroll_offset: int,
    viewport_height: int,
) -> VisibleWindow:
    """Slice ``flat_nodes`` for a viewport starting at ``scroll_offset``.

    Only the top is clamped. Offsets past the bottom are left alone so the
    caller can keep elastic space after a collapse.
    """
    total = len(flat_nodes)
    start = max(0, scroll_offset)
    end = min(total, start + max(0, viewport_height))
    end = max(end, min(start, total))
    return VisibleWindow(
        nodes=list(flat_nodes[start:end]),
        start_index=start,
        end_index=end,
        total_nodes=total,
        scrolled_past=min(start, total),
        remaining=max(0, total - end),
    )


def calculate_scroll_to_node(node_index: int, current_offset: int, viewport_height: int) -> int:
    """Return the smallest scroll change that keeps ``node_index`` on screen."""
    if node_index < current_offset:
        return node_index
    if node_index >= current_offset + viewport_height:
        return node_index - viewport_height + 1
    return current_offset


def find_node_index(flat_nodes: Sequence[FlattenedNode], path: str | None) -> int:
    """Return the row index for ``path`` or ``-1``."""
    if path is None:
        return -1
    for idx, node in enumerate(flat_nodes):
        if node.path == path:
            return idx
    return -1


def max_scroll_offset(total_nodes: int, viewport_height: int) -> int:
    return max(0, total_nodes - viewport_height)


def calculate_viewport_height(reserved_rows: int = DEFAULT_RESERVED_ROWS) -> int:
    """Terminal rows available to the tree after header/status rows."""
    rows = shutil.get_terminal_size((80, DEFAULT_TERMINAL_ROWS)).lines
    return max(1, rows - reserved_rows)


__all__ = [
    "calculate_visible_window",
    "calculate_scroll_to_node",
    "find_node_index",
    "max_scroll_offset",
    "calculate_viewport_height",
]
