"""Scroll-position anchoring across wholesale tree rebuilds.

The tree is rebuilt from scratch on every refresh, so the flattened rows are a
brand new list each time. ``ScrollAnchor`` keeps the row that was at the top of
the viewport fixed when the row count above it changes, and separately keeps
the selected row visible when the selection (or viewport size) changes.
"""

from __future__ import annotations

from collections.abc import Sequence

from .types import FlattenedNode
from .viewport import calculate_scroll_to_node, find_node_index, max_scroll_offset


class ScrollAnchor:
    """Owns ``scroll_offset`` for one tree view."""

    def __init__(self, viewport_height: int, scroll_offset: int = 0) -> None:
        if viewport_height < 1:
            raise ValueError("viewport_height must be >= 1")
        self.viewport_height = viewport_height
        self.scroll_offset = max(0, scroll_offset)
        self._rows: Sequence[FlattenedNode] | None = None
        self._prev_selected_path: str | None = None
        self._prev_viewport_height: int | None = None

    @property
    def rows(self) -> Sequence[FlattenedNode]:
        return self._rows if self._rows is not None else ()

    def update_rows(self, rows: Sequence[FlattenedNode]) -> int:
        """Adopt a freshly flattened row list and re-anchor the scroll offset.

        Does nothing when ``rows`` is the list already adopted, so calling this
        from every render cannot fight with the windower.
        """
        if rows is self._rows:
            return self.scroll_offset
        previous = self._rows
        self._rows = rows
        self.scroll_offset = recompute_anchored_offset(
            previous if previous is not None else (),
            rows,
            self.scroll_offset,
            self.viewport_height,
        )
        return self.scroll_offset

    def follow_cursor(self, selected_path: str | None) -> int:
        """Scroll the selected row into view when selection or height changed.

        A plain re-render with the same selection and height leaves the offset
        alone, which preserves a manual scroll that moved the cursor off-screen.
        """
        selection_changed = selected_path != self._prev_selected_path
        height_changed = self.viewport_height != self._prev_viewport_height
        self._prev_selected_path = selected_path
        self._prev_viewport_height = self.viewport_height
        if not (selection_changed or height_changed):
            return self.scroll_offset

        index = find_node_index(self.rows, selected_path)
        if index < 0:
            return self.scroll_offset
        self.scroll_offset = calculate_scroll_to_node(index, self.scroll_offset, self.viewport_height)
        return self.scroll_offset

    def resize(self, viewport_height: int) -> None:
        if viewport_height < 1:
            raise ValueError("viewport_height must be >= 1")
        self.viewport_height = viewport_height

    def scroll_by(self, delta: int) -> int:
        """Manual scroll, clamped to the populated range."""
        upper = max_scroll_offset(len(self.rows), self.viewport_height)
        self.scroll_offset = max(0, min(upper, self.scroll_offset + delta))
        return self.scroll_offset

    def reset(self) -> None:
        """Forget previous rows and selection (used when the root changes)."""
        self._rows = None
        self._prev_selected_path = None
        self._prev_viewport_height = None
        self.scroll_offset = 0


def recompute_anchored_offset(
    previous_rows: Sequence[FlattenedNode],
    new_rows: Sequence[FlattenedNode],
    scroll_offset: int,
    viewport_height: int,
) -> int:
    """Return the offset that keeps the previous top row in place.

    1. If the row at ``scroll_offset`` in ``previous_rows`` still exists in
       ``new_rows``, scroll to its new index (not clamped at the bottom).
    2. Otherwise, if ``new_rows`` still has a row at the old offset, stay there.
    3. Otherwise clamp to the last full page.
    """
    scroll_offset = max(0, scroll_offset)
    if 0 <= scroll_offset < len(previous_rows):
        anchor_path = previous_rows[scroll_offset].path
        new_index = find_node_index(new_rows, anchor_path)
        if new_index >= 0:
            return new_index
    if scroll_offset < len(new_rows):
        return scroll_offset
    return max_scroll_offset(len(new_rows), viewport_height)


__all__ = ["ScrollAnchor", "recompute_anchored_offset"]
