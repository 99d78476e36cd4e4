"""Guide-glyph prefixes and row text for flattened tree rows."""

from __future__ import annotations

from .types import FlattenedNode

GUIDE_VERTICAL = "│"
GUIDE_BRANCH = "├─"
GUIDE_LAST_BRANCH = "└─"

GIT_STATUS_MARKERS = {
    "modified": "M",
    "added": "A",
    "deleted": "D",
    "untracked": "U",
    "ignored": "I",
}


def tree_guide(depth: int, is_last_sibling_at_depth: tuple[bool, ...] | list[bool], indent: int = 2) -> str:
    """Return the connector prefix for a row at ``depth``.

    Roots get no prefix. Each ancestor level contributes a vertical bar when
    that ancestor still has siblings below it, spaces otherwise.
    """
    if depth <= 0:
        return ""
    pad = max(1, indent)
    parts: list[str] = []
    for level in range(depth - 1):
        is_last = level < len(is_last_sibling_at_depth) and is_last_sibling_at_depth[level]
        parts.append(" " * pad if is_last else GUIDE_VERTICAL.ljust(pad))
    own_last = depth - 1 < len(is_last_sibling_at_depth) and is_last_sibling_at_depth[depth - 1]
    parts.append(GUIDE_LAST_BRANCH if own_last else GUIDE_BRANCH)
    return "".join(parts)


def format_row(row: FlattenedNode, *, selected: bool = False, indent: int = 2) -> str:
    """Plain-text rendering of one row (directories get a trailing slash)."""
    guide = tree_guide(row.depth, row.is_last_sibling_at_depth, indent)
    if guide:
        guide += " "
    if row.is_dir:
        marker = "▾ " if row.expanded else "▸ "
        name = f"{row.name}/"
    else:
        marker = ""
        name = row.name
    status = GIT_STATUS_MARKERS.get(row.git_status or "", "")
    badge = f" [{status}]" if status else ""
    cursor = "> " if selected else "  "
    return f"{cursor}{guide}{marker}{name}{badge}"


__all__ = ["tree_guide", "format_row", "GIT_STATUS_MARKERS"]
