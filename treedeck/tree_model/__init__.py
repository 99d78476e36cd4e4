"""Tree model: node types, cache-backed building, flattening and viewport math.

Everything here is free of terminal and watcher concerns. Rebuilds are always
wholesale; flattened rows and visible windows are recomputed per render.
"""

from __future__ import annotations

from .build import DirectoryChild, TreeBuilder, build_file_tree, count_total_files, sort_nodes
from .filtering import filter_tree, filter_tree_by_git_status, filter_tree_by_name, matches_fuzzy, with_git_status
from .flatten import count_reachable, flatten_visible_tree, iter_tree, with_expansion
from .guides import format_row, tree_guide
from .navigation import move_index, next_sibling_index, parent_index
from .scroll_anchor import ScrollAnchor, recompute_anchored_offset
from .types import FlattenedNode, GitStatus, NodeType, TreeNode, VisibleWindow
from .viewport import (
    calculate_scroll_to_node,
    calculate_viewport_height,
    calculate_visible_window,
    find_node_index,
    max_scroll_offset,
)

__all__ = [
    "TreeNode",
    "FlattenedNode",
    "VisibleWindow",
    "GitStatus",
    "NodeType",
    "DirectoryChild",
    "TreeBuilder",
    "build_file_tree",
    "count_total_files",
    "sort_nodes",
    "flatten_visible_tree",
    "with_expansion",
    "count_reachable",
    "iter_tree",
    "filter_tree",
    "filter_tree_by_name",
    "filter_tree_by_git_status",
    "matches_fuzzy",
    "with_git_status",
    "tree_guide",
    "format_row",
    "move_index",
    "parent_index",
    "next_sibling_index",
    "ScrollAnchor",
    "recompute_anchored_offset",
    "calculate_visible_window",
    "calculate_scroll_to_node",
    "find_node_index",
    "max_scroll_offset",
    "calculate_viewport_height",
]
