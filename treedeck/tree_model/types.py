"""Tree datatypes shared by the builder, flattener and viewport helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

GitStatus = Literal["modified", "added", "deleted", "untracked", "ignored"]
NodeType = Literal["file", "directory"]

GIT_STATUSES: tuple[str, ...] = ("modified", "added", "deleted", "untracked", "ignored")


@dataclass
class TreeNode:
    """One filesystem entry with ordered, exclusively-owned children.

    ``path`` is the absolute path string and is unique across a tree.
    ``children`` is only meaningful for directories.
    """

    name: str
    path: str
    type: NodeType
    depth: int = 0
    children: list[TreeNode] | None = None
    expanded: bool = False
    git_status: GitStatus | None = None
    size: int | None = None
    modified: datetime | None = None

    @property
    def is_dir(self) -> bool:
        return self.type == "directory"


@dataclass(frozen=True)
class FlattenedNode:
    """A visible row derived from a ``TreeNode`` during flattening."""

    node: TreeNode
    depth: int
    index: int
    is_last_sibling_at_depth: tuple[bool, ...] = ()

    @property
    def path(self) -> str:
        return self.node.path

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def type(self) -> NodeType:
        return self.node.type

    @property
    def is_dir(self) -> bool:
        return self.node.is_dir

    @property
    def expanded(self) -> bool:
        return self.node.expanded

    @property
    def git_status(self) -> GitStatus | None:
        return self.node.git_status


@dataclass(frozen=True)
class VisibleWindow:
    """Slice of the flattened tree that fits in the viewport."""

    nodes: list[FlattenedNode] = field(default_factory=list)
    start_index: int = 0
    end_index: int = 0
    total_nodes: int = 0
    scrolled_past: int = 0
    remaining: int = 0


__all__ = [
    "GitStatus",
    "NodeType",
    "GIT_STATUSES",
    "TreeNode",
    "FlattenedNode",
    "VisibleWindow",
]
