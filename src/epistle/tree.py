from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from epistle.config import DEFAULT_MAX_FILE_SIZE_BYTES

if TYPE_CHECKING:
    from collections.abc import Iterable

    from epistle.config import ScannedFile


@dataclass
class TreeNode:
    """A node of the display tree; only leaves reference a scanned file."""

    name: str
    children: dict[str, TreeNode] = field(default_factory=dict)
    file: ScannedFile | None = None


def build_tree(files: Iterable[ScannedFile]) -> TreeNode:
    """Build a display tree from a flat list of scanned files.

    Nodes are keyed by path segment, so a directory and a file may be siblings.

    Args:
        files (Iterable[ScannedFile]): the scanned files

    Returns:
        TreeNode: an unnamed root node
    """
    root = TreeNode(name="")
    for f in files:
        segments = [s for s in f.path.split("/") if s]
        current = root
        for segment in segments:
            current = current.children.setdefault(segment, TreeNode(name=segment))
        current.file = f
    return root


def leaf_annotation(file: ScannedFile, max_file_size: int = DEFAULT_MAX_FILE_SIZE_BYTES) -> str:
    """Suffix appended to a leaf label for files whose content is left out."""
    if file.is_binary:
        return " [binary]"
    if file.is_oversized:
        return f" [skipped >{max_file_size // 1024}KB]"
    return ""


def tree_lines(
    node: TreeNode,
    prefix: str = "",
    max_file_size: int = DEFAULT_MAX_FILE_SIZE_BYTES,
) -> list[str]:
    """Render the children of `node` depth-first, sorted by name.

    Args:
        node (TreeNode): the node whose children are rendered
        prefix (str): connector prefix inherited from the parent levels
        max_file_size (int): inline threshold used in the oversized annotation

    Returns:
        list[str]: one line per node below `node`
    """
    lines: list[str] = []
    entries = sorted(node.children.values(), key=lambda n: n.name)
    for idx, child in enumerate(entries):
        last = idx == len(entries) - 1
        branch = "└── " if last else "├── "
        label = child.name
        if child.file is not None:
            label += leaf_annotation(child.file, max_file_size)
        lines.append(prefix + branch + label)
        if child.children:
            ext = "    " if last else "│   "
            lines.extend(tree_lines(child, prefix + ext, max_file_size))
    return lines


def render_tree(files: Iterable[ScannedFile], max_file_size: int = DEFAULT_MAX_FILE_SIZE_BYTES) -> str:
    """Build and render the display tree of `files` as text."""
    return "\n".join(tree_lines(build_tree(files), max_file_size=max_file_size))
