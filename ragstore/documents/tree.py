"""
Hierarchical view over the flat document key namespace.

Keys are split on ``/`` and ``\\``; keys sharing a prefix share the nodes for
it. Nothing here is persisted.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

_SEPARATORS = re.compile(r"[/\\]")


@dataclass
class TreeNode:
    name: str
    key: Optional[str] = None
    """Full document key when a document is stored at this node"""

    children: List["TreeNode"] = field(default_factory=list)

    @property
    def is_document(self) -> bool:
        return self.key is not None

    def child(self, name: str) -> Optional["TreeNode"]:
        for node in self.children:
            if node.name == name:
                return node
        return None

    def render(self, depth: int = 0) -> List[str]:
        """Indented lines for this node and its descendants."""
        lines = ["  " * depth + self.name]
        for node in self.children:
            lines.extend(node.render(depth + 1))
        return lines


def split_key(key: str) -> List[str]:
    return [segment for segment in _SEPARATORS.split(key) if segment]


def build_tree(keys: Iterable[str]) -> List[TreeNode]:
    """
    Group keys into a forest by common path prefix.

    Order of first appearance is kept at every level. A key that is also a
    prefix of other keys (``docs`` and ``docs/a.md``) yields one node that
    both carries the key and has children.
    """
    roots = []
    for key in keys:
        segments = split_key(key)
        if not segments:
            continue

        siblings = roots
        node = None
        for segment in segments:
            node = next((n for n in siblings if n.name == segment), None)
            if node is None:
                node = TreeNode(name=segment)
                siblings.append(node)
            siblings = node.children
        node.key = key

    return roots


def render_tree(roots: Iterable[TreeNode]) -> str:
    lines = []
    for root in roots:
        lines.extend(root.render())
    return "\n".join(lines)
