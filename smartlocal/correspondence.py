"""Position-based correspondence between an original subtree and its clone."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from .documents import DesignNode


@dataclass
class Correspondence:
    """Original node identity to cloned node, for one clone."""

    all_nodes: Dict[str, DesignNode] = field(default_factory=dict)
    text_nodes: Dict[str, DesignNode] = field(default_factory=dict)


def build_correspondence(original: DesignNode, cloned: DesignNode) -> Correspondence:
    """Walk both trees in lockstep, pairing children by index.

    The clone must not have been edited structurally yet. Where child lists
    differ in length the extra children on either side are left unmapped.
    """

    result = Correspondence()
    stack = [(original, cloned)]
    while stack:
        source, target = stack.pop()
        result.all_nodes[source.node_id] = target
        if source.is_text and target.is_text:
            result.text_nodes[source.node_id] = target
        stack.extend(zip(source.children, target.children))
    return result
