"""
Descendant counting for event trees.
"""

from __future__ import annotations

from typing import List

from campaign_canvas.schema.models import EventNode


def compute_subordinates(root: EventNode) -> EventNode:
    """
    Return a copy of ``root`` with ``subordinate_count`` set on every node.

    Children are processed first; a node's count is its number of children
    plus the sum of their counts.
    """
    children = [compute_subordinates(child) for child in root.children]
    count = len(children) + sum(child.subordinate_count for child in children)
    return root.model_copy(update={"children": children, "subordinate_count": count})


def compute_forest_subordinates(events: List[EventNode]) -> List[EventNode]:
    return [compute_subordinates(event) for event in events]
