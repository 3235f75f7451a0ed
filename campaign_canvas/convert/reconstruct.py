"""
Graph -> tree: rebuild the persisted event forest from the canvas node, edge
and action lists as the editor left them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from campaign_canvas.convert.subordinates import compute_subordinates
from campaign_canvas.errors import NotFoundError, StructuralIntegrityError
from campaign_canvas.schema.models import (
    ActionLeaf,
    CanvasNode,
    CanvasWorkflow,
    EventNode,
    WorkflowTree,
)
from shared.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CanvasIndex:
    """Validated adjacency view over a canvas (arena of nodes keyed by id)."""

    canvas: CanvasWorkflow
    nodes: Dict[str, CanvasNode] = field(default_factory=dict)
    children: Dict[str, List[str]] = field(default_factory=dict)
    parent: Dict[str, str] = field(default_factory=dict)
    actions: Dict[str, ActionLeaf] = field(default_factory=dict)

    @classmethod
    def build(cls, canvas: CanvasWorkflow) -> "CanvasIndex":
        """
        Raises:
            StructuralIntegrityError: On duplicate node ids, dangling edges or
                a node with more than one incoming edge
        """
        index = cls(canvas=canvas, actions=canvas.action_table())
        for node in canvas.nodes:
            if node.id in index.nodes:
                raise StructuralIntegrityError(f"Duplicate canvas node id '{node.id}'")
            index.nodes[node.id] = node
            index.children[node.id] = []

        for edge in canvas.edges:
            if edge.source not in index.nodes:
                raise StructuralIntegrityError(
                    f"Edge '{edge.id}' has dangling source '{edge.source}'"
                )
            if edge.target not in index.nodes:
                raise StructuralIntegrityError(
                    f"Edge '{edge.id}' has dangling target '{edge.target}'"
                )
            if edge.target in index.parent:
                raise StructuralIntegrityError(
                    f"Node '{edge.target}' has more than one parent "
                    f"('{index.parent[edge.target]}' and '{edge.source}')"
                )
            index.parent[edge.target] = edge.source
            index.children[edge.source].append(edge.target)
        return index

    def roots(self) -> List[CanvasNode]:
        return [node for node in self.canvas.nodes if node.id not in self.parent]

    def attached_actions(self, node: CanvasNode) -> List[ActionLeaf]:
        attached = []
        for action_id in node.properties.action_ids:
            action = self.actions.get(action_id)
            if action is None:
                logger.warning(f"Node '{node.id}' references unknown action '{action_id}'")
                continue
            attached.append(action.model_copy(update={"workflow_event": node.id}))
        return attached

    def to_event(self, node: CanvasNode, children: List[EventNode]) -> EventNode:
        properties = node.properties
        return EventNode(
            id=node.id,
            name=node.label,
            description=node.description,
            category=properties.category,
            event_type=node.event_type,
            parent_id=self.parent.get(node.id),
            children=children,
            actions=self.attached_actions(node),
            position_x=node.position.x,
            position_y=node.position.y,
            created_at=properties.created_at or self.canvas.created_at,
            updated_at=properties.updated_at or self.canvas.updated_at,
        )

    def build_tree(self, node_id: str, visited: Optional[Set[str]] = None) -> EventNode:
        node = self.nodes.get(node_id)
        if node is None:
            raise NotFoundError(f"Node '{node_id}' not found on the canvas")
        if visited is not None:
            visited.add(node_id)
        children = [self.build_tree(child_id, visited) for child_id in self.children[node_id]]
        return self.to_event(node, children)


def build_event_tree(canvas: CanvasWorkflow, node_id: str) -> EventNode:
    """Rebuild the subtree rooted at ``node_id`` with fresh subordinate counts."""
    return compute_subordinates(CanvasIndex.build(canvas).build_tree(node_id))


def canvas_to_json_workflow(
    canvas: CanvasWorkflow,
    *,
    is_active: bool = True,
    live_status: bool = False,
) -> WorkflowTree:
    """
    Convert the canvas view back into a persisted workflow.

    The canvas does not carry the workflow status flags; pass the loaded
    workflow's ``is_active`` and ``live_status`` to keep them.

    Roots are the nodes with no incoming edge; each may start its own tree.
    Parent links come from edges, not from the nodes' cached ``parent_id``.
    Nodes unreachable from every root (members of an edge cycle) are left out
    of ``events`` and returned on ``unreachable_events`` instead.
    """
    index = CanvasIndex.build(canvas)
    visited: Set[str] = set()
    events = [compute_subordinates(index.build_tree(root.id, visited)) for root in index.roots()]

    unreachable = [
        index.to_event(node, [])
        for node in canvas.nodes
        if node.id not in visited
    ]
    if unreachable:
        logger.warning(
            f"Workflow {canvas.id}: {len(unreachable)} canvas node(s) unreachable from any root: "
            f"{[event.id for event in unreachable]}"
        )

    logger.debug(f"Reconstructed workflow {canvas.id}: {len(events)} root(s), {len(visited)} node(s)")
    return WorkflowTree(
        id=canvas.id,
        name=canvas.name,
        description=canvas.description,
        is_active=is_active,
        live_status=live_status,
        events=events,
        created_at=canvas.created_at,
        updated_at=canvas.updated_at,
        unreachable_events=unreachable,
    )
