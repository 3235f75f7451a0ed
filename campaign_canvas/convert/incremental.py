"""
Single-node conversion and canvas bookkeeping for interactive edits.

Each helper returns a new edge list or canvas and leaves its input untouched,
so a caller can discard the result if the matching server call fails.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from campaign_canvas.errors import NotFoundError, StructuralIntegrityError
from campaign_canvas.schema.models import (
    ActionLeaf,
    CanvasEdge,
    CanvasNode,
    CanvasWorkflow,
    EventNode,
)
from shared.logger import get_logger

logger = get_logger(__name__)


def parent_edge(node_id: str, edges: List[CanvasEdge]) -> Optional[CanvasEdge]:
    """Return the single incoming edge of ``node_id``, if any."""
    incoming = [edge for edge in edges if edge.target == node_id]
    if len(incoming) > 1:
        raise StructuralIntegrityError(
            f"Node '{node_id}' has {len(incoming)} incoming edges: {[edge.id for edge in incoming]}"
        )
    return incoming[0] if incoming else None


def canvas_to_json_node(
    node: CanvasNode,
    edges: List[CanvasEdge],
    actions: List[ActionLeaf],
) -> EventNode:
    """
    Convert one canvas node into its event form without touching the rest of
    the forest. Children are not included.

    The parent comes from the node's incoming edge, falling back to the cached
    ``parent_id`` while the node is still detached.
    """
    edge = parent_edge(node.id, edges)
    parent_id = edge.source if edge is not None else node.properties.parent_id

    table: Dict[Optional[str], ActionLeaf] = {action.id: action for action in actions}
    attached = [
        table[action_id].model_copy(update={"workflow_event": node.id})
        for action_id in node.properties.action_ids
        if action_id in table
    ]

    return EventNode(
        id=node.id,
        name=node.label,
        description=node.description,
        category=node.properties.category,
        event_type=node.event_type,
        parent_id=parent_id,
        actions=attached,
        position_x=node.position.x,
        position_y=node.position.y,
        created_at=node.properties.created_at,
        updated_at=node.properties.updated_at,
    )


def canvas_to_json_nodes(
    nodes: List[CanvasNode],
    edges: List[CanvasEdge],
    actions: List[ActionLeaf],
) -> List[EventNode]:
    return [canvas_to_json_node(node, edges, actions) for node in nodes]


def _is_ancestor(candidate: str, node_id: str, edges: List[CanvasEdge]) -> bool:
    parents = {edge.target: edge.source for edge in edges}
    current = parents.get(node_id)
    seen = set()
    while current is not None and current not in seen:
        if current == candidate:
            return True
        seen.add(current)
        current = parents.get(current)
    return False


def connect_edge(edges: List[CanvasEdge], source: str, target: str) -> List[CanvasEdge]:
    """
    Make ``source`` the only parent of ``target``.

    Any stale incoming edge of ``target`` is dropped before the new edge is
    appended.

    Raises:
        StructuralIntegrityError: If the edge would be a self-loop or close a cycle
    """
    if source == target:
        raise StructuralIntegrityError(f"Node '{source}' cannot be its own parent")
    if _is_ancestor(target, source, edges):
        raise StructuralIntegrityError(
            f"Connecting '{source}' -> '{target}' would create a cycle"
        )
    kept = [edge for edge in edges if edge.target != target]
    if len(kept) != len(edges):
        logger.debug(f"Replacing stale parent edge of '{target}'")
    kept.append(CanvasEdge.between(source, target))
    return kept


def _require_node(canvas: CanvasWorkflow, node_id: str) -> CanvasNode:
    node = canvas.node(node_id)
    if node is None:
        raise NotFoundError(f"Node '{node_id}' not found on the canvas")
    return node


def _with_parent(node: CanvasNode, parent_id: Optional[str]) -> CanvasNode:
    properties = node.properties.model_copy(update={"parent_id": parent_id})
    return node.model_copy(update={"properties": properties})


def replace_node(canvas: CanvasWorkflow, node: CanvasNode) -> CanvasWorkflow:
    """Swap the node with the same id, keeping its place in the node list."""
    _require_node(canvas, node.id)
    nodes = [node if existing.id == node.id else existing for existing in canvas.nodes]
    return canvas.model_copy(update={"nodes": nodes})


def insert_node(
    canvas: CanvasWorkflow,
    node: CanvasNode,
    parent_id: Optional[str] = None,
) -> CanvasWorkflow:
    """Add a node, optionally wired under ``parent_id``."""
    if canvas.node(node.id) is not None:
        raise StructuralIntegrityError(f"Duplicate canvas node id '{node.id}'")
    edges = list(canvas.edges)
    if parent_id is not None:
        _require_node(canvas, parent_id)
        edges = connect_edge(edges, parent_id, node.id)
    node = _with_parent(node, parent_id)
    return canvas.model_copy(update={"nodes": [*canvas.nodes, node], "edges": edges})


def reparent_node(canvas: CanvasWorkflow, node_id: str, parent_id: str) -> CanvasWorkflow:
    """Move ``node_id`` (and its subtree) under ``parent_id``."""
    node = _require_node(canvas, node_id)
    _require_node(canvas, parent_id)
    edges = connect_edge(canvas.edges, parent_id, node_id)
    updated = replace_node(canvas, _with_parent(node, parent_id))
    return updated.model_copy(update={"edges": edges})


def remove_node(canvas: CanvasWorkflow, node_id: str) -> CanvasWorkflow:
    """
    Delete a node.

    Every edge touching it is severed, its children become roots, and actions
    it owned stay in the action table with no owner.
    """
    _require_node(canvas, node_id)
    child_ids = {edge.target for edge in canvas.edges if edge.source == node_id}
    nodes = [
        _with_parent(node, None) if node.id in child_ids else node
        for node in canvas.nodes
        if node.id != node_id
    ]
    edges = [edge for edge in canvas.edges if node_id not in (edge.source, edge.target)]
    actions = [
        action.model_copy(update={"workflow_event": None}) if action.workflow_event == node_id else action
        for action in canvas.actions
    ]
    return canvas.model_copy(update={"nodes": nodes, "edges": edges, "actions": actions})


def attach_action(canvas: CanvasWorkflow, node_id: str, action: ActionLeaf) -> CanvasWorkflow:
    """Add ``action`` to the action table and reference it from ``node_id``."""
    if action.id is None:
        raise StructuralIntegrityError("Cannot attach an action without an id")
    node = _require_node(canvas, node_id)
    owned = action.model_copy(update={"workflow_event": node_id})
    actions = [existing for existing in canvas.actions if existing.id != action.id]
    actions.append(owned)
    action_ids = node.properties.action_ids
    if action.id not in action_ids:
        action_ids = [*action_ids, action.id]
    properties = node.properties.model_copy(update={"action_ids": action_ids})
    updated = replace_node(canvas, node.model_copy(update={"properties": properties}))
    return updated.model_copy(update={"actions": actions})


def detach_action(canvas: CanvasWorkflow, node_id: str, action_id: str) -> CanvasWorkflow:
    """Drop the node's reference to ``action_id`` and remove it from the table."""
    node = _require_node(canvas, node_id)
    properties = node.properties.model_copy(
        update={"action_ids": [existing for existing in node.properties.action_ids if existing != action_id]}
    )
    updated = replace_node(canvas, node.model_copy(update={"properties": properties}))
    actions = [action for action in canvas.actions if action.id != action_id]
    return updated.model_copy(update={"actions": actions})
