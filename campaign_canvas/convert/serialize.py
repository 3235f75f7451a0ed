"""
Tree -> graph: flatten a workflow forest into positioned canvas nodes, edges
and one global action table.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from campaign_canvas.convert.subordinates import compute_subordinates
from campaign_canvas.errors import StructuralIntegrityError
from campaign_canvas.schema.identity import new_local_id
from campaign_canvas.schema.models import (
    ActionLeaf,
    CanvasEdge,
    CanvasNode,
    CanvasWorkflow,
    EventNode,
    NodeProperties,
    Position,
    WorkflowTree,
)
from shared.config import config
from shared.logger import get_logger

logger = get_logger(__name__)


def event_to_canvas_node(event: EventNode, x: float = 0, y: float = 0) -> CanvasNode:
    """Draw one event. Explicit ``position_x``/``position_y`` win over ``x``/``y``."""
    if event.id is None:
        raise StructuralIntegrityError(f"Event '{event.name or event.event_type}' has no id")
    return CanvasNode(
        id=event.id,
        kind=event.event_type,
        position=Position(
            x=event.position_x if event.position_x is not None else x,
            y=event.position_y if event.position_y is not None else y,
        ),
        label=event.name,
        description=event.description,
        properties=NodeProperties(
            event_type=event.event_type,
            category=event.category,
            parent_id=event.parent_id,
            action_ids=[action.id for action in event.actions if action.id is not None],
            created_at=event.created_at,
            updated_at=event.updated_at,
        ),
    )


def serialize_event(
    event: EventNode,
    x: float = 0,
    y: float = 0,
    *,
    with_children: bool = False,
    x_gap: Optional[float] = None,
    y_gap: Optional[float] = None,
) -> List[CanvasNode]:
    """
    Emit the canvas node for ``event`` and, with ``with_children``, for its
    whole subtree.

    Children sit one ``x_gap`` to the right of their parent. The first child
    is one ``y_gap`` below the parent and every later sibling is pushed down
    by ``y_gap * (subordinate_count + 1)`` of the sibling before it, so
    subtrees never overlap. Subordinate counts must be current.
    """
    x_gap = config.canvas_x_gap if x_gap is None else x_gap
    y_gap = config.canvas_y_gap if y_gap is None else y_gap

    node = event_to_canvas_node(event, x, y)
    nodes = [node]
    if not with_children:
        return nodes

    child_x = node.position.x + x_gap
    child_y = node.position.y + y_gap
    for child in event.children:
        nodes.extend(
            serialize_event(child, child_x, child_y, with_children=True, x_gap=x_gap, y_gap=y_gap)
        )
        child_y += y_gap * (child.subordinate_count + 1)
    return nodes


def serialize_actions(
    event: EventNode,
    accumulator: List[ActionLeaf],
    *,
    with_children: bool = False,
) -> List[ActionLeaf]:
    """Append the event's actions to ``accumulator``, owner reference filled in."""
    for action in event.actions:
        if action.workflow_event is None:
            action = action.model_copy(update={"workflow_event": event.id})
        accumulator.append(action)

    if with_children:
        for child in event.children:
            serialize_actions(child, accumulator, with_children=True)
    return accumulator


def build_edges(events: List[EventNode]) -> List[CanvasEdge]:
    """One parent -> child edge per non-root event in the forest."""
    return [
        CanvasEdge.between(event.parent_id, event.id)
        for root in events
        for event in root.walk()
        if event.parent_id is not None
    ]


def _normalize_actions(event: EventNode) -> EventNode:
    actions = [
        action if action.id is not None else action.model_copy(update={"id": str(new_local_id("action"))})
        for action in event.actions
    ]
    return event.model_copy(update={"actions": actions})


def assemble_forest(events: List[EventNode]) -> List[EventNode]:
    """
    Normalize persisted events into a nested forest.

    Accepts nested trees, flat lists where every event sits at the top level
    with ``parent_id`` set, or a mix. Nesting fixes the parent of nested
    children; top-level events follow ``parent_id``. Missing event and action
    ids get local placeholders.

    Raises:
        StructuralIntegrityError: On duplicate ids, conflicting parents,
            parents absent from the workflow or parent cycles
    """
    flat: Dict[str, EventNode] = {}
    order: List[Tuple[str, Optional[str]]] = []

    def collect(event: EventNode, nested_parent: Optional[str]) -> None:
        event_id = event.id if event.id is not None else str(new_local_id("event"))
        if event_id in flat:
            raise StructuralIntegrityError(f"Duplicate event id '{event_id}'")
        parent_id = event.parent_id
        if nested_parent is not None:
            if parent_id is not None and parent_id != nested_parent:
                raise StructuralIntegrityError(
                    f"Event '{event_id}' is nested under '{nested_parent}' but names parent '{parent_id}'"
                )
            parent_id = nested_parent
        flat[event_id] = _normalize_actions(event).model_copy(
            update={"id": event_id, "parent_id": parent_id, "children": []}
        )
        order.append((event_id, parent_id))
        for child in event.children:
            collect(child, event_id)

    for event in events:
        collect(event, None)

    children: Dict[str, List[str]] = {event_id: [] for event_id in flat}
    roots: List[str] = []
    for event_id, parent_id in order:
        if parent_id is None:
            roots.append(event_id)
        elif parent_id not in flat:
            raise StructuralIntegrityError(
                f"Event '{event_id}' references missing parent '{parent_id}'"
            )
        else:
            children[parent_id].append(event_id)

    placed = set()

    def build(event_id: str) -> EventNode:
        placed.add(event_id)
        return flat[event_id].model_copy(
            update={"children": [build(child_id) for child_id in children[event_id]]}
        )

    forest = [build(root_id) for root_id in roots]
    if len(placed) != len(flat):
        stranded = sorted(set(flat) - placed)
        raise StructuralIntegrityError(f"Parent cycle detected among events {stranded}")
    return forest


def json_to_canvas_workflow(
    tree: WorkflowTree,
    *,
    x_gap: Optional[float] = None,
    y_gap: Optional[float] = None,
) -> CanvasWorkflow:
    """
    Convert a persisted workflow into the canvas view.

    Produces exactly one node per event and one edge per non-root event.
    Roots without explicit positions are stacked in one column using the
    sibling spacing rule.
    """
    y_gap = config.canvas_y_gap if y_gap is None else y_gap
    forest = [compute_subordinates(event) for event in assemble_forest(tree.events)]

    nodes: List[CanvasNode] = []
    actions: List[ActionLeaf] = []
    root_y = 0.0
    for root in forest:
        nodes.extend(serialize_event(root, 0, root_y, with_children=True, x_gap=x_gap, y_gap=y_gap))
        serialize_actions(root, actions, with_children=True)
        root_y += y_gap * (root.subordinate_count + 1)

    edges = build_edges(forest)
    logger.debug(
        f"Serialized workflow {tree.id}: {len(nodes)} nodes, {len(edges)} edges, {len(actions)} actions"
    )
    return CanvasWorkflow(
        id=tree.id,
        name=tree.name,
        description=tree.description,
        nodes=nodes,
        edges=edges,
        actions=actions,
        created_at=tree.created_at,
        updated_at=tree.updated_at,
    )
