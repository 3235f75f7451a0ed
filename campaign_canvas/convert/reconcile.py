"""
Identity reconciliation between the canvas and the persistence layer.

Outgoing payloads never carry client-local ids: the server mints canonical
ids, and the caller merges them back with ``merge_persisted_id``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from campaign_canvas.errors import NotFoundError, StructuralIntegrityError
from campaign_canvas.schema.identity import LocalId, parse_id, persisted_or_none
from campaign_canvas.schema.models import (
    ActionLeaf,
    CanvasWorkflow,
    EventNode,
    MessageTemplate,
    WorkflowTree,
)
from shared.logger import get_logger

logger = get_logger(__name__)


def outgoing_message_payload(message: MessageTemplate) -> Dict[str, Any]:
    payload = message.model_dump(mode="json")
    if persisted_or_none(message.id) is None:
        payload.pop("id", None)
    return payload


def outgoing_action_payload(action: ActionLeaf) -> Dict[str, Any]:
    """Action body for a create/update call with local ids stripped."""
    payload = action.model_dump(mode="json", exclude={"web_message"})
    if persisted_or_none(action.id) is None:
        payload.pop("id", None)
    payload["workflow_event"] = persisted_or_none(action.workflow_event)
    payload["web_message_id"] = persisted_or_none(action.web_message_id)
    if action.web_message is not None:
        payload["web_message"] = outgoing_message_payload(action.web_message)
    return payload


def outgoing_event_payload(event: EventNode, *, include_children: bool = False) -> Dict[str, Any]:
    """
    Event body for a create/update call.

    A local ``id`` is omitted and a local ``parent_id`` is sent as null; the
    child names its parent only once the parent has a canonical id.
    """
    payload = event.model_dump(mode="json", exclude={"children", "actions", "subordinate_count"})
    if persisted_or_none(event.id) is None:
        payload.pop("id", None)
    payload["parent_id"] = persisted_or_none(event.parent_id)
    payload["actions"] = [outgoing_action_payload(action) for action in event.actions]
    if include_children:
        payload["children"] = [
            outgoing_event_payload(child, include_children=True) for child in event.children
        ]
    return payload


def outgoing_workflow_payload(tree: WorkflowTree) -> Dict[str, Any]:
    """Whole-workflow body; nesting carries the structure local ids cannot."""
    payload = tree.model_dump(mode="json", exclude={"events"})
    if persisted_or_none(tree.id) is None:
        payload.pop("id", None)
    payload["events"] = [outgoing_event_payload(event, include_children=True) for event in tree.events]
    return payload


def _rewrite(value: Optional[str], old: str, new: str) -> Optional[str]:
    return new if value == old else value


def merge_persisted_id(canvas: CanvasWorkflow, local_id: str, persisted_id: str) -> CanvasWorkflow:
    """
    Replace a node's placeholder id with the id the server assigned.

    Rewrites the node itself, every edge that references it, its children's
    cached ``parent_id`` and the owner reference of its actions.
    """
    if local_id == persisted_id:
        return canvas
    if canvas.node(local_id) is None:
        raise NotFoundError(f"Node '{local_id}' not found on the canvas")
    if canvas.node(persisted_id) is not None:
        raise StructuralIntegrityError(f"Node id '{persisted_id}' is already on the canvas")
    if not isinstance(parse_id(local_id), LocalId):
        logger.warning(f"Replacing persisted node id '{local_id}' with '{persisted_id}'")

    nodes = []
    for node in canvas.nodes:
        properties = node.properties
        if properties.parent_id == local_id:
            properties = properties.model_copy(update={"parent_id": persisted_id})
        nodes.append(node.model_copy(update={
            "id": _rewrite(node.id, local_id, persisted_id),
            "properties": properties,
        }))

    edges = []
    for edge in canvas.edges:
        if local_id in (edge.source, edge.target):
            source = _rewrite(edge.source, local_id, persisted_id)
            target = _rewrite(edge.target, local_id, persisted_id)
            edge = edge.model_copy(update={"id": f"e{source}-{target}", "source": source, "target": target})
        edges.append(edge)

    actions = [
        action.model_copy(update={"workflow_event": persisted_id})
        if action.workflow_event == local_id else action
        for action in canvas.actions
    ]
    logger.debug(f"Merged node id {local_id} -> {persisted_id}")
    return canvas.model_copy(update={"nodes": nodes, "edges": edges, "actions": actions})


def merge_action_id(canvas: CanvasWorkflow, local_id: str, persisted_id: str) -> CanvasWorkflow:
    """Replace an action's placeholder id in the table and every node reference."""
    if local_id == persisted_id:
        return canvas
    actions = [
        action.model_copy(update={"id": persisted_id}) if action.id == local_id else action
        for action in canvas.actions
    ]
    nodes = []
    for node in canvas.nodes:
        if local_id in node.properties.action_ids:
            action_ids = [_rewrite(action_id, local_id, persisted_id) for action_id in node.properties.action_ids]
            node = node.model_copy(update={
                "properties": node.properties.model_copy(update={"action_ids": action_ids}),
            })
        nodes.append(node)
    return canvas.model_copy(update={"nodes": nodes, "actions": actions})
