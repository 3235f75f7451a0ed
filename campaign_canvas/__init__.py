"""
Public entrypoint for converting campaign workflows between their persisted
tree form and the canvas editor's node/edge graph.
"""

from __future__ import annotations

from campaign_canvas.convert import (
    canvas_to_json_node,
    canvas_to_json_nodes,
    canvas_to_json_workflow,
    compute_subordinates,
    connect_edge,
    json_to_canvas_workflow,
    merge_persisted_id,
    outgoing_event_payload,
    remove_node,
    serialize_actions,
    serialize_event,
)
from campaign_canvas.editor import CanvasSession
from campaign_canvas.errors import (
    CanvasError,
    NotFoundError,
    PersistenceError,
    StructuralIntegrityError,
)
from campaign_canvas.persistence import HttpWorkflowStore, InMemoryWorkflowStore, WorkflowStore
from campaign_canvas.schema import (
    ActionLeaf,
    CanvasEdge,
    CanvasNode,
    CanvasWorkflow,
    EventCategory,
    EventNode,
    MessageTemplate,
    WorkflowTree,
    create_slug,
    is_persisted_id,
    parse_id,
)
from campaign_canvas.schema.models import canvas_from_react_flow

__all__ = [
    # models
    "ActionLeaf",
    "CanvasEdge",
    "CanvasNode",
    "CanvasWorkflow",
    "EventCategory",
    "EventNode",
    "MessageTemplate",
    "WorkflowTree",
    # conversion
    "canvas_from_react_flow",
    "canvas_to_json_node",
    "canvas_to_json_nodes",
    "canvas_to_json_workflow",
    "compute_subordinates",
    "connect_edge",
    "json_to_canvas_workflow",
    "merge_persisted_id",
    "outgoing_event_payload",
    "remove_node",
    "serialize_actions",
    "serialize_event",
    # identity
    "create_slug",
    "is_persisted_id",
    "parse_id",
    # editing and persistence
    "CanvasSession",
    "HttpWorkflowStore",
    "InMemoryWorkflowStore",
    "WorkflowStore",
    # errors
    "CanvasError",
    "NotFoundError",
    "PersistenceError",
    "StructuralIntegrityError",
]
