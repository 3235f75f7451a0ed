"""Typed models and identity helpers for workflow trees and canvas graphs."""

from campaign_canvas.schema.identity import (
    EntityId,
    LocalId,
    PersistedId,
    create_slug,
    find_template,
    is_persisted_id,
    new_local_id,
    parse_id,
)
from campaign_canvas.schema.models import (
    ActionLeaf,
    CanvasEdge,
    CanvasNode,
    CanvasWorkflow,
    EventCategory,
    EventNode,
    MessageTemplate,
    NodeProperties,
    Position,
    WorkflowTree,
)

__all__ = [
    "ActionLeaf",
    "CanvasEdge",
    "CanvasNode",
    "CanvasWorkflow",
    "EntityId",
    "EventCategory",
    "EventNode",
    "LocalId",
    "MessageTemplate",
    "NodeProperties",
    "PersistedId",
    "Position",
    "WorkflowTree",
    "create_slug",
    "find_template",
    "is_persisted_id",
    "new_local_id",
    "parse_id",
]
