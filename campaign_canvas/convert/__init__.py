"""Conversions between the persisted workflow tree and the canvas graph."""

from campaign_canvas.convert.incremental import (
    attach_action,
    canvas_to_json_node,
    canvas_to_json_nodes,
    connect_edge,
    detach_action,
    insert_node,
    parent_edge,
    remove_node,
    reparent_node,
    replace_node,
)
from campaign_canvas.convert.reconcile import (
    merge_action_id,
    merge_persisted_id,
    outgoing_action_payload,
    outgoing_event_payload,
    outgoing_message_payload,
    outgoing_workflow_payload,
)
from campaign_canvas.convert.reconstruct import (
    CanvasIndex,
    build_event_tree,
    canvas_to_json_workflow,
)
from campaign_canvas.convert.serialize import (
    assemble_forest,
    build_edges,
    event_to_canvas_node,
    json_to_canvas_workflow,
    serialize_actions,
    serialize_event,
)
from campaign_canvas.convert.subordinates import (
    compute_forest_subordinates,
    compute_subordinates,
)

__all__ = [
    "CanvasIndex",
    "assemble_forest",
    "attach_action",
    "build_edges",
    "build_event_tree",
    "canvas_to_json_node",
    "canvas_to_json_nodes",
    "canvas_to_json_workflow",
    "compute_forest_subordinates",
    "compute_subordinates",
    "connect_edge",
    "detach_action",
    "event_to_canvas_node",
    "insert_node",
    "json_to_canvas_workflow",
    "merge_action_id",
    "merge_persisted_id",
    "outgoing_action_payload",
    "outgoing_event_payload",
    "outgoing_message_payload",
    "outgoing_workflow_payload",
    "parent_edge",
    "remove_node",
    "reparent_node",
    "replace_node",
    "serialize_actions",
    "serialize_event",
]
