from __future__ import annotations

import pytest

from campaign_canvas.convert.incremental import canvas_to_json_node, insert_node
from campaign_canvas.convert.reconcile import (
    merge_action_id,
    merge_persisted_id,
    outgoing_action_payload,
    outgoing_event_payload,
    outgoing_workflow_payload,
)
from campaign_canvas.errors import NotFoundError, StructuralIntegrityError
from campaign_canvas.schema.models import (
    ActionLeaf,
    CanvasNode,
    CanvasWorkflow,
    EventNode,
    MessageTemplate,
    NodeProperties,
    canvas_from_react_flow,
)
from tests.shared_data import event, uuid_id, workflow


def _unsaved_pair() -> CanvasWorkflow:
    canvas = CanvasWorkflow(nodes=[
        CanvasNode(id="event-1", kind="page_view", properties=NodeProperties(event_type="page_view")),
    ])
    child = CanvasNode(id="event-2", kind="click", properties=NodeProperties(event_type="click"))
    return insert_node(canvas, child, "event-1")


def test_local_ids_never_leave_the_client() -> None:
    canvas = _unsaved_pair()
    child = canvas_to_json_node(canvas.node("event-2"), canvas.edges, canvas.actions)

    payload = outgoing_event_payload(child)

    assert "id" not in payload
    assert payload["parent_id"] is None
    assert payload["event_type"] == "click"
    assert "children" not in payload
    assert "subordinate_count" not in payload


def test_child_names_parent_after_merge() -> None:
    canvas = _unsaved_pair()
    parent_id = uuid_id()

    canvas = merge_persisted_id(canvas, "event-1", parent_id)
    child = canvas_to_json_node(canvas.node("event-2"), canvas.edges, canvas.actions)

    assert outgoing_event_payload(child)["parent_id"] == parent_id


def test_persisted_ids_are_sent() -> None:
    event_id, parent_id = uuid_id(), uuid_id()
    payload = outgoing_event_payload(EventNode(id=event_id, event_type="click", parent_id=parent_id))
    assert payload["id"] == event_id
    assert payload["parent_id"] == parent_id


def test_action_payload_strips_local_references() -> None:
    template = MessageTemplate(id="draft", title="Hi")
    leaf = ActionLeaf(
        id="action-7",
        action_type="show_message",
        workflow_event="event-3",
        web_message_id="draft",
        web_message=template,
    )
    payload = outgoing_action_payload(leaf)

    assert "id" not in payload
    assert payload["workflow_event"] is None
    assert payload["web_message_id"] is None
    assert "id" not in payload["web_message"]
    assert payload["web_message"]["title"] == "Hi"


def test_workflow_payload_nests_children_without_ids() -> None:
    tree = workflow(event("start", "page_view", event("event-9", "click")))
    payload = outgoing_workflow_payload(tree)

    root = payload["events"][0]
    assert "id" not in root
    assert [child["event_type"] for child in root["children"]] == ["click"]
    assert "id" not in root["children"][0]
    assert "unreachable_events" not in payload


def test_merge_rewrites_every_reference(nested_canvas: CanvasWorkflow) -> None:
    new_id = uuid_id()
    merged = merge_persisted_id(nested_canvas, "a1", new_id)

    assert merged.node("a1") is None
    assert merged.node(new_id) is not None
    assert [edge.id for edge in merged.edges if edge.target == new_id] == [f"ea-{new_id}"]
    owners = {leaf.id: leaf.workflow_event for leaf in merged.actions}
    assert owners["x1"] == owners["x2"] == new_id

    merged = merge_persisted_id(merged, "a", uuid_id())
    assert merged.node(new_id).properties.parent_id != "a"
    assert {edge.source for edge in merged.edges} & {"a"} == set()


def test_merge_unknown_node(nested_canvas: CanvasWorkflow) -> None:
    with pytest.raises(NotFoundError):
        merge_persisted_id(nested_canvas, "ghost", uuid_id())


def test_merge_onto_existing_id(nested_canvas: CanvasWorkflow) -> None:
    with pytest.raises(StructuralIntegrityError):
        merge_persisted_id(nested_canvas, "a1", "b")


def test_merge_same_id_is_a_no_op(nested_canvas: CanvasWorkflow) -> None:
    assert merge_persisted_id(nested_canvas, "a1", "a1") is nested_canvas


def test_merge_action_id(nested_canvas: CanvasWorkflow) -> None:
    new_id = uuid_id()
    merged = merge_action_id(nested_canvas, "x2", new_id)

    assert merged.node("a1").properties.action_ids == ["x1", new_id]
    assert new_id in merged.action_table()
    assert "x2" not in merged.action_table()


def test_merge_keeps_edge_styling() -> None:
    canvas = canvas_from_react_flow({
        "nodes": [
            {"id": "event-1", "type": "page_view", "data": {"type": "page_view"}},
            {"id": "event-2", "type": "click", "data": {"type": "click"}},
        ],
        "edges": [{
            "id": "eevent-1-event-2",
            "source": "event-1",
            "target": "event-2",
            "type": "step",
            "animated": True,
            "markerEnd": {"type": "arrow"},
        }],
    })
    new_id = uuid_id()

    edge = merge_persisted_id(canvas, "event-1", new_id).edges[0]

    assert (edge.id, edge.source, edge.target) == (f"e{new_id}-event-2", new_id, "event-2")
    assert (edge.type, edge.animated, edge.marker_end) == ("step", True, {"type": "arrow"})
