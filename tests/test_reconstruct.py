from __future__ import annotations

import logging

import pytest

from campaign_canvas.convert.incremental import connect_edge
from campaign_canvas.convert.reconstruct import build_event_tree, canvas_to_json_workflow
from campaign_canvas.convert.serialize import json_to_canvas_workflow
from campaign_canvas.errors import NotFoundError, StructuralIntegrityError
from campaign_canvas.schema.models import CanvasEdge, CanvasWorkflow, WorkflowTree
from tests.shared_data import attachments, event, triples, workflow


def _counts(tree: WorkflowTree) -> dict:
    return {node.id: node.subordinate_count for node in tree.walk()}


def test_round_trip_preserves_structure_and_actions(nested_forest: WorkflowTree) -> None:
    rebuilt = canvas_to_json_workflow(json_to_canvas_workflow(nested_forest))

    assert triples(rebuilt) == triples(nested_forest)
    assert attachments(rebuilt) == attachments(nested_forest)
    assert rebuilt.unreachable_events == []
    assert rebuilt.is_active is True
    assert rebuilt.live_status is False


def test_round_trip_fills_action_owner(nested_forest: WorkflowTree) -> None:
    rebuilt = canvas_to_json_workflow(json_to_canvas_workflow(nested_forest))
    for node in rebuilt.walk():
        assert all(leaf.workflow_event == node.id for leaf in node.actions)


def test_single_chain_round_trip(single_chain: WorkflowTree) -> None:
    rebuilt = canvas_to_json_workflow(json_to_canvas_workflow(single_chain))

    assert len(rebuilt.events) == 1
    root = rebuilt.events[0]
    assert (root.id, root.subordinate_count) == ("start", 1)
    child = root.children[0]
    assert (child.id, child.parent_id, child.subordinate_count) == ("action-1", "start", 0)
    assert [leaf.id for leaf in child.actions] == ["a1"]


def test_disconnected_roots_stay_separate() -> None:
    canvas = json_to_canvas_workflow(workflow(event("one"), event("two")))
    rebuilt = canvas_to_json_workflow(canvas)
    assert [root.id for root in rebuilt.events] == ["one", "two"]
    assert all(root.children == [] for root in rebuilt.events)


def test_reparenting_moves_subtree_counts() -> None:
    #   R            R
    #   |-- A        |-- A
    #   |   `-- C    `-- B
    #   `-- B            `-- C
    tree = workflow(event("R", "page_view", event("A", "click", event("C", "scroll")), event("B", "form_submit")))
    canvas = json_to_canvas_workflow(tree)
    before = _counts(canvas_to_json_workflow(canvas))

    edges = connect_edge(canvas.edges, "B", "C")
    incoming = [edge for edge in edges if edge.target == "C"]
    assert [(edge.source, edge.id) for edge in incoming] == [("B", "eB-C")]

    after = _counts(canvas_to_json_workflow(canvas.model_copy(update={"edges": edges})))
    assert before == {"R": 3, "A": 1, "C": 0, "B": 0}
    assert after == {"R": 3, "A": 0, "B": 1, "C": 0}


def test_parent_comes_from_edges_not_cached_property(nested_canvas: CanvasWorkflow) -> None:
    node = nested_canvas.node("a1")
    stale = node.model_copy(update={"properties": node.properties.model_copy(update={"parent_id": "b"})})
    nodes = [stale if existing.id == "a1" else existing for existing in nested_canvas.nodes]

    rebuilt = canvas_to_json_workflow(nested_canvas.model_copy(update={"nodes": nodes}))
    parents = {node.id: node.parent_id for node in rebuilt.walk()}
    assert parents["a1"] == "a"


def test_every_non_root_has_one_matching_incoming_edge(nested_canvas: CanvasWorkflow) -> None:
    rebuilt = canvas_to_json_workflow(nested_canvas)
    canvas = json_to_canvas_workflow(rebuilt)
    for node in rebuilt.walk():
        incoming = [edge for edge in canvas.edges if edge.target == node.id]
        if node.parent_id is None:
            assert incoming == []
        else:
            assert [edge.source for edge in incoming] == [node.parent_id]


def test_positions_are_kept_on_the_events(nested_canvas: CanvasWorkflow) -> None:
    rebuilt = canvas_to_json_workflow(nested_canvas)
    b = next(node for node in rebuilt.walk() if node.id == "b")
    assert (b.position_x, b.position_y) == (200, 600)


@pytest.mark.parametrize("source, target", [("ghost", "a"), ("a", "ghost")])
def test_dangling_edge_is_rejected(nested_canvas: CanvasWorkflow, source: str, target: str) -> None:
    edges = [*nested_canvas.edges, CanvasEdge.between(source, target)]
    with pytest.raises(StructuralIntegrityError) as excinfo:
        canvas_to_json_workflow(nested_canvas.model_copy(update={"edges": edges}))
    assert f"e{source}-{target}" in str(excinfo.value)


def test_second_parent_is_rejected(nested_canvas: CanvasWorkflow) -> None:
    edges = [*nested_canvas.edges, CanvasEdge.between("b", "a1")]
    with pytest.raises(StructuralIntegrityError) as excinfo:
        canvas_to_json_workflow(nested_canvas.model_copy(update={"edges": edges}))
    assert "more than one parent" in str(excinfo.value)


def test_duplicate_node_is_rejected(nested_canvas: CanvasWorkflow) -> None:
    nodes = [*nested_canvas.nodes, nested_canvas.node("s")]
    with pytest.raises(StructuralIntegrityError):
        canvas_to_json_workflow(nested_canvas.model_copy(update={"nodes": nodes}))


def test_build_event_tree_for_subtree(nested_canvas: CanvasWorkflow) -> None:
    subtree = build_event_tree(nested_canvas, "a")
    assert [node.id for node in subtree.walk()] == ["a", "a1", "a2"]
    assert subtree.parent_id == "r"
    assert subtree.subordinate_count == 2


def test_build_event_tree_for_unknown_node(nested_canvas: CanvasWorkflow) -> None:
    with pytest.raises(NotFoundError):
        build_event_tree(nested_canvas, "nope")


def test_cycle_members_are_reported_not_dropped(
    nested_canvas: CanvasWorkflow,
    caplog: pytest.LogCaptureFixture,
) -> None:
    # "s" and a fresh pair pointing at each other: the pair has no root.
    loop = json_to_canvas_workflow(workflow(event("x"), event("y")))
    canvas = nested_canvas.model_copy(update={
        "nodes": [*nested_canvas.nodes, *loop.nodes],
        "edges": [*nested_canvas.edges, CanvasEdge.between("x", "y"), CanvasEdge.between("y", "x")],
    })

    with caplog.at_level(logging.WARNING):
        rebuilt = canvas_to_json_workflow(canvas)

    assert {node.id for node in rebuilt.walk()} == {"r", "a", "a1", "a2", "b", "s"}
    assert sorted(node.id for node in rebuilt.unreachable_events) == ["x", "y"]
    assert "unreachable" in caplog.text
    assert "unreachable_events" not in rebuilt.model_dump()


def test_unknown_action_reference_is_skipped(nested_canvas: CanvasWorkflow) -> None:
    node = nested_canvas.node("s")
    dangling = node.model_copy(update={
        "properties": node.properties.model_copy(update={"action_ids": ["missing"]}),
    })
    nodes = [dangling if existing.id == "s" else existing for existing in nested_canvas.nodes]

    rebuilt = canvas_to_json_workflow(nested_canvas.model_copy(update={"nodes": nodes}))
    s = next(node for node in rebuilt.walk() if node.id == "s")
    assert s.actions == []
