from __future__ import annotations

from campaign_canvas.convert.subordinates import compute_forest_subordinates, compute_subordinates
from campaign_canvas.schema.models import EventNode, WorkflowTree
from tests.shared_data import event


def test_leaf_has_no_subordinates() -> None:
    assert compute_subordinates(event("x")).subordinate_count == 0


def test_counts_every_descendant(nested_forest: WorkflowTree) -> None:
    root = compute_subordinates(nested_forest.events[0])
    counts = {node.id: node.subordinate_count for node in root.walk()}
    assert counts == {"r": 4, "a": 2, "a1": 0, "a2": 0, "b": 0}


def test_count_matches_subtree_size(nested_forest: WorkflowTree) -> None:
    for root in compute_forest_subordinates(nested_forest.events):
        for node in root.walk():
            assert node.subordinate_count == len(list(node.walk())) - 1


def test_stored_counts_are_recomputed() -> None:
    stale = event("p", "page_view", event("c").model_copy(update={"subordinate_count": 7}))
    stale = stale.model_copy(update={"subordinate_count": 99})

    fresh = compute_subordinates(stale)

    assert fresh.subordinate_count == 1
    assert fresh.children[0].subordinate_count == 0
    # input is left as it was
    assert stale.subordinate_count == 99
    assert stale.children[0].subordinate_count == 7


def test_wire_alias_is_accepted() -> None:
    parsed = EventNode.model_validate({"id": "p", "event_type": "click", "subordinates": 3})
    assert parsed.subordinate_count == 3
