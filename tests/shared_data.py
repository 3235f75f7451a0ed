from __future__ import annotations

import uuid
from typing import Dict, List, Optional, Set, Tuple

from campaign_canvas.schema.models import ActionLeaf, EventNode, WorkflowTree


def uuid_id() -> str:
    return str(uuid.uuid4())


def action(action_id: Optional[str], action_type: str = "show_message", **extra) -> ActionLeaf:
    return ActionLeaf(id=action_id, action_type=action_type, **extra)


def event(
    event_id: Optional[str],
    event_type: str = "page_view",
    *children: EventNode,
    actions: Tuple[ActionLeaf, ...] = (),
    **extra,
) -> EventNode:
    """Build an event whose children already name it as their parent."""
    return EventNode(
        id=event_id,
        name=extra.pop("name", event_type.replace("_", " ").title()),
        event_type=event_type,
        children=[child.model_copy(update={"parent_id": event_id}) for child in children],
        actions=list(actions),
        **extra,
    )


def workflow(*roots: EventNode, **extra) -> WorkflowTree:
    return WorkflowTree(name=extra.pop("name", "Welcome Campaign"), events=list(roots), **extra)


def triples(tree: WorkflowTree) -> Set[Tuple[Optional[str], Optional[str], str]]:
    return {(node.id, node.parent_id, node.event_type) for node in tree.walk()}


def attachments(tree: WorkflowTree) -> Dict[Optional[str], List[Optional[str]]]:
    return {node.id: [leaf.id for leaf in node.actions] for node in tree.walk()}


# Scenario A: a root with one child carrying one action.
SINGLE_CHAIN = workflow(
    event("start", "event", event("action-1", "action", actions=(action("a1"),))),
)

# A three level tree plus a second, standalone root.
#
#   r
#   |-- a
#   |   |-- a1
#   |   `-- a2
#   `-- b
#   s
NESTED_FOREST = workflow(
    event(
        "r",
        "page_view",
        event(
            "a",
            "click",
            event("a1", "scroll", actions=(action("x1"), action("x2", "redirect"))),
            event("a2", "exit_intent"),
        ),
        event("b", "form_submit", actions=(action("y1"),)),
    ),
    event("s", "time_on_page"),
)
