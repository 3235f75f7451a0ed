"""
Editor session: one working copy of a workflow canvas, kept in step with the
persistence layer one interactive change at a time.

Every mutating call builds the next canvas first, awaits the store, and only
then commits. A failing store call leaves ``session.canvas`` exactly as it was.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from campaign_canvas.convert.incremental import (
    attach_action,
    canvas_to_json_node,
    detach_action,
    insert_node,
    parent_edge,
    remove_node,
    reparent_node,
    replace_node,
)
from campaign_canvas.convert.reconcile import merge_action_id, merge_persisted_id
from campaign_canvas.convert.reconstruct import canvas_to_json_workflow
from campaign_canvas.convert.serialize import json_to_canvas_workflow
from campaign_canvas.errors import NotFoundError, StructuralIntegrityError
from campaign_canvas.persistence.store import WorkflowStore
from campaign_canvas.schema.identity import is_persisted_id, new_local_id
from campaign_canvas.schema.models import (
    ActionLeaf,
    CanvasNode,
    CanvasWorkflow,
    EventCategory,
    EventNode,
    NodeProperties,
    Position,
    WorkflowTree,
)
from shared.config import config
from shared.logger import get_logger

logger = get_logger(__name__)

START_NODE_ID = "start"


def start_node() -> CanvasNode:
    """The synthetic entry node of a brand-new workflow."""
    return CanvasNode(
        id=START_NODE_ID,
        kind="event",
        position=Position(x=250, y=50),
        label="Start",
        description="Beginning of the workflow",
        properties=NodeProperties(event_type="start"),
    )


class CanvasSession:
    """Interactive editing of one workflow canvas."""

    def __init__(
        self,
        store: WorkflowStore,
        canvas: CanvasWorkflow,
        workflow_id: Optional[str] = None,
        *,
        is_active: bool = True,
        live_status: bool = False,
    ):
        self.store = store
        self.canvas = canvas
        self.workflow_id = workflow_id
        # status flags are not part of the canvas view
        self.is_active = is_active
        self.live_status = live_status
        self.selected_node_id: Optional[str] = None

    @classmethod
    async def load(cls, store: WorkflowStore, workflow_id: str) -> "CanvasSession":
        tree = await store.get_workflow(workflow_id)
        return cls(
            store,
            json_to_canvas_workflow(tree),
            workflow_id=workflow_id,
            is_active=tree.is_active,
            live_status=tree.live_status,
        )

    @classmethod
    def new(cls, store: WorkflowStore, name: str = "", description: Optional[str] = None) -> "CanvasSession":
        canvas = CanvasWorkflow(name=name, description=description, nodes=[start_node()])
        return cls(store, canvas)

    @property
    def is_persisted(self) -> bool:
        return self.workflow_id is not None

    def _node(self, node_id: str) -> CanvasNode:
        node = self.canvas.node(node_id)
        if node is None:
            raise NotFoundError(f"Node '{node_id}' not found on the canvas")
        return node

    def next_position(self, parent_id: Optional[str] = None) -> Position:
        """Directly below the parent, otherwise below the lowest node."""
        offset = config.canvas_insert_offset
        if parent_id is not None:
            parent = self._node(parent_id)
            return Position(x=parent.position.x, y=parent.position.y + offset)
        if self.canvas.nodes:
            return Position(
                x=config.canvas_default_x,
                y=max(node.position.y for node in self.canvas.nodes) + offset,
            )
        return Position(x=config.canvas_default_x, y=config.canvas_default_y)

    async def _persist_node(self, candidate: CanvasWorkflow, node_id: str) -> Tuple[CanvasWorkflow, str]:
        """
        Create or update ``node_id`` on the server and merge back the canonical id.
        Returns the updated canvas and the node's id after the merge; while the
        workflow itself is unsaved nothing is sent.
        """
        if not self.is_persisted:
            return candidate, node_id

        node = candidate.node(node_id)
        event = canvas_to_json_node(node, candidate.edges, candidate.actions)
        if is_persisted_id(node_id):
            stored = await self.store.update_event(self.workflow_id, node_id, event)
        else:
            stored = await self.store.create_event(self.workflow_id, event)

        if stored.id is not None and stored.id != node_id:
            candidate = merge_persisted_id(candidate, node_id, stored.id)
            node_id = stored.id
        return self._stamp(candidate, node_id, stored), node_id

    @staticmethod
    def _stamp(canvas: CanvasWorkflow, node_id: str, stored: EventNode) -> CanvasWorkflow:
        node = canvas.node(node_id)
        properties = node.properties.model_copy(update={
            "created_at": stored.created_at or node.properties.created_at,
            "updated_at": stored.updated_at or node.properties.updated_at,
        })
        return replace_node(canvas, node.model_copy(update={"properties": properties}))

    # ------------------------------------------------------------------
    # nodes and edges
    # ------------------------------------------------------------------
    async def add_node(
        self,
        event_type: str,
        *,
        label: str = "",
        description: Optional[str] = None,
        parent_id: Optional[str] = None,
        category: EventCategory = EventCategory.web,
        settings: Optional[Dict[str, Any]] = None,
    ) -> CanvasNode:
        """Add an event node, wired under ``parent_id`` when given."""
        local_id = str(new_local_id("event"))
        node = CanvasNode(
            id=local_id,
            kind=event_type,
            position=self.next_position(parent_id),
            label=label,
            description=description,
            properties=NodeProperties(event_type=event_type, category=category, settings=settings or {}),
        )
        candidate = insert_node(self.canvas, node, parent_id)
        candidate, node_id = await self._persist_node(candidate, local_id)

        added = candidate.node(node_id)
        self.canvas = candidate
        self.selected_node_id = added.id
        logger.info(f"Added node {added.id} ({event_type}) under {parent_id}")
        return added

    async def connect(self, source: str, target: str) -> None:
        """
        Make ``source`` the parent of ``target``.

        The stale incoming edge of ``target`` is replaced only after the
        server acknowledges the reparent.
        """
        self._node(source)
        self._node(target)
        current = parent_edge(target, self.canvas.edges)
        if current is not None and current.source == source:
            return

        candidate = reparent_node(self.canvas, target, source)
        candidate, _ = await self._persist_node(candidate, target)
        self.canvas = candidate
        logger.info(f"Connected {source} -> {target}")

    async def update_node(
        self,
        node_id: str,
        *,
        label: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[EventCategory] = None,
        settings: Optional[Dict[str, Any]] = None,
        position: Optional[Position] = None,
    ) -> CanvasNode:
        node = self._node(node_id)
        properties = node.properties
        if category is not None:
            properties = properties.model_copy(update={"category": category})
        if settings is not None:
            properties = properties.model_copy(update={"settings": {**properties.settings, **settings}})

        changes: Dict[str, Any] = {"properties": properties}
        if label is not None:
            changes["label"] = label
        if description is not None:
            changes["description"] = description
        if position is not None:
            changes["position"] = position

        candidate = replace_node(self.canvas, node.model_copy(update=changes))
        candidate, persisted_id = await self._persist_node(candidate, node_id)
        self.canvas = candidate
        if self.selected_node_id == node_id:
            self.selected_node_id = persisted_id
        return candidate.node(persisted_id)

    async def delete_node(self, node_id: str) -> None:
        """Delete a node; its children become roots and its actions are detached."""
        self._node(node_id)
        candidate = remove_node(self.canvas, node_id)
        if self.is_persisted and is_persisted_id(node_id):
            await self.store.delete_event(self.workflow_id, node_id)
        self.canvas = candidate
        if self.selected_node_id == node_id:
            self.selected_node_id = None
        logger.info(f"Deleted node {node_id}")

    # ------------------------------------------------------------------
    # actions
    # ------------------------------------------------------------------
    def _persisted_owner(self, node_id: str) -> bool:
        return self.is_persisted and is_persisted_id(node_id)

    async def attach_action(self, node_id: str, action: ActionLeaf) -> ActionLeaf:
        self._node(node_id)
        if self._persisted_owner(node_id):
            stored = await self.store.create_action(self.workflow_id, node_id, action)
        else:
            stored = action
            if stored.id is None:
                stored = stored.model_copy(update={"id": str(new_local_id("action"))})
        self.canvas = attach_action(self.canvas, node_id, stored)
        return self.canvas.action_table()[stored.id]

    async def update_action(self, node_id: str, action: ActionLeaf) -> ActionLeaf:
        node = self._node(node_id)
        if action.id not in node.properties.action_ids:
            raise NotFoundError(f"Action '{action.id}' is not attached to node '{node_id}'")

        candidate = self.canvas
        stored = action.model_copy(update={"workflow_event": node_id})
        if self._persisted_owner(node_id):
            if is_persisted_id(action.id):
                stored = await self.store.update_action(self.workflow_id, node_id, action)
            else:
                stored = await self.store.create_action(self.workflow_id, node_id, action)
                candidate = merge_action_id(candidate, action.id, stored.id)

        actions = [stored if existing.id == stored.id else existing for existing in candidate.actions]
        self.canvas = candidate.model_copy(update={"actions": actions})
        return stored

    async def detach_action(self, node_id: str, action_id: str) -> None:
        self._node(node_id)
        candidate = detach_action(self.canvas, node_id, action_id)
        if self._persisted_owner(node_id) and is_persisted_id(action_id):
            await self.store.delete_action(self.workflow_id, node_id, action_id)
        self.canvas = candidate

    # ------------------------------------------------------------------
    # whole workflow
    # ------------------------------------------------------------------
    def rename(self, name: str, description: Optional[str] = None) -> None:
        self.canvas = self.canvas.model_copy(update={"name": name, "description": description})

    def to_tree(self) -> WorkflowTree:
        return canvas_to_json_workflow(self.canvas, is_active=self.is_active, live_status=self.live_status)

    async def save(self) -> WorkflowTree:
        """
        Persist the whole canvas and reload it from the server's answer.

        Raises:
            StructuralIntegrityError: If any node is unreachable from every
                root; such nodes would be lost on save
        """
        tree = self.to_tree()
        if tree.unreachable_events:
            raise StructuralIntegrityError(
                "Refusing to save: nodes unreachable from any root "
                f"{[event.id for event in tree.unreachable_events]}"
            )

        if self.is_persisted:
            saved = await self.store.update_workflow(self.workflow_id, tree)
        else:
            saved = await self.store.create_workflow(tree)
            self.workflow_id = saved.id
        self.canvas = json_to_canvas_workflow(saved)
        self.is_active = saved.is_active
        self.live_status = saved.live_status
        logger.info(f"Saved workflow {self.workflow_id} ({len(self.canvas.nodes)} nodes)")
        return saved
