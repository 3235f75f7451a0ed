"""
Persistence boundary consumed by the canvas editor.

``WorkflowStore`` is the contract; ``InMemoryWorkflowStore`` behaves like the
REST backend (mints UUID4 ids, stamps timestamps, rejects unknown parents) and
serves as the offline fallback and test double.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from pydantic import ValidationError

from campaign_canvas.convert.reconcile import (
    outgoing_action_payload,
    outgoing_event_payload,
    outgoing_message_payload,
    outgoing_workflow_payload,
)
from campaign_canvas.errors import PersistenceError
from campaign_canvas.schema.models import ActionLeaf, EventNode, MessageTemplate, WorkflowTree
from shared.logger import get_logger

logger = get_logger(__name__)


class WorkflowStore(Protocol):
    async def get_workflow(self, workflow_id: str) -> WorkflowTree: ...

    async def create_workflow(self, workflow: WorkflowTree) -> WorkflowTree: ...

    async def update_workflow(self, workflow_id: str, workflow: WorkflowTree) -> WorkflowTree: ...

    async def create_event(self, workflow_id: str, event: EventNode) -> EventNode: ...

    async def update_event(self, workflow_id: str, event_id: str, event: EventNode) -> EventNode: ...

    async def delete_event(self, workflow_id: str, event_id: str) -> None: ...

    async def create_action(self, workflow_id: str, event_id: str, action: ActionLeaf) -> ActionLeaf: ...

    async def update_action(self, workflow_id: str, event_id: str, action: ActionLeaf) -> ActionLeaf: ...

    async def delete_action(self, workflow_id: str, event_id: str, action_id: str) -> None: ...

    async def create_message(self, message: MessageTemplate) -> MessageTemplate: ...

    async def update_message(self, message: MessageTemplate) -> MessageTemplate: ...

    async def delete_message(self, message_id: str) -> None: ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _mint() -> str:
    return str(uuid.uuid4())


class InMemoryWorkflowStore:
    """Dict-backed store. Events are kept flat with ``parent_id`` links."""

    def __init__(self):
        self._workflows: Dict[str, Dict[str, Any]] = {}
        self._events: Dict[str, Dict[str, EventNode]] = {}
        self._actions: Dict[str, Dict[str, ActionLeaf]] = {}
        self._messages: Dict[str, MessageTemplate] = {}

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _workflow_events(self, workflow_id: str) -> Dict[str, EventNode]:
        if workflow_id not in self._workflows:
            raise PersistenceError(f"Workflow '{workflow_id}' not found", status_code=404)
        return self._events[workflow_id]

    def _require_event(self, workflow_id: str, event_id: str) -> EventNode:
        events = self._workflow_events(workflow_id)
        if event_id not in events:
            raise PersistenceError(
                f"Event '{event_id}' not found in workflow '{workflow_id}'", status_code=404
            )
        return events[event_id]

    def _check_parent(self, workflow_id: str, parent_id: Optional[str]) -> None:
        if parent_id is not None and parent_id not in self._workflow_events(workflow_id):
            raise PersistenceError(f"Parent event '{parent_id}' does not exist", status_code=400)

    def _event_with_actions(self, workflow_id: str, event: EventNode) -> EventNode:
        actions = [
            action for action in self._actions[workflow_id].values()
            if action.workflow_event == event.id
        ]
        return event.model_copy(update={"actions": actions})

    @staticmethod
    def _validate(model, payload: Dict[str, Any]):
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise PersistenceError(f"Invalid {model.__name__} payload: {exc}", status_code=400) from exc

    def _store_action(self, workflow_id: str, event_id: str, payload: Dict[str, Any]) -> ActionLeaf:
        stamp = _now()
        action = self._validate(ActionLeaf, payload)
        action = action.model_copy(update={
            "id": action.id or _mint(),
            "workflow_event": event_id,
            "created_at": action.created_at or stamp,
            "updated_at": stamp,
        })
        self._actions[workflow_id][action.id] = action
        return action

    def _store_event(self, workflow_id: str, payload: Dict[str, Any], parent_id: Optional[str]) -> EventNode:
        stamp = _now()
        event = self._validate(EventNode, {**payload, "children": [], "actions": []})
        event = event.model_copy(update={
            "id": event.id or _mint(),
            "parent_id": parent_id,
            "subordinate_count": 0,
            "created_at": event.created_at or stamp,
            "updated_at": stamp,
        })
        self._events[workflow_id][event.id] = event
        for action_payload in payload.get("actions") or []:
            self._store_action(workflow_id, event.id, action_payload)
        for child_payload in payload.get("children") or []:
            self._store_event(workflow_id, child_payload, event.id)
        return event

    def _replace_contents(self, workflow_id: str, payload: Dict[str, Any]) -> None:
        self._events[workflow_id] = {}
        self._actions[workflow_id] = {}
        for event_payload in payload.get("events") or []:
            self._store_event(workflow_id, event_payload, event_payload.get("parent_id"))
        for event in self._events[workflow_id].values():
            self._check_parent(workflow_id, event.parent_id)

    # ------------------------------------------------------------------
    # workflows
    # ------------------------------------------------------------------
    async def get_workflow(self, workflow_id: str) -> WorkflowTree:
        events = self._workflow_events(workflow_id)
        record = self._workflows[workflow_id]
        return WorkflowTree(
            **record,
            events=[self._event_with_actions(workflow_id, event) for event in events.values()],
        )

    async def create_workflow(self, workflow: WorkflowTree) -> WorkflowTree:
        payload = outgoing_workflow_payload(workflow)
        workflow_id = _mint()
        stamp = _now()
        self._workflows[workflow_id] = {
            "id": workflow_id,
            "name": payload.get("name") or "",
            "description": payload.get("description"),
            "is_active": payload.get("is_active", True),
            "live_status": payload.get("live_status", False),
            "created_at": stamp,
            "updated_at": stamp,
        }
        self._replace_contents(workflow_id, payload)
        logger.info(f"Created workflow {workflow_id}")
        return await self.get_workflow(workflow_id)

    async def update_workflow(self, workflow_id: str, workflow: WorkflowTree) -> WorkflowTree:
        self._workflow_events(workflow_id)
        payload = outgoing_workflow_payload(workflow)
        record = self._workflows[workflow_id]
        record.update({
            "name": payload.get("name") or record["name"],
            "description": payload.get("description"),
            "is_active": payload.get("is_active", record["is_active"]),
            "live_status": payload.get("live_status", record["live_status"]),
            "updated_at": _now(),
        })
        self._replace_contents(workflow_id, payload)
        return await self.get_workflow(workflow_id)

    # ------------------------------------------------------------------
    # events
    # ------------------------------------------------------------------
    async def create_event(self, workflow_id: str, event: EventNode) -> EventNode:
        payload = outgoing_event_payload(event)
        self._check_parent(workflow_id, payload.get("parent_id"))
        stored = self._store_event(workflow_id, payload, payload.get("parent_id"))
        return self._event_with_actions(workflow_id, stored)

    async def update_event(self, workflow_id: str, event_id: str, event: EventNode) -> EventNode:
        current = self._require_event(workflow_id, event_id)
        payload = outgoing_event_payload(event)
        parent_id = payload.get("parent_id")
        self._check_parent(workflow_id, parent_id)
        if parent_id == event_id:
            raise PersistenceError(f"Event '{event_id}' cannot be its own parent", status_code=400)
        updated = self._validate(EventNode, {**payload, "children": [], "actions": []})
        updated = updated.model_copy(update={
            "id": event_id,
            "parent_id": parent_id,
            "created_at": current.created_at,
            "updated_at": _now(),
        })
        self._events[workflow_id][event_id] = updated
        return self._event_with_actions(workflow_id, updated)

    async def delete_event(self, workflow_id: str, event_id: str) -> None:
        self._require_event(workflow_id, event_id)
        events = self._events[workflow_id]
        del events[event_id]
        for other_id, other in list(events.items()):
            if other.parent_id == event_id:
                events[other_id] = other.model_copy(update={"parent_id": None})
        for action_id, action in list(self._actions[workflow_id].items()):
            if action.workflow_event == event_id:
                self._actions[workflow_id][action_id] = action.model_copy(update={"workflow_event": None})

    # ------------------------------------------------------------------
    # actions
    # ------------------------------------------------------------------
    async def create_action(self, workflow_id: str, event_id: str, action: ActionLeaf) -> ActionLeaf:
        self._require_event(workflow_id, event_id)
        payload = outgoing_action_payload(action)
        payload.pop("id", None)
        return self._store_action(workflow_id, event_id, payload)

    async def update_action(self, workflow_id: str, event_id: str, action: ActionLeaf) -> ActionLeaf:
        self._require_event(workflow_id, event_id)
        if action.id not in self._actions[workflow_id]:
            raise PersistenceError(f"Action '{action.id}' not found", status_code=404)
        return self._store_action(workflow_id, event_id, outgoing_action_payload(action))

    async def delete_action(self, workflow_id: str, event_id: str, action_id: str) -> None:
        self._require_event(workflow_id, event_id)
        if self._actions[workflow_id].pop(action_id, None) is None:
            raise PersistenceError(f"Action '{action_id}' not found", status_code=404)

    # ------------------------------------------------------------------
    # messages
    # ------------------------------------------------------------------
    async def create_message(self, message: MessageTemplate) -> MessageTemplate:
        stamp = _now()
        payload = outgoing_message_payload(message)
        payload.pop("id", None)
        stored = self._validate(MessageTemplate, payload).model_copy(
            update={"id": _mint(), "created_at": stamp, "updated_at": stamp}
        )
        self._messages[stored.id] = stored
        return stored

    async def update_message(self, message: MessageTemplate) -> MessageTemplate:
        current = self._messages.get(message.id)
        if current is None:
            raise PersistenceError(f"Message '{message.id}' not found", status_code=404)
        stored = message.model_copy(update={"created_at": current.created_at, "updated_at": _now()})
        self._messages[stored.id] = stored
        return stored

    async def delete_message(self, message_id: str) -> None:
        if self._messages.pop(message_id, None) is None:
            raise PersistenceError(f"Message '{message_id}' not found", status_code=404)

    def list_messages(self) -> List[MessageTemplate]:
        return list(self._messages.values())
