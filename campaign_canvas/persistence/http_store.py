"""
REST-backed ``WorkflowStore`` built on httpx.

Requests are issued once; failures surface as ``PersistenceError`` and retry
policy is left to the caller.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from campaign_canvas.convert.reconcile import (
    outgoing_action_payload,
    outgoing_event_payload,
    outgoing_message_payload,
    outgoing_workflow_payload,
)
from campaign_canvas.errors import PersistenceError
from campaign_canvas.schema.models import ActionLeaf, EventNode, MessageTemplate, WorkflowTree
from shared.config import config
from shared.logger import get_logger

logger = get_logger(__name__)


class HttpWorkflowStore:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or config.workflow_api_base_url).rstrip("/")
        headers = {"Content-Type": "application/json"}
        token = token if token is not None else config.workflow_api_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout if timeout is not None else config.workflow_api_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "HttpWorkflowStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._client.request(method, path, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Workflow API error: {method} {path} -> {e.response.status_code} - {e.response.text[:200]}")
            raise PersistenceError(
                f"{method} {path} failed with {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Workflow API unreachable: {method} {path} - {e}")
            raise PersistenceError(f"{method} {path} failed: {e}") from e

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # workflows
    async def get_workflow(self, workflow_id: str) -> WorkflowTree:
        return WorkflowTree.model_validate(await self._request("GET", f"/workflow/{workflow_id}/"))

    async def create_workflow(self, workflow: WorkflowTree) -> WorkflowTree:
        data = await self._request("POST", "/workflow/", outgoing_workflow_payload(workflow))
        return WorkflowTree.model_validate(data)

    async def update_workflow(self, workflow_id: str, workflow: WorkflowTree) -> WorkflowTree:
        payload = outgoing_workflow_payload(workflow)
        payload["id"] = workflow_id
        data = await self._request("PUT", f"/workflow/{workflow_id}/", payload)
        return WorkflowTree.model_validate(data)

    # events
    async def create_event(self, workflow_id: str, event: EventNode) -> EventNode:
        data = await self._request("POST", f"/workflow/{workflow_id}/events/", outgoing_event_payload(event))
        return EventNode.model_validate(data)

    async def update_event(self, workflow_id: str, event_id: str, event: EventNode) -> EventNode:
        data = await self._request(
            "PUT", f"/workflow/{workflow_id}/events/{event_id}/", outgoing_event_payload(event)
        )
        return EventNode.model_validate(data)

    async def delete_event(self, workflow_id: str, event_id: str) -> None:
        await self._request("DELETE", f"/workflow/{workflow_id}/events/{event_id}/")

    # actions
    async def create_action(self, workflow_id: str, event_id: str, action: ActionLeaf) -> ActionLeaf:
        payload = outgoing_action_payload(action)
        payload.pop("id", None)
        data = await self._request("POST", f"/workflow/{workflow_id}/events/{event_id}/actions/", payload)
        return ActionLeaf.model_validate(data)

    async def update_action(self, workflow_id: str, event_id: str, action: ActionLeaf) -> ActionLeaf:
        data = await self._request(
            "PUT",
            f"/workflow/{workflow_id}/events/{event_id}/actions/{action.id}/",
            outgoing_action_payload(action),
        )
        return ActionLeaf.model_validate(data)

    async def delete_action(self, workflow_id: str, event_id: str, action_id: str) -> None:
        await self._request("DELETE", f"/workflow/{workflow_id}/events/{event_id}/actions/{action_id}/")

    # messages
    async def create_message(self, message: MessageTemplate) -> MessageTemplate:
        payload = outgoing_message_payload(message)
        payload.pop("id", None)
        return MessageTemplate.model_validate(await self._request("POST", "/messages/", payload))

    async def update_message(self, message: MessageTemplate) -> MessageTemplate:
        data = await self._request("PUT", f"/messages/messages/{message.id}/", outgoing_message_payload(message))
        return MessageTemplate.model_validate(data)

    async def delete_message(self, message_id: str) -> None:
        await self._request("DELETE", f"/messages/{message_id}/")
