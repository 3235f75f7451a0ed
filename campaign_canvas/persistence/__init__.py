"""Workflow persistence boundary: the store contract and its implementations."""

from campaign_canvas.persistence.http_store import HttpWorkflowStore
from campaign_canvas.persistence.store import InMemoryWorkflowStore, WorkflowStore

__all__ = ["HttpWorkflowStore", "InMemoryWorkflowStore", "WorkflowStore"]
