from __future__ import annotations

import pytest

from campaign_canvas.convert.serialize import json_to_canvas_workflow
from campaign_canvas.persistence.store import InMemoryWorkflowStore
from campaign_canvas.schema.models import CanvasWorkflow, WorkflowTree
from tests.shared_data import NESTED_FOREST, SINGLE_CHAIN


@pytest.fixture
def single_chain() -> WorkflowTree:
    return SINGLE_CHAIN.model_copy(deep=True)


@pytest.fixture
def nested_forest() -> WorkflowTree:
    return NESTED_FOREST.model_copy(deep=True)


@pytest.fixture
def nested_canvas(nested_forest: WorkflowTree) -> CanvasWorkflow:
    return json_to_canvas_workflow(nested_forest)


@pytest.fixture
def store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()
