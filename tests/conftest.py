"""Shared fixtures for hookit tests."""

from typing import Any, Dict, List, Optional

import httpx
import pytest

from hookit.contracts import Step, Workflow
from hookit.handlers.base import StepHandler
from hookit.persistence import InMemoryExecutionLedger, InMemoryWorkflowRepository


class RecordingHandler(StepHandler):
    """Records every step it executes and tags the context with its name."""

    def __init__(self) -> None:
        self.calls: List[str] = []

    async def execute(self, step, context):
        self.calls.append(step.name)
        return {**context, step.name: True}


@pytest.fixture
def recorder() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def trigger_counter() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def make_workflow():
    def _make(
        steps: List[Dict[str, Any]],
        workflow_id: str = "wf-1",
        name: str = "Test workflow",
        webhook_id: Optional[str] = "hook-1",
        active: bool = True,
    ) -> Workflow:
        return Workflow(
            id=workflow_id,
            name=name,
            webhook_id=webhook_id,
            active=active,
            steps=[Step(workflow_id=workflow_id, **fields) for fields in steps],
        )

    return _make


@pytest.fixture
def repository() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@pytest.fixture
def ledger() -> InMemoryExecutionLedger:
    return InMemoryExecutionLedger()


@pytest.fixture
def http_calls() -> List[httpx.Request]:
    return []


@pytest.fixture
def mock_transport(http_calls) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        http_calls.append(request)
        return httpx.Response(200, json={"ok": True})

    return httpx.MockTransport(handler)
