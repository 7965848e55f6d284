"""Repository and ledger abstractions consumed by the engine."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Protocol

from ..contracts import ExecutionRecord, RunStatus, ScheduledWorkflow, Step, Workflow
from ..payloads import TriggerConfig


class WorkflowRepository(Protocol):
    """Read-only access to workflow definitions.

    Implementations raise :class:`~hookit.errors.NotFound` for unknown ids
    and :class:`~hookit.errors.StorageError` for I/O faults.
    """

    async def load_scheduled_workflows(self) -> list[ScheduledWorkflow]:
        """Return workflows owning a schedule trigger step."""

    async def load_workflow(self, workflow_id: str) -> Workflow:
        """Return the workflow with its steps in ascending order."""

    async def load_workflow_by_webhook(self, webhook_id: str) -> Workflow:
        """Resolve a workflow from its webhook token."""

    async def load_steps(self, workflow_id: str) -> list[Step]:
        """Return the workflow's steps in ascending order."""


class ExecutionLedger(Protocol):
    """Append-only record of pipeline run outcomes."""

    async def record(
        self,
        workflow_id: str,
        status: RunStatus,
        message: str,
        timestamp: Optional[datetime] = None,
        duration_ms: Optional[int] = None,
    ) -> str:
        """Append one record and return its id."""

    async def count_recent(self, window: timedelta = timedelta(hours=24)) -> int:
        """Count records written within ``window``."""

    async def list_for_workflow(
        self, workflow_id: str, limit: Optional[int] = None
    ) -> list[ExecutionRecord]:
        """Return a workflow's records, most recent first."""


def schedule_of(workflow: Workflow) -> Optional[ScheduledWorkflow]:
    """Project ``workflow`` onto its first schedule trigger, if any."""
    for step in workflow.ordered_steps():
        config = step.config
        if step.type == "trigger" and isinstance(config, TriggerConfig) and config.is_schedule:
            return ScheduledWorkflow(
                id=workflow.id,
                name=workflow.name,
                frequency=config.frequency,
                time=config.time,
                timezone=config.timezone,
                active=workflow.active,
            )
    return None
