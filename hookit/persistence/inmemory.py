"""In-memory implementations of the workflow repository and ledger."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from ..constants import DEFAULT_LEDGER_PAGE_SIZE
from ..contracts import ExecutionRecord, RunStatus, ScheduledWorkflow, Step, Workflow
from ..errors import NotFound
from .repository import ExecutionLedger, WorkflowRepository, schedule_of


def _aware(timestamp: Optional[datetime]) -> datetime:
    if timestamp is None:
        return datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp


class InMemoryWorkflowRepository(WorkflowRepository):
    """Keep workflow definitions in local memory.

    Useful for tests or when no database is configured. Definitions are
    seeded with :meth:`add_workflow`; the engine itself only reads.
    """

    def __init__(self, workflows: Optional[List[Workflow]] = None) -> None:
        self._workflows: Dict[str, Workflow] = {}
        for workflow in workflows or []:
            self.add_workflow(workflow)

    def add_workflow(self, workflow: Workflow) -> None:
        self._workflows[workflow.id] = workflow

    def set_active(self, workflow_id: str, active: bool) -> None:
        self._get(workflow_id).active = active

    def _get(self, workflow_id: str) -> Workflow:
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise NotFound(f"workflow {workflow_id} not found")
        return workflow

    # ------------------------------------------------------------------
    async def load_scheduled_workflows(self) -> list[ScheduledWorkflow]:
        scheduled = [schedule_of(wf) for wf in self._workflows.values()]
        return [s for s in scheduled if s is not None]

    async def load_workflow(self, workflow_id: str) -> Workflow:
        workflow = self._get(workflow_id)
        return workflow.model_copy(update={"steps": workflow.ordered_steps()})

    async def load_workflow_by_webhook(self, webhook_id: str) -> Workflow:
        for workflow in self._workflows.values():
            if workflow.webhook_id == webhook_id:
                return workflow.model_copy(update={"steps": workflow.ordered_steps()})
        raise NotFound(f"no workflow for webhook {webhook_id}")

    async def load_steps(self, workflow_id: str) -> list[Step]:
        return self._get(workflow_id).ordered_steps()


class InMemoryExecutionLedger(ExecutionLedger):
    """Append-only execution records held in a list."""

    def __init__(self, page_size: int = DEFAULT_LEDGER_PAGE_SIZE) -> None:
        self.page_size = page_size
        self._records: List[ExecutionRecord] = []
        self._lock = asyncio.Lock()

    @property
    def records(self) -> List[ExecutionRecord]:
        return list(self._records)

    async def record(
        self,
        workflow_id: str,
        status: RunStatus,
        message: str,
        timestamp: Optional[datetime] = None,
        duration_ms: Optional[int] = None,
    ) -> str:
        async with self._lock:
            record_id = str(len(self._records) + 1)
            self._records.append(
                ExecutionRecord(
                    id=record_id,
                    workflow_id=workflow_id,
                    status=status,
                    message=message,
                    executed_at=_aware(timestamp),
                    duration_ms=duration_ms,
                )
            )
        return record_id

    async def count_recent(self, window: timedelta = timedelta(hours=24)) -> int:
        since = datetime.now(timezone.utc) - window
        return sum(1 for r in self._records if r.executed_at >= since)

    async def list_for_workflow(
        self, workflow_id: str, limit: Optional[int] = None
    ) -> list[ExecutionRecord]:
        limit = min(limit or self.page_size, self.page_size)
        matching = [r for r in self._records if r.workflow_id == workflow_id]
        matching.sort(key=lambda r: (r.executed_at, int(r.id or 0)), reverse=True)
        return matching[:limit]
