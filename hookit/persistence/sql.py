"""SQL implementations of the workflow repository and execution ledger."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select

from ..constants import DEFAULT_LEDGER_PAGE_SIZE
from ..contracts import ExecutionRecord, RunStatus, ScheduledWorkflow, Step, Workflow
from ..db import ExecutionRow, HookitDB, StepRow, WorkflowRow
from ..db.models import utcnow
from ..errors import NotFound, StorageError
from .repository import ExecutionLedger, WorkflowRepository, schedule_of

logger = logging.getLogger(__name__)


def _to_step(row: StepRow) -> Step:
    try:
        return Step(
            id=str(row.id) if row.id is not None else None,
            workflow_id=row.workflow_id,
            name=row.name,
            type=row.step_type,
            payload=row.payload if row.payload is not None else {},
            order=row.step_order,
        )
    except ValidationError as e:
        raise StorageError(
            f"step {row.id} of workflow {row.workflow_id} is malformed: {e}"
        ) from e


def _to_workflow(row: WorkflowRow, steps: List[Step]) -> Workflow:
    return Workflow(
        id=row.id,
        name=row.name,
        user_id=row.user_id,
        webhook_id=row.webhook_id,
        active=row.active,
        steps=steps,
    )


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _as_stored_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return utcnow()
    return _as_utc(value).astimezone(timezone.utc)


class SQLWorkflowRepository(WorkflowRepository):
    """Read workflow definitions from the ``workflows``/``steps`` tables."""

    def __init__(self, db: HookitDB):
        self.db = db

    # ------------------------------------------------------------------
    async def _steps_for(self, session, workflow_id: str) -> List[Step]:
        result = await session.execute(
            select(StepRow)
            .where(StepRow.workflow_id == workflow_id)
            .order_by(col(StepRow.step_order), col(StepRow.id))
        )
        return [_to_step(r) for r in result.scalars().all()]

    async def _workflow_where(self, clause, missing: str) -> Workflow:
        try:
            async with self.db.session() as session:
                result = await session.execute(select(WorkflowRow).where(clause))
                row = result.scalars().first()
                if row is None:
                    raise NotFound(missing)
                steps = await self._steps_for(session, row.id)
        except SQLAlchemyError as e:
            raise StorageError(f"failed to load workflow: {e}") from e
        return _to_workflow(row, steps)

    # ------------------------------------------------------------------
    async def load_scheduled_workflows(self) -> list[ScheduledWorkflow]:
        try:
            async with self.db.session() as session:
                workflows = (await session.execute(select(WorkflowRow))).scalars().all()
                trigger_rows = (
                    await session.execute(
                        select(StepRow)
                        .where(StepRow.step_type == "trigger")
                        .order_by(col(StepRow.step_order), col(StepRow.id))
                    )
                ).scalars().all()
        except SQLAlchemyError as e:
            raise StorageError(f"failed to load scheduled workflows: {e}") from e

        triggers: Dict[str, List[Step]] = defaultdict(list)
        malformed = set()
        for row in trigger_rows:
            try:
                triggers[row.workflow_id].append(_to_step(row))
            except StorageError as e:
                logger.warning(f"Skipping workflow {row.workflow_id}: {e}")
                malformed.add(row.workflow_id)

        scheduled = []
        for row in workflows:
            if row.id in malformed:
                continue
            projection = schedule_of(_to_workflow(row, triggers.get(row.id, [])))
            if projection is not None:
                scheduled.append(projection)
        return scheduled

    async def load_workflow(self, workflow_id: str) -> Workflow:
        return await self._workflow_where(
            WorkflowRow.id == workflow_id, f"workflow {workflow_id} not found"
        )

    async def load_workflow_by_webhook(self, webhook_id: str) -> Workflow:
        return await self._workflow_where(
            WorkflowRow.webhook_id == webhook_id, f"no workflow for webhook {webhook_id}"
        )

    async def load_steps(self, workflow_id: str) -> list[Step]:
        try:
            async with self.db.session() as session:
                if await session.get(WorkflowRow, workflow_id) is None:
                    raise NotFound(f"workflow {workflow_id} not found")
                return await self._steps_for(session, workflow_id)
        except SQLAlchemyError as e:
            raise StorageError(f"failed to load steps: {e}") from e


class SQLExecutionLedger(ExecutionLedger):
    """Append-only ledger backed by the ``workflow_executions`` table."""

    def __init__(self, db: HookitDB, page_size: int = DEFAULT_LEDGER_PAGE_SIZE):
        self.db = db
        self.page_size = page_size

    async def record(
        self,
        workflow_id: str,
        status: RunStatus,
        message: str,
        timestamp: Optional[datetime] = None,
        duration_ms: Optional[int] = None,
    ) -> str:
        row = ExecutionRow(
            workflow_id=workflow_id,
            status=RunStatus(status).value,
            message=message,
            executed_at=_as_stored_utc(timestamp),
            duration_ms=duration_ms,
        )
        try:
            async with self.db.session() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except SQLAlchemyError as e:
            raise StorageError(f"failed to record execution: {e}") from e
        return str(row.id)

    async def count_recent(self, window: timedelta = timedelta(hours=24)) -> int:
        since = utcnow() - window
        try:
            async with self.db.session() as session:
                result = await session.execute(
                    select(func.count())
                    .select_from(ExecutionRow)
                    .where(col(ExecutionRow.executed_at) >= since)
                )
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise StorageError(f"failed to count executions: {e}") from e

    async def list_for_workflow(
        self, workflow_id: str, limit: Optional[int] = None
    ) -> list[ExecutionRecord]:
        limit = min(limit or self.page_size, self.page_size)
        try:
            async with self.db.session() as session:
                result = await session.execute(
                    select(ExecutionRow)
                    .where(ExecutionRow.workflow_id == workflow_id)
                    .order_by(col(ExecutionRow.executed_at).desc(), col(ExecutionRow.id).desc())
                    .limit(limit)
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise StorageError(f"failed to list executions: {e}") from e
        return [
            ExecutionRecord(
                id=str(r.id),
                workflow_id=r.workflow_id,
                status=RunStatus(r.status),
                message=r.message,
                executed_at=_as_utc(r.executed_at),
                duration_ms=r.duration_ms,
            )
            for r in rows
        ]
