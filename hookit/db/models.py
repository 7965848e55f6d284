from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp, the form stored in datetime columns."""
    return datetime.now(timezone.utc)


class WorkflowRow(SQLModel, table=True):
    """A workflow definition as written by the workflow API."""

    __tablename__ = "workflows"

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    name: str
    user_id: Optional[str] = Field(default=None, index=True)
    webhook_id: str = Field(index=True, unique=True)
    active: bool = True
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class StepRow(SQLModel, table=True):
    """One step of a workflow; ``payload`` holds the free-form JSON config."""

    __tablename__ = "steps"

    id: Optional[int] = Field(default=None, primary_key=True)
    workflow_id: str = Field(foreign_key="workflows.id", index=True)
    name: str
    step_type: str
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    step_order: int = 0


class ExecutionRow(SQLModel, table=True):
    """Append-only outcome of one pipeline run."""

    __tablename__ = "workflow_executions"

    id: Optional[int] = Field(default=None, primary_key=True)
    workflow_id: str = Field(index=True)
    status: str
    message: str = ""
    executed_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    duration_ms: Optional[int] = None
