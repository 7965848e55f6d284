"""Core data contracts for the hookit execution engine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, PrivateAttr

from .payloads import StepConfig, parse_step_config

DataContext = Dict[str, Any]


class StepType(str, Enum):
    TRIGGER = "trigger"
    PARSE = "parse"
    FILTER = "filter"
    ACTION = "action"


class InvocationSource(str, Enum):
    """What started a pipeline run."""

    SCHEDULED = "scheduled"
    WEBHOOK = "webhook"

    @property
    def trigger_type(self) -> str:
        """Value seeded into the data context as ``trigger_type``."""
        return "schedule" if self is InvocationSource.SCHEDULED else "webhook"


class RunStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class Step(BaseModel):
    """One typed unit of work within a workflow."""

    id: Optional[str] = None
    workflow_id: Optional[str] = None
    name: str
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    order: int = 0

    _config: StepConfig = PrivateAttr()

    def model_post_init(self, __context: Any) -> None:
        self._config = parse_step_config(self.type, self.payload)

    @property
    def config(self) -> StepConfig:
        """Typed configuration parsed from ``payload`` at load time."""
        return self._config


class Workflow(BaseModel):
    """A named, ordered collection of steps."""

    id: str
    name: str
    user_id: Optional[str] = None
    webhook_id: Optional[str] = None
    active: bool = True
    steps: List[Step] = Field(default_factory=list)

    def ordered_steps(self) -> List[Step]:
        """Return steps sorted by ascending ``order`` (stable for ties)."""
        return sorted(self.steps, key=lambda step: step.order)


class ScheduledWorkflow(BaseModel):
    """Repository projection of a workflow owning a schedule trigger."""

    id: str
    name: str
    frequency: Optional[str] = None
    time: Optional[str] = None
    timezone: Optional[str] = None
    active: bool = True


class ExecutionRecord(BaseModel):
    """Append-only audit entry describing the outcome of one run."""

    id: Optional[str] = None
    workflow_id: str
    status: RunStatus
    message: str = ""
    executed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: Optional[int] = None


class RunResult(BaseModel):
    """Outcome of a single pipeline run."""

    workflow_id: str
    source: InvocationSource
    status: RunStatus
    message: str = ""
    executed_steps: List[str] = Field(default_factory=list)
    skipped_steps: List[str] = Field(default_factory=list)
    failed_step: Optional[str] = None
    error_type: Optional[str] = None
    halted_at: Optional[str] = None
    cancelled: bool = False
    context: DataContext = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.SUCCESS


def seed_context(workflow_id: str, source: InvocationSource) -> DataContext:
    """Return the initial data context every run starts from."""
    return {
        "trigger_type": source.trigger_type,
        "timestamp": datetime.now(timezone.utc),
        "workflow_id": workflow_id,
    }
