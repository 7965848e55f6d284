"""Hookit: webhook- and schedule-triggered workflow execution engine."""

from .contracts import (
    ExecutionRecord,
    InvocationSource,
    RunResult,
    RunStatus,
    ScheduledWorkflow,
    Step,
    StepType,
    Workflow,
)
from .dispatch import WorkflowDispatcher
from .execute import StepExecutor
from .persistence import get_ledger, get_repository
from .pipeline import PipelineRunner
from .schedule import job_name_for, translate_frequency
from .scheduler import WorkflowScheduler, start_scheduler

__version__ = "0.1.0"
__all__ = [
    "ExecutionRecord",
    "InvocationSource",
    "RunResult",
    "RunStatus",
    "ScheduledWorkflow",
    "Step",
    "StepType",
    "Workflow",
    "WorkflowDispatcher",
    "StepExecutor",
    "PipelineRunner",
    "WorkflowScheduler",
    "start_scheduler",
    "translate_frequency",
    "job_name_for",
    "get_repository",
    "get_ledger",
]
