"""Sequential pipeline runner for workflow steps."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .contracts import (
    DataContext,
    InvocationSource,
    RunResult,
    RunStatus,
    StepType,
    Workflow,
)
from .errors import HookitError, StepRejected
from .execute import StepExecutor

logger = logging.getLogger(__name__)


class PipelineRunner:
    """Drives the step executor over a workflow's steps in ascending order.

    The runner threads the data context from step to step and stops at the
    first failing step. It never writes the execution ledger; callers
    record the returned :class:`RunResult`.
    """

    def __init__(self, executor: Optional[StepExecutor] = None) -> None:
        self.executor = executor or StepExecutor()

    async def run(
        self,
        workflow: Workflow,
        context: DataContext,
        source: InvocationSource,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunResult:
        result = RunResult(workflow_id=workflow.id, source=source, status=RunStatus.SUCCESS)
        current = dict(context)

        for step in workflow.ordered_steps():
            if source is InvocationSource.SCHEDULED and step.type == StepType.TRIGGER.value:
                # the schedule itself is the trigger
                result.skipped_steps.append(step.name)
                continue

            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Run of workflow {workflow.id} cancelled before step {step.name}")
                result.status = RunStatus.FAILURE
                result.cancelled = True
                result.message = f"run cancelled before step '{step.name}'"
                break

            try:
                current = await self.executor.execute(step, current)
            except StepRejected as e:
                logger.info(f"Workflow {workflow.id} halted at filter {step.name}: {e.reason}")
                result.executed_steps.append(step.name)
                result.halted_at = step.name
                result.message = f"halted at step '{step.name}': {e.reason}"
                break
            except HookitError as e:
                logger.error(f"Step {step.name} of workflow {workflow.id} failed: {e}")
                return self._failed(result, step.name, e, current)
            except Exception as e:
                logger.exception(f"Unexpected error in step {step.name} of workflow {workflow.id}")
                return self._failed(result, step.name, e, current)

            result.executed_steps.append(step.name)

        if result.succeeded and not result.message:
            result.message = f"completed {len(result.executed_steps)} step(s)"
        result.context = current
        return result

    @staticmethod
    def _failed(
        result: RunResult, step_name: str, error: Exception, context: DataContext
    ) -> RunResult:
        result.status = RunStatus.FAILURE
        result.failed_step = step_name
        result.error_type = type(error).__name__
        result.message = f"step '{step_name}' failed: {error}"
        result.context = context
        return result
