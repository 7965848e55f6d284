"""Workflow dispatcher: loads, runs and records one workflow invocation."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, Optional, TypeVar

from .config import HookitConfig
from .constants import SCHEDULED_SUCCESS_MESSAGE, WEBHOOK_SUCCESS_MESSAGE
from .contracts import InvocationSource, RunResult, RunStatus, Workflow, seed_context
from .errors import HookitError, UpstreamFailure
from .execute import StepExecutor
from .handlers import default_handlers
from .persistence import ExecutionLedger, WorkflowRepository
from .pipeline import PipelineRunner

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkflowDispatcher:
    """Entry point for scheduled ticks and webhook calls.

    Both paths seed a fresh data context, hand the workflow to the
    :class:`PipelineRunner` and write exactly one execution record.
    Ledger write failures are logged and never fail the run.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        ledger: ExecutionLedger,
        executor: Optional[StepExecutor] = None,
        config: Optional[HookitConfig] = None,
    ) -> None:
        self.config = config or HookitConfig()
        self.repository = repository
        self.ledger = ledger
        self.executor = executor or StepExecutor(
            default_handlers(self.config),
            step_timeout=self.config.execution.step_timeout,
        )
        self.runner = PipelineRunner(self.executor)

    async def _bounded(self, call: Awaitable[T], what: str) -> T:
        timeout = self.config.execution.storage_timeout
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamFailure(f"{what} timed out after {timeout}s") from e

    async def run_scheduled(self, workflow_id: str) -> RunResult:
        """Job action for a scheduler tick."""
        logger.info(f"Executing scheduled workflow ID: {workflow_id}")
        started = time.monotonic()
        source = InvocationSource.SCHEDULED
        try:
            workflow = await self._bounded(
                self.repository.load_workflow(workflow_id), "loading workflow"
            )
        except HookitError as e:
            logger.error(f"Failed to get workflow {workflow_id}: {e}")
            result = RunResult(
                workflow_id=workflow_id,
                source=source,
                status=RunStatus.FAILURE,
                message=f"failed to load workflow: {e}",
                error_type=type(e).__name__,
            )
            await self._record(result, started)
            return result

        result = await self.runner.run(workflow, seed_context(workflow.id, source), source)
        if result.succeeded:
            if result.halted_at is None:
                result.message = SCHEDULED_SUCCESS_MESSAGE
            logger.info(
                f"Successfully executed scheduled workflow: {workflow.name} (ID: {workflow.id})"
            )
        else:
            logger.error(f"Failed to execute workflow {workflow.id}: {result.message}")
        await self._record(result, started)
        return result

    async def run_webhook(
        self,
        webhook_id: str,
        body: Optional[Dict[str, Any]] = None,
        file_data: Optional[bytes] = None,
        file_name: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunResult:
        """Run the workflow addressed by ``webhook_id`` on the caller's task.

        Raises:
            NotFound: if no workflow owns ``webhook_id``.
        """
        started = time.monotonic()
        workflow = await self._bounded(
            self.repository.load_workflow_by_webhook(webhook_id), "loading workflow"
        )
        context = self.webhook_context(workflow, body, file_data, file_name)
        result = await self.runner.run(
            workflow, context, InvocationSource.WEBHOOK, cancel_event=cancel_event
        )
        if result.succeeded and result.halted_at is None:
            result.message = WEBHOOK_SUCCESS_MESSAGE
        await self._record(result, started)
        return result

    @staticmethod
    def webhook_context(
        workflow: Workflow,
        body: Optional[Dict[str, Any]],
        file_data: Optional[bytes],
        file_name: Optional[str],
    ) -> Dict[str, Any]:
        context: Dict[str, Any] = dict(body or {})
        context.update(seed_context(workflow.id, InvocationSource.WEBHOOK))
        if file_data is not None:
            context["file_data"] = file_data
            context["file_name"] = file_name
        return context

    async def _record(self, result: RunResult, started: float) -> None:
        duration_ms = int((time.monotonic() - started) * 1000)
        try:
            await self._bounded(
                self.ledger.record(
                    result.workflow_id,
                    result.status,
                    result.message,
                    timestamp=datetime.now(timezone.utc),
                    duration_ms=duration_ms,
                ),
                "recording execution",
            )
        except Exception as e:
            logger.error(f"Failed to log workflow execution for {result.workflow_id}: {e}")
