"""Recurring job registration for schedule-triggered workflows."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel

from .config import HookitConfig
from .contracts import ScheduledWorkflow
from .dispatch import WorkflowDispatcher
from .errors import ConfigurationError
from .persistence import WorkflowRepository
from .schedule import job_name_for, translate_frequency

logger = logging.getLogger(__name__)


class JobRegistration(BaseModel):
    """A workflow's registered recurring job."""

    workflow_id: str
    job_id: str
    expression: str
    timezone: str


class WorkflowScheduler:
    """Owns the in-process job registry for scheduled workflows.

    One job per active schedule-triggered workflow, keyed by
    :func:`job_name_for`, so registering the same workflow again replaces
    its job instead of adding a second one. Each job runs at most one
    instance at a time. Running several processes duplicates executions.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        dispatcher: WorkflowDispatcher,
        config: Optional[HookitConfig] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self.config = config or HookitConfig()
        self.repository = repository
        self.dispatcher = dispatcher
        self._scheduler = scheduler or AsyncIOScheduler(
            timezone=self.config.scheduler.timezone
        )
        self.registrations: Dict[str, JobRegistration] = {}
        self.failures: Dict[str, str] = {}
        self._started = False

    @property
    def running(self) -> bool:
        return self._started and self._scheduler.running

    @property
    def jobs(self):
        return self._scheduler.get_jobs()

    async def start(self, paused: bool = False) -> "WorkflowScheduler":
        """Start the timers and register every active scheduled workflow."""
        if not self._scheduler.running:
            self._scheduler.start(paused=paused)
        self._started = True

        try:
            scheduled = await self.repository.load_scheduled_workflows()
        except Exception as e:
            logger.error(f"Failed to get scheduled workflows: {e}")
            scheduled = []

        for workflow in scheduled:
            if workflow.active:
                self.register(workflow)

        logger.info(
            f"Scheduled workflows service started: {len(self.registrations)} job(s), "
            f"{len(self.failures)} failure(s)"
        )
        return self

    def register(self, workflow: ScheduledWorkflow) -> Optional[JobRegistration]:
        """Register (or replace) the job for ``workflow``.

        Failures are logged and kept in :attr:`failures`; they never raise.
        """
        job_id = job_name_for(workflow.id)
        tz = workflow.timezone or self.config.scheduler.timezone
        try:
            if not workflow.frequency:
                raise ConfigurationError("schedule trigger has no frequency")
            expression = translate_frequency(workflow.frequency, workflow.time)
            trigger = CronTrigger.from_crontab(expression, timezone=tz)
            logger.info(f"Registering cron job: {job_id} with expression: {expression}")
            self._scheduler.add_job(
                self.dispatcher.run_scheduled,
                trigger=trigger,
                args=[workflow.id],
                id=job_id,
                name=workflow.name,
                replace_existing=True,
                max_instances=1,
                coalesce=self.config.scheduler.coalesce,
                misfire_grace_time=self.config.scheduler.misfire_grace_time,
            )
        except Exception as e:
            logger.error(f"Failed to schedule workflow {workflow.id}: {e}")
            self.failures[workflow.id] = str(e)
            self.registrations.pop(workflow.id, None)
            return None

        self.failures.pop(workflow.id, None)
        registration = JobRegistration(
            workflow_id=workflow.id, job_id=job_id, expression=expression, timezone=str(tz)
        )
        self.registrations[workflow.id] = registration
        return registration

    def unregister(self, workflow_id: str) -> bool:
        """Remove the job for ``workflow_id``; returns whether one existed."""
        registration = self.registrations.pop(workflow_id, None)
        if registration is None:
            return False
        if self._scheduler.get_job(registration.job_id) is not None:
            self._scheduler.remove_job(registration.job_id)
        logger.info(f"Unregistered cron job: {registration.job_id}")
        return True

    async def shutdown(self, wait: bool = False) -> None:
        """Cancel every job and stop the timers.

        Safe to call more than once. APScheduler may defer the actual stop
        to the event loop, so this yields once after requesting it.
        """
        self._scheduler.remove_all_jobs()
        self.registrations.clear()
        if not self._started:
            return
        self._started = False
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            await asyncio.sleep(0)
        logger.info("Scheduled workflows service stopped")


async def start_scheduler(
    repository: WorkflowRepository,
    dispatcher: WorkflowDispatcher,
    config: Optional[HookitConfig] = None,
    paused: bool = False,
) -> WorkflowScheduler:
    """Build and start a :class:`WorkflowScheduler`; await ``shutdown()`` to stop it."""
    scheduler = WorkflowScheduler(repository, dispatcher, config)
    return await scheduler.start(paused=paused)
