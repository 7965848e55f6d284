"""Example: register schedule-triggered workflows and let them tick."""

import asyncio

from hookit import Step, Workflow, WorkflowDispatcher, start_scheduler
from hookit.persistence import InMemoryExecutionLedger, InMemoryWorkflowRepository


async def main():
    repository = InMemoryWorkflowRepository()
    ledger = InMemoryExecutionLedger()

    repository.add_workflow(
        Workflow(
            id="report",
            name="Hourly report",
            webhook_id="tok-report",
            steps=[
                Step(
                    name="every-hour",
                    type="trigger",
                    order=0,
                    payload={"triggerType": "schedule", "frequency": "hourly", "timezone": "UTC"},
                ),
                Step(
                    name="email-ops",
                    type="action",
                    order=1,
                    payload={"actionType": "email", "to": "ops@example.com", "subject": "Hourly report"},
                ),
            ],
        )
    )

    dispatcher = WorkflowDispatcher(repository, ledger)
    scheduler = await start_scheduler(repository, dispatcher)
    for registration in scheduler.registrations.values():
        print(f"⏰ {registration.job_id}: {registration.expression} ({registration.timezone})")

    # Run one tick immediately instead of waiting for the top of the hour
    await dispatcher.run_scheduled("report")
    print(f"📋 Recorded executions: {len(await ledger.list_for_workflow('report'))}")

    await scheduler.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
