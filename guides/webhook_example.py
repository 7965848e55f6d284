"""Simple example showing a webhook-triggered workflow run."""

import asyncio

from hookit import Step, Workflow, WorkflowDispatcher
from hookit.persistence import InMemoryExecutionLedger, InMemoryWorkflowRepository


async def main():
    """Run a parse -> filter -> action workflow from an uploaded CSV."""
    repository = InMemoryWorkflowRepository()
    ledger = InMemoryExecutionLedger()

    repository.add_workflow(
        Workflow(
            id="orders",
            name="Order intake",
            webhook_id="tok-orders",
            steps=[
                Step(name="receive", type="trigger", order=0),
                Step(name="read-csv", type="parse", order=1, payload={"parseType": "csv"}),
                Step(
                    name="needs-customer",
                    type="filter",
                    order=2,
                    payload={"filterType": "validation", "requiredFields": ["customer"]},
                ),
                Step(
                    name="store",
                    type="action",
                    order=3,
                    payload={"actionType": "database", "table": "orders", "operation": "insert"},
                ),
            ],
        )
    )

    dispatcher = WorkflowDispatcher(repository, ledger)
    result = await dispatcher.run_webhook(
        "tok-orders",
        body={"customer": "acme"},
        file_data=b"sku,qty\nA-1,3\nB-2,1\n",
        file_name="orders.csv",
    )

    print(f"✅ {result.status.value}: {result.message}")
    print(f"📋 Parsed rows: {result.context.get('parsed_data')}")
    for record in await ledger.list_for_workflow("orders"):
        print(f"🔗 {record.executed_at.isoformat()} {record.status.value} {record.message}")


if __name__ == "__main__":
    asyncio.run(main())
