import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import insert

from hookit.contracts import RunStatus
from hookit.db import ExecutionRow, HookitDB, StepRow, WorkflowRow, normalize_database_url
from hookit.dispatch import WorkflowDispatcher
from hookit.errors import NotFound, StorageError
from hookit.persistence import SQLExecutionLedger, SQLWorkflowRepository
from hookit.scheduler import start_scheduler


async def _seed(db: HookitDB) -> None:
    await db.init_db()
    async with db.session() as session:
        session.add(WorkflowRow(id="wf-1", name="Orders export", webhook_id="tok-1"))
        session.add(WorkflowRow(id="wf-2", name="Inbound", webhook_id="tok-2", active=False))
        await session.commit()
        session.add_all(
            [
                StepRow(workflow_id="wf-1", name="push", step_type="action", step_order=2,
                        payload={"actionType": "api_call", "url": "https://example.com"}),
                StepRow(workflow_id="wf-1", name="tick", step_type="trigger", step_order=0,
                        payload={"triggerType": "schedule", "frequency": "daily", "time": "06:00"}),
                StepRow(workflow_id="wf-1", name="parse", step_type="parse", step_order=1,
                        payload={"parseType": "csv"}),
                StepRow(workflow_id="wf-2", name="hook", step_type="trigger", step_order=0,
                        payload={"triggerType": "webhook"}),
            ]
        )
        await session.commit()


def test_normalize_database_url():
    assert normalize_database_url("sqlite:///x.db") == "sqlite+aiosqlite:///x.db"
    assert normalize_database_url("postgres://u@h/db") == "postgresql+asyncpg://u@h/db"
    assert normalize_database_url("postgresql://u@h/db") == "postgresql+asyncpg://u@h/db"
    assert normalize_database_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"


@pytest.mark.asyncio
async def test_sql_repository_loads_workflows(tmp_path):
    db = HookitDB(f"sqlite:///{tmp_path / 'hookit.db'}")
    await _seed(db)
    repo = SQLWorkflowRepository(db)

    workflow = await repo.load_workflow("wf-1")
    assert workflow.name == "Orders export"
    assert [s.name for s in workflow.steps] == ["tick", "parse", "push"]
    assert workflow.steps[2].config.url == "https://example.com"

    by_hook = await repo.load_workflow_by_webhook("tok-2")
    assert by_hook.id == "wf-2"
    assert by_hook.active is False

    steps = await repo.load_steps("wf-1")
    assert [s.order for s in steps] == [0, 1, 2]

    [scheduled] = await repo.load_scheduled_workflows()
    assert scheduled.id == "wf-1"
    assert scheduled.frequency == "daily"
    assert scheduled.time == "06:00"

    with pytest.raises(NotFound):
        await repo.load_workflow("missing")
    with pytest.raises(NotFound):
        await repo.load_workflow_by_webhook("missing")
    with pytest.raises(NotFound):
        await repo.load_steps("missing")

    await db.dispose()


@pytest.mark.asyncio
async def test_sql_ledger_records_and_lists(tmp_path):
    db = HookitDB(f"sqlite:///{tmp_path / 'ledger.db'}")
    await db.init_db()
    ledger = SQLExecutionLedger(db, page_size=2)

    now = datetime.now(timezone.utc)
    await ledger.record("wf-1", RunStatus.SUCCESS, "oldest", timestamp=now - timedelta(hours=3))
    await ledger.record("wf-1", RunStatus.FAILURE, "step 'push' failed", timestamp=now - timedelta(hours=1))
    await ledger.record("wf-1", RunStatus.SUCCESS, "stale", timestamp=now - timedelta(days=3))
    record_id = await ledger.record("wf-1", RunStatus.SUCCESS, "latest", duration_ms=12)

    records = await ledger.list_for_workflow("wf-1")
    assert [r.message for r in records] == ["latest", "step 'push' failed"]
    assert records[0].id == record_id
    assert records[0].duration_ms == 12
    assert records[1].status is RunStatus.FAILURE
    assert records[0].executed_at.tzinfo is not None

    assert await ledger.count_recent() == 3
    assert await ledger.list_for_workflow("wf-2") == []

    await db.dispose()


@pytest.mark.asyncio
async def test_sql_ledger_concurrent_writes(tmp_path):
    db = HookitDB(f"sqlite:///{tmp_path / 'concurrent.db'}")
    await db.init_db()
    ledger = SQLExecutionLedger(db)

    ids = await asyncio.gather(
        *(ledger.record("wf-1", RunStatus.SUCCESS, f"run {i}") for i in range(5))
    )

    assert len(set(ids)) == 5
    async with db.session() as session:
        rows = (await session.execute(ExecutionRow.__table__.select())).all()
    assert len(rows) == 5

    await db.dispose()


async def _seed_mixed(db: HookitDB) -> None:
    await db.init_db()
    async with db.session() as session:
        session.add(WorkflowRow(id="bad", name="Broken trigger", webhook_id="tok-bad"))
        session.add(WorkflowRow(id="good", name="Hourly export", webhook_id="tok-good"))
        await session.commit()
        await session.execute(
            insert(StepRow.__table__).values(
                workflow_id="bad", name="tick", step_type="trigger", step_order=0, payload=[1, 2]
            )
        )
        session.add_all(
            [
                StepRow(workflow_id="good", name="tick", step_type="trigger", step_order=0,
                        payload={"triggerType": "schedule", "frequency": "hourly"}),
                StepRow(workflow_id="good", name="store", step_type="action", step_order=1,
                        payload={"actionType": "database", "table": "exports", "operation": "insert"}),
            ]
        )
        await session.commit()


@pytest.mark.asyncio
async def test_malformed_step_payload_is_a_storage_error(tmp_path):
    db = HookitDB(f"sqlite:///{tmp_path / 'mixed.db'}")
    await _seed_mixed(db)
    repo = SQLWorkflowRepository(db)

    with pytest.raises(StorageError, match="malformed"):
        await repo.load_workflow("bad")
    with pytest.raises(StorageError):
        await repo.load_steps("bad")

    [scheduled] = await repo.load_scheduled_workflows()
    assert scheduled.id == "good"

    await db.dispose()


@pytest.mark.asyncio
async def test_malformed_workflow_does_not_block_scheduling(tmp_path):
    db = HookitDB(f"sqlite:///{tmp_path / 'mixed.db'}")
    await _seed_mixed(db)
    repo = SQLWorkflowRepository(db)
    ledger = SQLExecutionLedger(db)
    dispatcher = WorkflowDispatcher(repo, ledger)

    scheduler = await start_scheduler(repo, dispatcher, paused=True)
    try:
        assert [job.id for job in scheduler.jobs] == ["workflow_good"]
        assert scheduler.registrations["good"].expression == "0 * * * *"
    finally:
        await scheduler.shutdown()

    failed = await dispatcher.run_scheduled("bad")
    assert failed.status is RunStatus.FAILURE
    assert failed.error_type == "StorageError"
    [record] = await ledger.list_for_workflow("bad")
    assert record.status is RunStatus.FAILURE

    await db.dispose()


@pytest.mark.asyncio
async def test_scheduled_run_records_aware_timestamp(tmp_path):
    db = HookitDB(f"sqlite:///{tmp_path / 'aware.db'}")
    await _seed_mixed(db)
    ledger = SQLExecutionLedger(db)
    dispatcher = WorkflowDispatcher(SQLWorkflowRepository(db), ledger)

    result = await dispatcher.run_scheduled("good")
    assert result.status is RunStatus.SUCCESS

    [record] = await ledger.list_for_workflow("good")
    assert record.status is RunStatus.SUCCESS
    assert record.executed_at.tzinfo is not None
    assert datetime.now(timezone.utc) - record.executed_at < timedelta(minutes=5)
    assert await ledger.count_recent(timedelta(hours=1)) == 1

    offset = timezone(timedelta(hours=5))
    await ledger.record("good", RunStatus.SUCCESS, "offset", timestamp=datetime.now(offset))
    assert await ledger.count_recent(timedelta(hours=1)) == 2

    async with db.session() as session:
        row = await session.get(WorkflowRow, "good")
    assert row.created_at is not None

    await db.dispose()
