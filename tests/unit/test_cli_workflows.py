import asyncio

import pytest
from typer.testing import CliRunner

import hookit.persistence as persistence
from hookit.cli import app
from hookit.contracts import RunStatus, Step, Workflow
from hookit.errors import StorageError
from hookit.persistence import InMemoryExecutionLedger, InMemoryWorkflowRepository


@pytest.fixture(autouse=True)
def _no_database(tmp_path, monkeypatch):
    monkeypatch.setenv("HOOKIT_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("HOOKIT_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)


def _setup() -> tuple[InMemoryWorkflowRepository, InMemoryExecutionLedger]:
    repo = InMemoryWorkflowRepository()
    ledger = InMemoryExecutionLedger()
    persistence._repository_instance = repo
    persistence._ledger_instance = ledger
    return repo, ledger


def _scheduled_workflow(workflow_id="42", active=True) -> Workflow:
    return Workflow(
        id=workflow_id,
        name="Nightly export",
        webhook_id=f"tok-{workflow_id}",
        active=active,
        steps=[
            Step(name="tick", type="trigger", order=0,
                 payload={"triggerType": "schedule", "frequency": "daily"}),
            Step(name="store", type="action", order=1,
                 payload={"actionType": "database", "table": "exports", "operation": "insert"}),
        ],
    )


def test_scheduled_command_lists_workflows():
    repo, _ = _setup()
    repo.add_workflow(_scheduled_workflow("42"))
    repo.add_workflow(_scheduled_workflow("43", active=False))

    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "scheduled"])
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"
    assert "42" in result.stdout
    assert "0 9 * * *" in result.stdout
    assert "inactive" in result.stdout


def test_scheduled_command_without_workflows():
    _setup()
    result = CliRunner().invoke(app, ["workflow", "scheduled"])
    assert result.exit_code == 0
    assert "No scheduled workflows found" in result.stdout


def test_run_command_records_execution():
    repo, ledger = _setup()
    repo.add_workflow(_scheduled_workflow("42"))

    result = CliRunner().invoke(app, ["workflow", "run", "42"])
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"
    assert "success" in result.stdout
    assert [r.status for r in ledger.records] == [RunStatus.SUCCESS]


def test_run_command_missing_workflow_fails():
    _, ledger = _setup()
    result = CliRunner().invoke(app, ["workflow", "run", "missing"])
    assert result.exit_code == 1
    assert "failure" in result.stdout
    assert ledger.records[0].workflow_id == "missing"


def test_executions_command_shows_history():
    _, ledger = _setup()
    asyncio.run(ledger.record("42", RunStatus.SUCCESS, "Scheduled execution completed", duration_ms=8))
    asyncio.run(ledger.record("42", RunStatus.FAILURE, "step 'store' failed: boom"))

    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "executions", "42"])
    assert result.exit_code == 0
    lines = result.stdout.strip().splitlines()
    assert "failure" in lines[0]
    assert "8ms" in lines[1]

    empty = runner.invoke(app, ["workflow", "executions", "99"])
    assert "No executions found" in empty.stdout


def test_webhook_command_runs_workflow(tmp_path):
    repo, ledger = _setup()
    repo.add_workflow(_scheduled_workflow("42"))
    upload = tmp_path / "orders.csv"
    upload.write_text("sku,qty\nA,1\n")

    result = CliRunner().invoke(
        app, ["webhook", "tok-42", "--body", '{"customer": "acme"}', "--file", str(upload)]
    )
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"
    assert "Webhook execution completed" in result.stdout
    assert len(ledger.records) == 1


def test_webhook_command_unknown_token():
    _setup()
    result = CliRunner().invoke(app, ["webhook", "nope"])
    assert result.exit_code == 1
    assert "Workflow not found" in result.stdout


def test_webhook_command_reports_storage_errors():
    class LockedRepository(InMemoryWorkflowRepository):
        async def load_workflow_by_webhook(self, webhook_id):
            raise StorageError("database is locked")

    _setup()
    persistence._repository_instance = LockedRepository()

    result = CliRunner().invoke(app, ["webhook", "tok-42"])
    assert result.exit_code == 1
    assert "Webhook failed: database is locked" in result.stdout
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_webhook_command_rejects_non_object_body():
    repo, _ = _setup()
    repo.add_workflow(_scheduled_workflow("42"))
    result = CliRunner().invoke(app, ["webhook", "tok-42", "--body", "[1, 2]"])
    assert result.exit_code == 1


def test_status_command_counts():
    repo, ledger = _setup()
    repo.add_workflow(_scheduled_workflow("42"))
    repo.add_workflow(_scheduled_workflow("43", active=False))
    asyncio.run(ledger.record("42", RunStatus.SUCCESS, "ok"))

    result = CliRunner().invoke(app, ["status"])
    assert result.exit_code == 0
    assert "Scheduled workflows: 1" in result.stdout
    assert "Executions (last 24h): 1" in result.stdout


def test_scheduler_run_respects_disabled_flag(tmp_path, monkeypatch):
    _setup()
    config_path = tmp_path / "config.yaml"
    config_path.write_text("scheduler:\n  enabled: false\n")
    monkeypatch.setenv("HOOKIT_CONFIG", str(config_path))

    result = CliRunner().invoke(app, ["scheduler", "run", "--lifespan", "0"])
    assert result.exit_code == 0
    assert "disabled" in result.stdout


def test_scheduler_run_lists_registered_jobs():
    repo, _ = _setup()
    repo.add_workflow(_scheduled_workflow("42"))

    result = CliRunner().invoke(app, ["scheduler", "run", "--lifespan", "0"])
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"
    assert "workflow_42" in result.stdout
    assert "0 9 * * *" in result.stdout
