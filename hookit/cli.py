"""Command line interface for operating the hookit engine."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

import typer

from hookit import WorkflowDispatcher, get_ledger, get_repository, start_scheduler
from hookit.config import load_config
from hookit.errors import HookitError, NotFound
from hookit.persistence import get_database
from hookit.schedule import translate_frequency

app = typer.Typer(help="CLI for Hookit workflows")

# Command groups
scheduler_app = typer.Typer(help="Commands for the workflow scheduler")
workflow_app = typer.Typer(help="Commands for inspecting and running workflows")

app.add_typer(scheduler_app, name="scheduler")
app.add_typer(workflow_app, name="workflow")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override the configured log level"),
) -> None:
    """Hookit CLI entry point."""
    level = (log_level or load_config().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _prepare_storage() -> None:
    db = get_database()
    if db is not None:
        await db.init_db()


def _dispatcher() -> WorkflowDispatcher:
    return WorkflowDispatcher(get_repository(), get_ledger(), config=load_config())


@scheduler_app.command("run")
def scheduler_run(lifespan: Optional[float] = None) -> None:
    """
    Register every active scheduled workflow and run the timers.

    Args:
        lifespan: Seconds to run before shutting down (default: run until stopped)

    Example:
        hookit scheduler run
        hookit scheduler run --lifespan 3600
    """

    async def _serve() -> None:
        await _prepare_storage()
        scheduler = await start_scheduler(get_repository(), _dispatcher(), load_config())
        for registration in scheduler.registrations.values():
            typer.echo(f"{registration.job_id}\t{registration.expression}\t{registration.timezone}")
        for workflow_id, error in scheduler.failures.items():
            typer.secho(f"{workflow_id}: {error}", fg=typer.colors.RED)
        try:
            if lifespan is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(lifespan)
        finally:
            await scheduler.shutdown()

    if not load_config().scheduler.enabled:
        typer.echo("Scheduler is disabled in configuration")
        return
    typer.echo("Starting scheduler")
    asyncio.run(_serve())


@workflow_app.command("scheduled")
def workflow_scheduled() -> None:
    """
    List workflows that carry a schedule trigger.

    Example:
        hookit workflow scheduled
        # Output: 42    Nightly export    daily    0 9 * * *    active
    """

    async def _load():
        await _prepare_storage()
        return await get_repository().load_scheduled_workflows()

    scheduled = asyncio.run(_load())
    if not scheduled:
        typer.echo("No scheduled workflows found")
        return
    for wf in scheduled:
        try:
            expression = translate_frequency(wf.frequency, wf.time) if wf.frequency else "-"
        except HookitError as e:
            expression = f"invalid ({e})"
        state = "active" if wf.active else "inactive"
        typer.echo(f"{wf.id}\t{wf.name}\t{wf.frequency}\t{expression}\t{state}")


@workflow_app.command("executions")
def workflow_executions(workflow_id: str, limit: Optional[int] = None) -> None:
    """
    Show execution history for a workflow, most recent first.

    Example:
        hookit workflow executions 42 --limit 10
    """

    async def _load():
        await _prepare_storage()
        return await get_ledger().list_for_workflow(workflow_id, limit=limit)

    records = asyncio.run(_load())
    if not records:
        typer.echo("No executions found")
        return
    for record in records:
        duration = f"{record.duration_ms}ms" if record.duration_ms is not None else "-"
        typer.echo(
            f"{record.executed_at.isoformat()}\t{record.status.value}\t{duration}\t{record.message}"
        )


@workflow_app.command("run")
def workflow_run(workflow_id: str) -> None:
    """
    Run a workflow once, exactly as a scheduler tick would.

    Example:
        hookit workflow run 42
    """

    async def _run():
        await _prepare_storage()
        return await _dispatcher().run_scheduled(workflow_id)

    result = asyncio.run(_run())
    typer.echo(f"{result.status.value}: {result.message}")
    if not result.succeeded:
        raise typer.Exit(code=1)


@app.command("webhook")
def webhook(
    webhook_id: str,
    body: Optional[str] = typer.Option(None, help="JSON object merged into the context"),
    file: Optional[Path] = typer.Option(None, help="File passed to the run as file_data"),
) -> None:
    """
    Invoke a workflow through its webhook token.

    Example:
        hookit webhook abc123 --body '{"customer": "acme"}' --file ./orders.csv
    """

    try:
        payload = json.loads(body) if body else None
    except json.JSONDecodeError as e:
        typer.secho(f"Invalid JSON body: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if payload is not None and not isinstance(payload, dict):
        typer.secho("Body must be a JSON object", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    file_data = file.read_bytes() if file else None
    file_name = file.name if file else None

    async def _run():
        await _prepare_storage()
        return await _dispatcher().run_webhook(
            webhook_id, body=payload, file_data=file_data, file_name=file_name
        )

    try:
        result = asyncio.run(_run())
    except NotFound:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    except HookitError as e:
        typer.secho(f"Webhook failed: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"{result.status.value}: {result.message}")
    if not result.succeeded:
        raise typer.Exit(code=1)


@app.command("status")
def status() -> None:
    """
    Summarise scheduling state and recent executions.

    Example:
        hookit status
        # Output: Scheduled workflows: 3
        #         Executions (last 24h): 17
    """
    config = load_config()

    async def _load():
        await _prepare_storage()
        scheduled = await get_repository().load_scheduled_workflows()
        recent = await get_ledger().count_recent(
            timedelta(hours=config.ledger.recent_window_hours)
        )
        return scheduled, recent

    scheduled, recent = asyncio.run(_load())
    active = sum(1 for wf in scheduled if wf.active)
    typer.echo(f"Scheduled workflows: {active}")
    typer.echo(f"Executions (last {config.ledger.recent_window_hours}h): {recent}")
