"""Command line interface for managing workflow templates and runs."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from pydantic import ValidationError

from flowrun import RunEngine, Scheduler
from flowrun.config import load_config
from flowrun.contracts import GateResponse, WorkflowRun, WorkflowTemplate, utc_now
from flowrun.errors import FlowrunError
from flowrun.scheduling import describe_schedule, next_run_at
from flowrun.utils.retry import retry_on_conflict

app = typer.Typer(help="CLI for flowrun workflow runs")

# Command groups
template_app = typer.Typer(help="Commands for managing workflow templates")
run_app = typer.Typer(help="Commands for managing workflow runs")
gate_app = typer.Typer(help="Commands for answering human gates")
scheduler_app = typer.Typer(help="Commands for the schedule runner")

app.add_typer(template_app, name="template")
app.add_typer(run_app, name="run")
app.add_typer(gate_app, name="gate")
app.add_typer(scheduler_app, name="scheduler")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", help="Python logging level"),
) -> None:
    """flowrun CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _engine() -> RunEngine:
    return RunEngine.from_config()


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _echo_run(run: WorkflowRun) -> None:
    total = len(run.steps_snapshot)
    position = min(run.current_step_index + 1, total)
    typer.echo(f"Run {run.id}: {run.status} (step {position}/{total})")


# ---------------------------------------------------------------------------
# Templates


@template_app.command("load")
def template_load(path: Path) -> None:
    """
    Create or update templates from a YAML file.

    The file holds either one template mapping or a ``templates`` list.

    Example:
        flowrun template load ./workflows/weekly_blog.yaml
        # Output: Saved template 3f2a... (Weekly blog, 4 steps)
    """
    if not path.exists():
        _fail(f"File not found: {path}")

    data = yaml.safe_load(path.read_text()) or {}
    items = data.get("templates", [data]) if isinstance(data, dict) else data
    try:
        templates = [WorkflowTemplate.model_validate(item) for item in items]
    except ValidationError as exc:
        _fail(f"Invalid template in {path}: {exc}")

    engine = _engine()
    for template in templates:
        asyncio.run(engine.save_template(template))
        typer.echo(
            f"Saved template {template.id} ({template.name}, {len(template.steps)} steps)"
        )


@template_app.command("list")
def template_list(account: Optional[str] = None) -> None:
    """
    List templates with their schedule.

    Example:
        flowrun template list --account acme
        # Output: 3f2a...    Weekly blog    4 steps    Monday 09:00am (next 2026-10-19 09:00)
    """
    engine = _engine()
    templates = asyncio.run(engine.store.list_templates(account_id=account))
    if not templates:
        typer.echo("No templates found")
        return
    now = utc_now()
    for t in templates:
        line = f"{t.id}\t{t.name}\t{len(t.steps)} steps"
        label = describe_schedule(t.schedule)
        if label:
            if t.has_active_schedule:
                upcoming = next_run_at(t.schedule, now)
                label += f" (next {upcoming:%Y-%m-%d %H:%M})" if upcoming else " (done)"
            else:
                label += " (paused)"
            line += f"\t{label}"
        typer.echo(line)


@template_app.command("delete")
def template_delete(template_id: str) -> None:
    """Soft-delete a template; existing runs keep referencing it."""
    engine = _engine()
    if not asyncio.run(engine.delete_template(template_id)):
        _fail("Template not found")
    typer.echo(f"Deleted template {template_id}")


# ---------------------------------------------------------------------------
# Runs


@run_app.command("start")
def run_start(
    template_id: str,
    account: str = typer.Option(..., help="Account owning the template"),
    user: str = typer.Option("cli", help="Id of the user starting the run"),
) -> None:
    """
    Start a run of a template ("Run Now").

    Example:
        flowrun run start 3f2a... --account acme --user u-42
        # Output: Run 9b1c...: paused (step 2/4)
    """
    engine = _engine()
    try:
        run = asyncio.run(engine.start_run(template_id, account, user))
    except FlowrunError as exc:
        _fail(str(exc))
    _echo_run(run)


@run_app.command("list")
def run_list(
    account: Optional[str] = None,
    active: bool = typer.Option(False, help="Only running or paused runs"),
) -> None:
    """List runs with status and progress."""
    engine = _engine()
    if active and account:
        runs = asyncio.run(engine.list_active_runs(account))
    else:
        statuses = ("running", "paused") if active else None
        runs = asyncio.run(engine.list_runs(account_id=account, statuses=statuses))
    if not runs:
        typer.echo("No runs found")
        return
    for run in runs:
        total = len(run.steps_snapshot)
        typer.echo(
            f"{run.id}\t{run.status}\t{min(run.current_step_index + 1, total)}/{total}"
        )


@run_app.command("show")
def run_show(run_id: str) -> None:
    """
    Show a run's steps and their results.

    Example:
        flowrun run show 9b1c...
        # Output: Run 9b1c...: paused (step 2/4)
        #         - Research topics (agent_task): completed
        #         - Pick titles (human_gate): waiting_gate
    """
    engine = _engine()
    try:
        run = asyncio.run(engine.get_run(run_id))
    except FlowrunError:
        _fail("Run not found")
    _echo_run(run)
    typer.echo(f"Triggered by: {run.triggered_by}")
    for step in run.steps_snapshot:
        result = run.step_results.get(step.id)
        status = result.status if result else "pending"
        line = f"- {step.title} ({step.type}): {status}"
        if result and result.gate_response:
            line += f" [{result.gate_response.action} by {result.gate_response.responded_by}]"
        typer.echo(line)
    if run.error:
        typer.secho(f"Error at {run.error.step_id}: {run.error.message}", fg=typer.colors.RED)


@run_app.command("cancel")
def run_cancel(run_id: str) -> None:
    """Cancel a running or paused run."""
    engine = _engine()
    try:
        run = asyncio.run(retry_on_conflict(lambda: engine.cancel_run(run_id)))
    except FlowrunError as exc:
        _fail(str(exc))
    _echo_run(run)


# ---------------------------------------------------------------------------
# Gates


@gate_app.command("resolve")
def gate_resolve(
    run_id: str,
    step_id: str,
    action: str = typer.Option(..., help="approve, reject, select or input"),
    option: Optional[List[str]] = typer.Option(None, help="Selected option (repeatable)"),
    text: Optional[str] = typer.Option(None, help="Free text for input gates"),
    by: str = typer.Option("cli", help="Id of the responding user"),
    task_id: Optional[str] = typer.Option(None, help="Task representing the gate"),
) -> None:
    """
    Answer the gate a paused run is waiting on.

    Example:
        flowrun gate resolve 9b1c... pick-titles --action select --option "Title A"
        # Output: Run 9b1c...: completed (step 4/4)
    """
    try:
        response = GateResponse(
            action=action,
            selected_options=option or [],
            input_text=text,
            responded_by=by,
        )
    except ValidationError as exc:
        _fail(f"Invalid gate response: {exc}")

    engine = _engine()
    try:
        run = asyncio.run(engine.resolve_gate(run_id, step_id, task_id, response))
    except FlowrunError as exc:
        _fail(str(exc))
    _echo_run(run)


# ---------------------------------------------------------------------------
# Scheduler


def _scheduler() -> Scheduler:
    config = load_config()
    return Scheduler(
        RunEngine.from_config(config),
        timezone=config.scheduler.timezone,
        interval_seconds=config.scheduler.interval_seconds,
    )


@scheduler_app.command("tick")
def scheduler_tick() -> None:
    """Evaluate every schedule once and start the runs that are due."""
    started = asyncio.run(_scheduler().tick())
    if not started:
        typer.echo("No runs due")
        return
    for run in started:
        _echo_run(run)


@scheduler_app.command("serve")
def scheduler_serve(lifespan: Optional[float] = None) -> None:
    """
    Run the scheduler loop.

    Args:
        lifespan: Stop after this many seconds (default: run indefinitely)
    """
    typer.echo("Starting scheduler")
    asyncio.run(_scheduler().run_forever(lifespan=lifespan))
