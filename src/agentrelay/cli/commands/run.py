"""Run, resume and status commands for AgentRelay CLI."""

import asyncio
from pathlib import Path
from typing import NoReturn

import typer

from agentrelay.cli import app, console
from agentrelay.cli.utils import (
    build_components,
    display_state,
    get_settings,
    open_database,
    state_to_dict,
)
from agentrelay.engine import (
    ResourceNotFoundError,
    ResourceParseError,
    WorkflowNotFoundError,
    WorkflowNotPausedError,
)
from agentrelay.models import WorkflowState, WorkflowStatus
from agentrelay.storage import SqlWorkflowStateStore


def _finish(state: WorkflowState, json_output: bool) -> None:
    if json_output:
        console.print_json(data=state_to_dict(state))
    else:
        display_state(state)
    if state.status == WorkflowStatus.FAILED:
        raise typer.Exit(1)


def _fail(message: str, json_output: bool) -> NoReturn:
    if json_output:
        console.print_json(data={"error": message, "status": "failed"})
    else:
        console.print(f"[red]✗[/] {message}")
    raise typer.Exit(1)


@app.command()
def run(
    workflow: str = typer.Argument(..., help="Workflow id (e.g. greenfield)"),
    prompt: str = typer.Option(..., "--prompt", "-p", help="What you want to build"),
    user: str = typer.Option("anonymous", "--user", "-u", help="User id for usage limits"),
    project_name: str | None = typer.Option(None, "--project", help="Project name"),
    project_type: str | None = typer.Option(None, "--type", help="Project type"),
    resources: Path | None = typer.Option(
        None,
        "--resources",
        help="Directory with agents/, templates/ and workflows/",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output results as JSON",
    ),
) -> None:
    """Start a workflow.

    Runs steps in order until the workflow completes, fails or needs an
    answer from you.

    Examples:
        agentrelay run greenfield --prompt "A recipe sharing app"
        agentrelay run greenfield -p "Todo API" --user alice --json
    """
    settings = get_settings()
    db = open_database()

    async def _run() -> WorkflowState:
        components = build_components(settings, db, resources)
        components.service.start()
        try:
            return await components.runner.start(
                workflow,
                prompt,
                user_id=user,
                project_name=project_name,
                project_type=project_type,
            )
        finally:
            await components.close()

    if not json_output:
        console.print(f"[cyan]▶[/] Running workflow: [bold]{workflow}[/]")
        console.print()

    try:
        state = asyncio.run(_run())
    except (ResourceNotFoundError, ResourceParseError) as e:
        _fail(e.message, json_output)
    finally:
        db.dispose()

    _finish(state, json_output)


@app.command()
def resume(
    workflow_id: str = typer.Argument(..., help="Id of the paused workflow"),
    answer: str = typer.Argument(..., help="Your answer to the pending question"),
    agent: str | None = typer.Option(None, "--agent", help="Agent the answer is for"),
    resources: Path | None = typer.Option(
        None,
        "--resources",
        help="Directory with agents/, templates/ and workflows/",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output results as JSON",
    ),
) -> None:
    """Answer a paused workflow's question and continue it."""
    settings = get_settings()
    db = open_database()

    async def _resume() -> WorkflowState:
        components = build_components(settings, db, resources)
        components.service.start()
        try:
            return await components.runner.resume(workflow_id, answer, agent)
        finally:
            await components.close()

    try:
        state = asyncio.run(_resume())
    except (
        WorkflowNotFoundError,
        WorkflowNotPausedError,
        ResourceNotFoundError,
        ResourceParseError,
    ) as e:
        _fail(e.message, json_output)
    finally:
        db.dispose()

    _finish(state, json_output)


@app.command()
def status(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output results as JSON",
    ),
) -> None:
    """Show a workflow's progress and any pending question."""
    db = open_database()
    try:
        state = asyncio.run(SqlWorkflowStateStore(db).load(workflow_id))
    except WorkflowNotFoundError as e:
        _fail(e.message, json_output)
    finally:
        db.dispose()

    if json_output:
        console.print_json(data=state_to_dict(state))
    else:
        display_state(state)
