"""Utility functions for AgentRelay CLI."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from rich.table import Table

from agentrelay.cli import ARTIFACTS_DIR, DB_FILE, console
from agentrelay.config import ConfigError, load_settings
from agentrelay.engine import (
    ElicitationCoordinator,
    FileArtifactSink,
    ResourceLoader,
    StepExecutor,
    WorkflowRunner,
)
from agentrelay.gateway import AIService, ProviderGateway, RequestThrottler, UsageTracker
from agentrelay.gateway.providers import build_providers
from agentrelay.models import Settings, WorkflowState, WorkflowStatus
from agentrelay.storage import Database, SqlCounterStore, SqlWorkflowStateStore, init_database


def open_database() -> Database:
    """Open the state database, creating tables on first use."""
    return init_database(DB_FILE)


def get_settings() -> Settings:
    """Load settings or exit with the configuration error."""
    try:
        return load_settings()
    except ConfigError as e:
        console.print(f"[red]✗[/] {e}")
        raise typer.Exit(1)


@dataclass
class Components:
    """Everything a command needs to run workflows."""

    runner: WorkflowRunner
    executor: StepExecutor
    service: AIService
    state_store: SqlWorkflowStateStore

    async def close(self) -> None:
        await self.executor.close()
        await self.service.close()


def build_components(
    settings: Settings, db: Database, resources: Path | None = None
) -> Components:
    """Wire the gateway, executor and runner against the state database.

    Raises:
        typer.Exit: If no AI provider has credentials configured.
    """
    providers = build_providers(settings)
    if not providers:
        console.print("[red]Error:[/] No AI provider configured")
        console.print("Set [cyan]ANTHROPIC_API_KEY[/] or [cyan]OPENAI_API_KEY[/]")
        raise typer.Exit(1)

    service = AIService(
        gateway=ProviderGateway.from_settings(settings, providers),
        throttler=RequestThrottler(settings.throttle),
        usage=UsageTracker(SqlCounterStore(db), settings.usage_limits),
    )
    state_store = SqlWorkflowStateStore(db)
    loader = ResourceLoader(resources or settings.resource_dir)
    coordinator = ElicitationCoordinator(state_store, gateway=service)
    executor = StepExecutor(
        service, loader, coordinator, state_store=state_store, config=settings.step
    )
    runner = WorkflowRunner(
        executor,
        loader,
        state_store,
        coordinator=coordinator,
        artifact_sink=FileArtifactSink(ARTIFACTS_DIR),
        step_config=settings.step,
    )
    return Components(runner, executor, service, state_store)


def state_to_dict(state: WorkflowState) -> dict[str, Any]:
    """Convert workflow state to dictionary for JSON output."""
    return {
        "workflow_id": state.workflow_id,
        "workflow": state.definition.id,
        "status": state.status.value,
        "current_step": state.current_step,
        "total_steps": len(state.definition.steps),
        "question": state.elicitation.model_dump(mode="json") if state.elicitation else None,
        "error": state.error,
        "error_category": state.error_category,
        "steps": [
            {
                "step_id": output.step_id,
                "agent": output.agent_id,
                "provider": output.provider,
                "attempts": output.attempts,
                "artifacts": output.artifacts,
            }
            for output in state.step_outputs
        ],
    }


def _step_status(state: WorkflowState, index: int) -> str:
    if index < state.current_step:
        return "[green]✓ done[/]"
    if index > state.current_step:
        return "[dim]pending[/]"
    if state.status == WorkflowStatus.PAUSED_FOR_ELICITATION:
        return "[yellow]? waiting[/]"
    if state.status == WorkflowStatus.FAILED:
        return "[red]✗ failed[/]"
    return "[cyan]▶ running[/]"


def display_state(state: WorkflowState) -> None:
    """Display workflow progress in a formatted table."""
    table = Table(title=f"Workflow: {state.definition.name or state.definition.id}")
    table.add_column("Step", style="cyan")
    table.add_column("Agent")
    table.add_column("Action")
    table.add_column("Status")

    for index, step in enumerate(state.definition.steps):
        table.add_row(step.id, step.agent, step.action or "", _step_status(state, index))

    console.print(table)
    console.print(f"  [dim]ID:[/] {state.workflow_id}")

    if state.status == WorkflowStatus.COMPLETED:
        console.print("[green]✓[/] Workflow completed")
    elif state.status == WorkflowStatus.PAUSED_FOR_ELICITATION and state.elicitation:
        console.print()
        console.print(f"[yellow]?[/] [bold]{state.elicitation.section_title}[/]")
        console.print(f"  {state.elicitation.instruction}")
        console.print(
            f"  [dim]Answer with:[/] agentrelay resume {state.workflow_id} \"<answer>\""
        )
    elif state.status == WorkflowStatus.FAILED:
        category = f" [dim]({state.error_category})[/]" if state.error_category else ""
        console.print(f"[red]✗[/] {state.error or 'Workflow failed'}{category}")
