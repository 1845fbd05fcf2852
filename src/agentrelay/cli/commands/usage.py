"""Usage command for AgentRelay CLI."""

import asyncio
from typing import Any

import typer
from rich.table import Table

from agentrelay.cli import app, console
from agentrelay.cli.utils import get_settings, open_database
from agentrelay.gateway import UsageTracker
from agentrelay.storage import SqlCounterStore


@app.command()
def usage(
    user_id: str = typer.Argument("anonymous", help="User id"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output results as JSON",
    ),
) -> None:
    """Show today's AI usage for a user against the daily limits."""
    settings = get_settings()
    db = open_database()
    try:
        tracker = UsageTracker(SqlCounterStore(db), settings.usage_limits)
        stats: dict[str, Any] = asyncio.run(tracker.get_user_stats(user_id))
    finally:
        db.dispose()

    if json_output:
        console.print_json(data=stats)
        return

    limits = stats["limits"]
    table = Table(title=f"Usage for {user_id} on {stats['day']} (UTC)")
    table.add_column("Provider", style="cyan")
    table.add_column("Requests", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")

    for provider, counters in sorted(stats["providers"].items()):
        table.add_row(
            provider,
            str(counters["requests"]),
            str(counters["tokens"]),
            f"${counters['cost']:.4f}",
        )
    table.add_row(
        "[bold]total[/]",
        f"{stats['requests']} / {limits['daily_requests']}",
        str(stats["tokens"]),
        f"${stats['cost']:.4f} / ${limits['daily_cost']:.2f}",
    )
    console.print(table)
