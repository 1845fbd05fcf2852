"""AgentRelay CLI interface."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

# CLI App
app = typer.Typer(
    name="agentrelay",
    help="Multi-agent AI workflows with provider fallback and human-in-the-loop steps.",
    no_args_is_help=True,
)

# Console for rich output
console = Console()

# Default paths
AGENTRELAY_DIR = Path.home() / ".agentrelay"
DB_FILE = AGENTRELAY_DIR / "agentrelay.db"
ARTIFACTS_DIR = AGENTRELAY_DIR / "artifacts"


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show log output",
    ),
) -> None:
    """Multi-agent AI workflows."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, rich_tracebacks=True)],
        )


# Import commands to register them
from agentrelay.cli.commands import run, usage, validate  # noqa: E402, F401


@app.command()
def version() -> None:
    """Show AgentRelay version."""
    from agentrelay import __version__

    console.print(f"AgentRelay v{__version__}")


if __name__ == "__main__":
    app()
