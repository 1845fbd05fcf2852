"""Validate command for AgentRelay CLI."""

from pathlib import Path

import typer

from agentrelay.cli import app, console
from agentrelay.cli.utils import get_settings
from agentrelay.engine import (
    OutputValidator,
    ResourceLoader,
    ResourceNotFoundError,
    ResourceParseError,
)


@app.command()
def validate(
    file: Path = typer.Argument(..., help="Generated document to check"),
    template: str = typer.Option(..., "--template", "-t", help="Template id, e.g. prd-tmpl"),
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
    """Check a document against a template's required structure.

    Checks that the document:
    - Contains every required section
    - Is long enough to be a real deliverable
    - Has no placeholder or refusal text
    """
    if not file.is_file():
        console.print(f"[red]Error:[/] File not found: {file}")
        raise typer.Exit(1)

    settings = get_settings()
    loader = ResourceLoader(resources or settings.resource_dir)
    try:
        tmpl = loader.load_template(template)
    except (ResourceNotFoundError, ResourceParseError) as e:
        console.print(f"[red]✗[/] {e.message}")
        raise typer.Exit(1)

    result = OutputValidator().validate(file.read_text(), tmpl)

    if json_output:
        console.print_json(
            data={
                "file": str(file),
                "template": tmpl.id,
                "valid": result.is_valid,
                "errors": list(result.errors),
            }
        )
    elif result.is_valid:
        console.print(f"[green]✓[/] [cyan]{file.name}[/] matches template [bold]{tmpl.id}[/]")
    else:
        console.print(f"[red]✗[/] Validation failed for [cyan]{file.name}[/]:")
        console.print()
        for error in result.errors:
            console.print(f"  [red]•[/] {error}")

    if not result.is_valid:
        raise typer.Exit(1)
