"""CLI commands for AgentRelay."""

# Import command modules to register them with the app
# These imports have side effects (register commands via @app.command())
from agentrelay.cli.commands import run, usage, validate

__all__ = ["run", "usage", "validate"]
