"""Engine errors for resources and workflow state."""

from __future__ import annotations

from typing import Any

from agentrelay.gateway.errors import AgentRelayError, ErrorCategory


class ResourceNotFoundError(AgentRelayError):
    """A named resource does not exist."""

    kind = "Resource"

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(
            message=f"{self.kind} not found: {identifier}",
            category=ErrorCategory.CLIENT_ERROR,
            retryable=False,
            context={"identifier": identifier},
        )


class TemplateNotFoundError(ResourceNotFoundError):
    """No template with this identifier."""

    kind = "Template"


class AgentNotFoundError(ResourceNotFoundError):
    """No agent with this identifier."""

    kind = "Agent"


class WorkflowNotFoundError(ResourceNotFoundError):
    """No workflow definition or instance with this identifier."""

    kind = "Workflow"


class ResourceParseError(AgentRelayError):
    """A resource file exists but is not valid YAML or fails validation."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(
            message=message,
            category=ErrorCategory.CLIENT_ERROR,
            retryable=False,
            context={"errors": self.errors},
        )


class TemplateParseError(ResourceParseError):
    """A template file exists but cannot be parsed."""


class WorkflowNotPausedError(AgentRelayError):
    """Resume was requested for a workflow that is not waiting for input."""

    def __init__(self, workflow_id: str, status: str) -> None:
        super().__init__(
            message=f"Workflow {workflow_id} is not paused for elicitation (status: {status})",
            category=ErrorCategory.CLIENT_ERROR,
            retryable=False,
            context={"workflow_id": workflow_id, "status": status},
        )
