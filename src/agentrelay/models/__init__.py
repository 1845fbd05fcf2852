"""AgentRelay data models."""

from .agent import INTERACTIVE_CAPABILITY, Agent, AgentCommand, Persona, parse_command_reference
from .settings import (
    CircuitBreakerConfig,
    RetryConfig,
    Settings,
    StepConfig,
    ThrottleConfig,
    UsageLimits,
)
from .template import Template, TemplateOutput, TemplateSection
from .workflow import (
    Checkpoint,
    ElicitationRequest,
    RepositoryContext,
    StepOutput,
    WorkflowDefinition,
    WorkflowMessage,
    WorkflowState,
    WorkflowStatus,
    WorkflowStep,
)

__all__ = [
    "INTERACTIVE_CAPABILITY",
    "Agent",
    "AgentCommand",
    "Checkpoint",
    "CircuitBreakerConfig",
    "ElicitationRequest",
    "Persona",
    "RepositoryContext",
    "RetryConfig",
    "Settings",
    "StepConfig",
    "StepOutput",
    "Template",
    "TemplateOutput",
    "TemplateSection",
    "ThrottleConfig",
    "UsageLimits",
    "WorkflowDefinition",
    "WorkflowMessage",
    "WorkflowState",
    "WorkflowStatus",
    "WorkflowStep",
    "parse_command_reference",
]
