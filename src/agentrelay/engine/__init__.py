"""Workflow step execution: resolution, prompts, validation, elicitation."""

from .artifacts import ArtifactSink, FileArtifactSink
from .context import ExecutionResult, StepContext, StepOutcome
from .elicitation import ElicitationCoordinator, WorkflowLocks
from .errors import (
    AgentNotFoundError,
    ResourceNotFoundError,
    ResourceParseError,
    TemplateNotFoundError,
    TemplateParseError,
    WorkflowNotFoundError,
    WorkflowNotPausedError,
)
from .executor import StepExecutor
from .loader import ResourceLoader
from .prompt import PromptAssembler
from .resolver import Resolution, ResolutionKind, TemplateResolver, is_interactive_step
from .runner import WorkflowRunner
from .state import InMemoryWorkflowStateStore, WorkflowStateStore
from .template import TemplateEngine
from .validator import OutputValidator, ValidationResult

__all__ = [
    "AgentNotFoundError",
    "ArtifactSink",
    "ElicitationCoordinator",
    "ExecutionResult",
    "FileArtifactSink",
    "InMemoryWorkflowStateStore",
    "OutputValidator",
    "PromptAssembler",
    "Resolution",
    "ResolutionKind",
    "ResourceLoader",
    "ResourceNotFoundError",
    "ResourceParseError",
    "StepContext",
    "StepExecutor",
    "StepOutcome",
    "TemplateEngine",
    "TemplateNotFoundError",
    "TemplateParseError",
    "TemplateResolver",
    "ValidationResult",
    "WorkflowLocks",
    "WorkflowNotFoundError",
    "WorkflowNotPausedError",
    "WorkflowRunner",
    "WorkflowStateStore",
    "is_interactive_step",
]
