"""Step context and step results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agentrelay.models import ElicitationRequest, RepositoryContext


@dataclass
class StepContext:
    """Mutable per-step record, owned by one in-flight step execution.

    The executor updates ``validation_feedback`` and ``attempt_feedback``
    between attempts.
    """

    user_prompt: str = ""
    action: str | None = None
    command: str | None = None
    uses: str | None = None
    creates: str | None = None
    step_notes: str | None = None
    step_id: str | None = None
    workflow_id: str | None = None
    user_id: str = "anonymous"
    project_name: str | None = None
    project_type: str | None = None
    repository: RepositoryContext | None = None
    chat_mode: bool = False
    elicitation_answers: dict[str, str] = field(default_factory=dict)
    conversation: list[str] = field(default_factory=list)
    validation_feedback: list[str] = field(default_factory=list)
    attempt_feedback: str | None = None

    def answer_for(self, key: str) -> str | None:
        """The user's answer for a section or step id, if any."""
        answer = self.elicitation_answers.get(key)
        return answer if answer and answer.strip() else None

    def template_variables(self) -> dict[str, Any]:
        """Values available to ``{{...}}`` placeholders."""
        return {
            "project_name": self.project_name or "User Project",
            "project_type": self.project_type or "application",
            "user_prompt": self.user_prompt,
            **self.elicitation_answers,
        }


class StepOutcome(str, Enum):
    """Which variant of ``ExecutionResult`` this is."""

    SUCCESS = "SUCCESS"
    VALIDATION_FAILURE = "VALIDATION_FAILURE"
    ELICITATION_REQUIRED = "ELICITATION_REQUIRED"
    FAILURE = "FAILURE"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one ``StepExecutor.execute_step`` call.

    ``success`` and ``elicitation`` are mutually exclusive. Expected failures
    are values with ``success=False``, never exceptions.
    """

    outcome: StepOutcome
    content: str = ""
    provider: str | None = None
    usage: dict[str, int] = field(default_factory=dict)
    artifacts: tuple[str, ...] = ()
    attempts: int = 0
    elicitation: ElicitationRequest | None = None
    error: str | None = None
    error_category: str | None = None
    timed_out: bool = False
    validation_errors: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return self.outcome == StepOutcome.SUCCESS

    @property
    def elicitation_required(self) -> bool:
        return self.outcome == StepOutcome.ELICITATION_REQUIRED

    @classmethod
    def succeeded(
        cls,
        content: str,
        attempts: int,
        provider: str | None = None,
        usage: dict[str, int] | None = None,
        artifacts: tuple[str, ...] = (),
    ) -> ExecutionResult:
        """Create a success result."""
        return cls(
            outcome=StepOutcome.SUCCESS,
            content=content,
            provider=provider,
            usage=usage or {},
            artifacts=artifacts,
            attempts=attempts,
        )

    @classmethod
    def needs_input(cls, request: ElicitationRequest, attempts: int = 0) -> ExecutionResult:
        """Create an elicitation result."""
        return cls(
            outcome=StepOutcome.ELICITATION_REQUIRED,
            content=request.instruction,
            elicitation=request,
            attempts=attempts,
        )

    @classmethod
    def invalid(cls, errors: list[str], attempts: int, content: str = "") -> ExecutionResult:
        """Create a result for output that never passed validation."""
        return cls(
            outcome=StepOutcome.VALIDATION_FAILURE,
            content=content,
            attempts=attempts,
            error="Output validation failed: " + "; ".join(errors),
            error_category=StepOutcome.VALIDATION_FAILURE.value,
            validation_errors=tuple(errors),
        )

    @classmethod
    def failed(
        cls,
        error: str,
        attempts: int,
        category: str | None = None,
        timed_out: bool = False,
    ) -> ExecutionResult:
        """Create a failure result."""
        return cls(
            outcome=StepOutcome.FAILURE,
            attempts=attempts,
            error=error,
            error_category=category,
            timed_out=timed_out,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "outcome": self.outcome.value,
            "success": self.success,
            "content": self.content,
            "provider": self.provider,
            "usage": dict(self.usage),
            "artifacts": list(self.artifacts),
            "attempts": self.attempts,
            "elicitation": self.elicitation.model_dump() if self.elicitation else None,
            "error": self.error,
            "error_category": self.error_category,
            "timed_out": self.timed_out,
            "validation_errors": list(self.validation_errors),
        }
