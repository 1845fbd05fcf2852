"""Workflow definition and state models for AgentRelay."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _now() -> datetime:
    return datetime.now(UTC)


class WorkflowStep(BaseModel):
    """One step of a workflow definition."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Step identifier, unique within the workflow")
    agent: str = Field(..., description="Agent that runs the step")
    action: str | None = Field(default=None, description="Free-text action")
    command: str | None = Field(default=None, description="Agent command or compound text")
    uses: str | None = Field(default=None, description="Template identifier")
    creates: str | None = Field(default=None, description="Artifact filename")
    notes: str | None = Field(default=None, description="Free-text step notes")
    chat: bool = Field(default=False, description="Conversational step, output not validated")


class WorkflowDefinition(BaseModel):
    """Complete workflow definition."""

    id: str = Field(..., pattern=r"^[a-z][a-z0-9_-]*$", description="Workflow identifier")
    name: str = ""
    description: str = ""
    steps: list[WorkflowStep] = Field(..., min_length=1, description="Ordered steps")

    @model_validator(mode="before")
    @classmethod
    def flatten_nested(cls, data: Any) -> Any:
        """Accept the nested ``workflow: {id, sequence}`` layout and fill step ids."""
        if not isinstance(data, dict):
            return data
        if isinstance(data.get("workflow"), dict):
            data = {**data["workflow"], **{k: v for k, v in data.items() if k != "workflow"}}
        data = dict(data)
        if "steps" not in data and "sequence" in data:
            data["steps"] = data.pop("sequence")
        steps = []
        for index, step in enumerate(data.get("steps") or [], start=1):
            if isinstance(step, dict) and not step.get("id"):
                step = {**step, "id": f"step-{index}"}
            steps.append(step)
        data["steps"] = steps
        return data

    @model_validator(mode="after")
    def validate_unique_ids(self) -> WorkflowDefinition:
        """Step ids must be unique."""
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"Duplicate step id: {step.id}")
            seen.add(step.id)
        return self


class WorkflowStatus(str, Enum):
    """Lifecycle of a workflow instance."""

    RUNNING = "RUNNING"
    PAUSED_FOR_ELICITATION = "PAUSED_FOR_ELICITATION"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowStatus.COMPLETED, WorkflowStatus.FAILED)


class ElicitationRequest(BaseModel):
    """A question for a human, raised when a step cannot proceed without input."""

    model_config = ConfigDict(frozen=True)

    section_id: str
    section_title: str
    instruction: str = Field(..., description="User-facing question")
    agent_id: str
    original_instruction: str | None = Field(default=None, description="Text before rephrasing")
    step_id: str | None = None

    @property
    def answer_key(self) -> str:
        """Key the answer is stored under, scoped to the asking step."""
        return f"{self.step_id}:{self.section_id}" if self.step_id else self.section_id


class RepositoryContext(BaseModel):
    """Facts about a code repository the workflow works against."""

    name: str
    url: str | None = None
    branch: str | None = None
    language: str | None = None
    visibility: str | None = None
    summary: str | None = None
    readme_preview: str | None = None


class StepOutput(BaseModel):
    """Recorded result of a completed step."""

    step_id: str
    agent_id: str
    content: str
    provider: str | None = None
    attempts: int = 1
    artifacts: list[str] = Field(default_factory=list)
    usage: dict[str, int] = Field(default_factory=dict)
    completed_at: datetime = Field(default_factory=_now)


class Checkpoint(BaseModel):
    """Marker written after each completed step."""

    step_index: int
    step_id: str
    created_at: datetime = Field(default_factory=_now)


class WorkflowMessage(BaseModel):
    """One entry of a workflow's conversation history."""

    role: Literal["user", "agent", "system"]
    content: str
    agent_id: str | None = None
    created_at: datetime = Field(default_factory=_now)


class WorkflowState(BaseModel):
    """Persistent state of one workflow instance."""

    workflow_id: str
    definition: WorkflowDefinition
    status: WorkflowStatus = WorkflowStatus.RUNNING
    current_step: int = 0
    user_id: str = "anonymous"
    user_prompt: str = ""
    project_name: str | None = None
    project_type: str | None = None
    repository: RepositoryContext | None = None
    answers: dict[str, str] = Field(default_factory=dict, description="Answers by step:section key")
    step_outputs: list[StepOutput] = Field(default_factory=list)
    checkpoints: list[Checkpoint] = Field(default_factory=list)
    messages: list[WorkflowMessage] = Field(default_factory=list)
    elicitation: ElicitationRequest | None = None
    error: str | None = None
    error_category: str | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def is_paused(self) -> bool:
        return self.status == WorkflowStatus.PAUSED_FOR_ELICITATION

    @property
    def current(self) -> WorkflowStep | None:
        """The step at ``current_step``, or None once past the end."""
        if self.current_step < len(self.definition.steps):
            return self.definition.steps[self.current_step]
        return None

    def answers_for(self, step_id: str) -> dict[str, str]:
        """Answers given to one step, keyed by section id."""
        prefix = f"{step_id}:"
        return {
            key.removeprefix(prefix): answer
            for key, answer in self.answers.items()
            if key.startswith(prefix)
        }
