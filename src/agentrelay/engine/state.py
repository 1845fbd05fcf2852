"""Workflow state persistence contract."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

from agentrelay.models import Checkpoint, StepOutput, WorkflowState

from .errors import WorkflowNotFoundError


def apply_patch(state: WorkflowState, patch: dict[str, Any]) -> WorkflowState:
    """Return a validated copy of ``state`` with ``patch`` applied."""
    unknown = set(patch) - set(WorkflowState.model_fields)
    if unknown:
        raise ValueError(f"Unknown workflow state fields: {sorted(unknown)}")
    data = {**state.model_dump(), **patch, "updated_at": datetime.now(UTC)}
    return WorkflowState.model_validate(data)


class WorkflowStateStore(ABC):
    """Reads and writes workflow state.

    Every write is durable before the call returns.
    """

    @abstractmethod
    async def create(self, state: WorkflowState) -> WorkflowState:
        """Store a new workflow."""

    @abstractmethod
    async def load(self, workflow_id: str) -> WorkflowState:
        """Load a workflow.

        Raises:
            WorkflowNotFoundError: If there is no such workflow.
        """

    @abstractmethod
    async def save(self, workflow_id: str, patch: dict[str, Any]) -> WorkflowState:
        """Apply ``patch`` to the stored state and return the new state."""

    async def record_step_output(self, workflow_id: str, output: StepOutput) -> WorkflowState:
        """Append a completed step's output."""
        state = await self.load(workflow_id)
        return await self.save(workflow_id, {"step_outputs": [*state.step_outputs, output]})

    async def add_checkpoint(self, workflow_id: str, checkpoint: Checkpoint) -> WorkflowState:
        """Append a checkpoint."""
        state = await self.load(workflow_id)
        return await self.save(workflow_id, {"checkpoints": [*state.checkpoints, checkpoint]})


class InMemoryWorkflowStateStore(WorkflowStateStore):
    """Process-local state store. States are copied in and out."""

    def __init__(self) -> None:
        self._states: dict[str, WorkflowState] = {}
        self._lock = asyncio.Lock()

    async def create(self, state: WorkflowState) -> WorkflowState:
        async with self._lock:
            self._states[state.workflow_id] = state.model_copy(deep=True)
        return state

    async def load(self, workflow_id: str) -> WorkflowState:
        state = self._states.get(workflow_id)
        if state is None:
            raise WorkflowNotFoundError(workflow_id)
        return state.model_copy(deep=True)

    async def save(self, workflow_id: str, patch: dict[str, Any]) -> WorkflowState:
        async with self._lock:
            current = self._states.get(workflow_id)
            if current is None:
                raise WorkflowNotFoundError(workflow_id)
            updated = apply_patch(current, patch)
            self._states[workflow_id] = updated
        return updated.model_copy(deep=True)
