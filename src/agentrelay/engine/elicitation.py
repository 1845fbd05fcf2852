"""Pausing a workflow for human input and resuming it with the answer."""

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from agentrelay.gateway import CallOptions
from agentrelay.models import (
    ElicitationRequest,
    TemplateSection,
    WorkflowMessage,
    WorkflowState,
    WorkflowStatus,
)

from .errors import WorkflowNotPausedError
from .prompt import PromptAssembler

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from agentrelay.models import Agent, Template

    from .context import StepContext
    from .executor import Completer
    from .state import WorkflowStateStore

logger = logging.getLogger(__name__)

ASK_USER = re.compile(r"Ask user:\s*[\"“]([^\"”]+)[\"”]", re.IGNORECASE)

REPHRASE_MAX_TOKENS = 200


class WorkflowLocks:
    """One ``asyncio.Lock`` per workflow id, kept only while in use.

    A lock is dropped once no task holds it or waits for it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, workflow_id: str) -> AsyncIterator[None]:
        """Hold the workflow's lock for the duration of the block."""
        lock = self._locks.setdefault(workflow_id, asyncio.Lock())
        self._users[workflow_id] = self._users.get(workflow_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[workflow_id] -= 1
            if not self._users[workflow_id]:
                del self._users[workflow_id]
                del self._locks[workflow_id]


class ElicitationCoordinator:
    """Builds questions for the user and feeds answers back into a workflow."""

    def __init__(
        self,
        state_store: WorkflowStateStore,
        gateway: Completer | None = None,
        assembler: PromptAssembler | None = None,
        locks: WorkflowLocks | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            state_store: Where paused workflows live.
            gateway: Used to rephrase template instructions; without one the
                raw instruction is asked verbatim.
            assembler: Prompt builder for the rephrase request.
            locks: Per-workflow locks shared with the runner.
        """
        self.state_store = state_store
        self.gateway = gateway
        self.assembler = assembler or PromptAssembler()
        self.locks = locks or WorkflowLocks()
        self._continuation: Callable[[str], Awaitable[WorkflowState]] | None = None

    def set_continuation(self, continuation: Callable[[str], Awaitable[WorkflowState]]) -> None:
        """Register what runs a workflow forward after an answer is stored.

        The continuation is called while the workflow's lock is held.
        """
        self._continuation = continuation

    def detect_missing_input(
        self, template: Template, context: StepContext
    ) -> TemplateSection | None:
        """The first section that needs an answer the context does not have."""
        if template.is_interactive:
            if context.step_id and context.answer_for(context.step_id):
                return None
            first = template.sections[0] if template.sections else None
            if first is None:
                return TemplateSection(
                    id=context.step_id or template.id, title=template.display_name
                )
            return None if context.answer_for(first.id) else first

        for section in template.iter_sections():
            if section.elicit and not context.answer_for(section.id):
                return section
        return None

    async def prepare(
        self,
        agent: Agent,
        context: StepContext,
        section: TemplateSection | None = None,
    ) -> ElicitationRequest:
        """Build the question for a step that needs input.

        An ``Ask user: "..."`` phrase in the step notes is used verbatim.
        Otherwise the section instruction (or the step notes) is rephrased
        through the gateway, falling back to the raw text on any failure.
        The request is keyed by ``section`` when one is given, so the answer
        satisfies ``detect_missing_input`` on the next attempt.
        """
        if context.step_notes and (match := ASK_USER.search(context.step_notes)):
            question = match.group(1).strip()
            if section is not None:
                section_id, title = section.id, section.label
            else:
                section_id = context.step_id or "input"
                title = context.action or "Input needed"
            return ElicitationRequest(
                section_id=section_id,
                section_title=title,
                instruction=question,
                agent_id=agent.id,
                original_instruction=question,
                step_id=context.step_id,
            )

        if section is not None:
            section_id = section.id
            title = section.label
            raw = section.instruction.strip() or f"Please provide information for {title}"
        else:
            section_id = context.step_id or "input"
            title = context.action or "Input needed"
            raw = (context.step_notes or context.action or "").strip()
            raw = raw or "Please describe what you would like to achieve."

        instruction = await self._rephrase(raw, title, context)
        return ElicitationRequest(
            section_id=section_id,
            section_title=title,
            instruction=instruction,
            agent_id=agent.id,
            original_instruction=raw,
            step_id=context.step_id,
        )

    async def _rephrase(self, instruction: str, title: str, context: StepContext) -> str:
        if self.gateway is None:
            return instruction
        prompt = self.assembler.build_rephrase_prompt(instruction, title)
        options = CallOptions(max_tokens=REPHRASE_MAX_TOKENS, complexity=1, user_id=context.user_id)
        try:
            response = await self.gateway.call(prompt, options)
        except Exception as e:
            logger.warning(f"Could not rephrase question for {title}, asking verbatim: {e}")
            return instruction
        question = response.content.strip().strip('"').strip()
        return question or instruction

    async def resume(
        self, workflow_id: str, answer: str, agent_id: str | None = None
    ) -> WorkflowState:
        """Store the user's answer and continue the paused workflow.

        Args:
            workflow_id: Paused workflow.
            answer: The user's reply.
            agent_id: Agent the reply is addressed to.

        Returns:
            Workflow state after forward execution stops (next pause, failure
            or completion).

        Raises:
            WorkflowNotFoundError: If there is no such workflow.
            WorkflowNotPausedError: If the workflow is not waiting for input.
        """
        async with self.locks.hold(workflow_id):
            state = await self.state_store.load(workflow_id)
            if state.status != WorkflowStatus.PAUSED_FOR_ELICITATION or state.elicitation is None:
                raise WorkflowNotPausedError(workflow_id, state.status.value)

            request = state.elicitation
            target = agent_id or request.agent_id
            messages = [
                *state.messages,
                WorkflowMessage(
                    role="agent", content=request.instruction, agent_id=request.agent_id
                ),
                WorkflowMessage(role="user", content=answer, agent_id=target),
            ]
            state = await self.state_store.save(
                workflow_id,
                {
                    "messages": messages,
                    "answers": {**state.answers, request.answer_key: answer},
                    "elicitation": None,
                    "status": WorkflowStatus.RUNNING,
                },
            )
            logger.info(f"Workflow {workflow_id}: answer received for {request.section_id}")

            if self._continuation is None:
                return state
            return await self._continuation(workflow_id)
