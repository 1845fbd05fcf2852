"""Sequential workflow runner built on the step executor."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from agentrelay.models import (
    Checkpoint,
    RepositoryContext,
    StepConfig,
    WorkflowDefinition,
    WorkflowMessage,
    WorkflowState,
    WorkflowStatus,
    WorkflowStep,
)

from .context import StepContext
from .elicitation import ElicitationCoordinator, WorkflowLocks

if TYPE_CHECKING:
    from .artifacts import ArtifactSink
    from .executor import StepExecutor
    from .loader import ResourceLoader
    from .state import WorkflowStateStore

logger = logging.getLogger(__name__)

CONVERSATION_WINDOW = 10
CONVERSATION_LINE_CHARS = 500


class WorkflowRunner:
    """Runs workflow steps strictly in order, one workflow at a time per id.

    A step that needs input pauses the workflow; ``resume`` stores the
    answer and carries on from the same step. Different workflows run
    independently.
    """

    def __init__(
        self,
        executor: StepExecutor,
        loader: ResourceLoader,
        state_store: WorkflowStateStore,
        coordinator: ElicitationCoordinator | None = None,
        artifact_sink: ArtifactSink | None = None,
        step_config: StepConfig | None = None,
    ) -> None:
        self.executor = executor
        self.loader = loader
        self.state_store = state_store
        self.coordinator = coordinator or executor.coordinator
        self.locks: WorkflowLocks = self.coordinator.locks
        self.artifact_sink = artifact_sink
        self.step_config = step_config
        self.coordinator.set_continuation(self._advance)

    async def start(
        self,
        definition: WorkflowDefinition | str,
        user_prompt: str,
        user_id: str = "anonymous",
        project_name: str | None = None,
        project_type: str | None = None,
        repository: RepositoryContext | None = None,
        workflow_id: str | None = None,
    ) -> WorkflowState:
        """Create a workflow instance and run it until it pauses or ends.

        Args:
            definition: Workflow definition or the id of a bundled one.
            user_prompt: What the user asked for.
            user_id: Caller key for throttling and usage limits.
            project_name: Project name for template placeholders.
            project_type: Project type for template placeholders.
            repository: Repository facts included in prompts.
            workflow_id: Explicit instance id, generated if omitted.

        Returns:
            Workflow state when execution stops.
        """
        if isinstance(definition, str):
            definition = self.loader.load_workflow(definition)

        state = WorkflowState(
            workflow_id=workflow_id or str(uuid.uuid4()),
            definition=definition,
            user_id=user_id,
            user_prompt=user_prompt,
            project_name=project_name,
            project_type=project_type,
            repository=repository,
            messages=[WorkflowMessage(role="user", content=user_prompt)],
        )
        await self.state_store.create(state)
        logger.info(f"Workflow {state.workflow_id} ({definition.id}) started")

        async with self.locks.hold(state.workflow_id):
            return await self._advance(state.workflow_id)

    async def resume(
        self, workflow_id: str, answer: str, agent_id: str | None = None
    ) -> WorkflowState:
        """Answer a paused workflow's question and continue it."""
        return await self.coordinator.resume(workflow_id, answer, agent_id)

    async def continue_workflow(self, workflow_id: str) -> WorkflowState:
        """Run a RUNNING workflow forward, e.g. after a process restart."""
        async with self.locks.hold(workflow_id):
            return await self._advance(workflow_id)

    def _context_for(self, state: WorkflowState, step: WorkflowStep) -> StepContext:
        conversation = [
            f"{m.role}: {m.content[:CONVERSATION_LINE_CHARS]}"
            for m in state.messages[-CONVERSATION_WINDOW:]
        ]
        return StepContext(
            user_prompt=state.user_prompt,
            action=step.action,
            command=step.command,
            uses=step.uses,
            creates=step.creates,
            step_notes=step.notes,
            step_id=step.id,
            workflow_id=state.workflow_id,
            user_id=state.user_id,
            project_name=state.project_name,
            project_type=state.project_type,
            repository=state.repository,
            chat_mode=step.chat,
            elicitation_answers=state.answers_for(step.id),
            conversation=conversation,
        )

    async def _advance(self, workflow_id: str) -> WorkflowState:
        """Execute steps until the workflow pauses, fails or completes.

        Must be called with the workflow's lock held.
        """
        state = await self.state_store.load(workflow_id)

        while state.status == WorkflowStatus.RUNNING:
            step = state.current
            if step is None:
                state = await self.state_store.save(
                    workflow_id, {"status": WorkflowStatus.COMPLETED}
                )
                logger.info(f"Workflow {workflow_id} completed")
                break

            try:
                agent = self.loader.load_agent(step.agent)
            except Exception as e:
                await self.state_store.save(
                    workflow_id, {"status": WorkflowStatus.FAILED, "error": str(e)}
                )
                raise

            context = self._context_for(state, step)
            result = await self.executor.execute_step(agent, context, self.step_config)

            if result.success:
                await self._write_artifact(workflow_id, step, result.content)
                await self.state_store.add_checkpoint(
                    workflow_id, Checkpoint(step_index=state.current_step, step_id=step.id)
                )
                state = await self.state_store.load(workflow_id)
                message = WorkflowMessage(role="agent", content=result.content, agent_id=agent.id)
                state = await self.state_store.save(
                    workflow_id,
                    {
                        "current_step": state.current_step + 1,
                        "messages": [*state.messages, message],
                    },
                )
                logger.info(f"Workflow {workflow_id}: step {step.id} completed")
            elif result.elicitation_required:
                state = await self.state_store.save(
                    workflow_id,
                    {
                        "status": WorkflowStatus.PAUSED_FOR_ELICITATION,
                        "elicitation": result.elicitation,
                    },
                )
                logger.info(f"Workflow {workflow_id}: step {step.id} waiting for user input")
            else:
                state = await self.state_store.save(
                    workflow_id,
                    {
                        "status": WorkflowStatus.FAILED,
                        "error": result.error,
                        "error_category": result.error_category,
                    },
                )
                logger.error(f"Workflow {workflow_id}: step {step.id} failed: {result.error}")

        return state

    async def _write_artifact(self, workflow_id: str, step: WorkflowStep, content: str) -> None:
        if self.artifact_sink is None or not step.creates:
            return
        try:
            await self.artifact_sink.write(workflow_id, step.creates, content)
        except Exception as e:
            logger.error(f"Workflow {workflow_id}: could not write {step.creates}: {e}")
