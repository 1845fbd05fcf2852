"""Unified retry loop for one workflow step."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from agentrelay.gateway import (
    AgentRelayError,
    CallOptions,
    GatewayResponse,
    UsageLimitError,
    describe_failure,
)
from agentrelay.models import ElicitationRequest, StepConfig, StepOutput

from .context import ExecutionResult
from .elicitation import ElicitationCoordinator
from .prompt import PromptAssembler
from .resolver import Resolution, ResolutionKind, TemplateResolver
from .validator import OutputValidator

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from agentrelay.models import Agent, Template

    from .context import StepContext
    from .loader import ResourceLoader
    from .state import WorkflowStateStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"

# Complexity levels passed to the gateway token budget
DOCUMENT_COMPLEXITY = 3
CONVERSATION_COMPLEXITY = 1
NOTES_COMPLEXITY = 2


class Completer(Protocol):
    """Anything with the gateway call signature (gateway or AI service)."""

    async def call(self, prompt: str, options: CallOptions | None = None) -> GatewayResponse: ...


class StepExecutor:
    """Runs one step: resolve, then attempt/validate with retries.

    Expected failures (timeouts, provider exhaustion, invalid output) come
    back as ``ExecutionResult`` values. Only programming errors such as an
    unparseable template raise.
    """

    def __init__(
        self,
        gateway: Completer,
        loader: ResourceLoader,
        coordinator: ElicitationCoordinator,
        state_store: WorkflowStateStore | None = None,
        assembler: PromptAssembler | None = None,
        validator: OutputValidator | None = None,
        resolver: TemplateResolver | None = None,
        config: StepConfig | None = None,
    ) -> None:
        self.gateway = gateway
        self.loader = loader
        self.coordinator = coordinator
        self.state_store = state_store
        self.assembler = assembler or PromptAssembler()
        self.validator = validator or OutputValidator()
        self.resolver = resolver or TemplateResolver(loader.has_template)
        self.config = config or StepConfig()
        self._orphans: set[asyncio.Task[Any]] = set()

    async def execute_step(
        self,
        agent: Agent,
        context: StepContext,
        config: StepConfig | None = None,
    ) -> ExecutionResult:
        """Execute a step.

        Args:
            agent: Agent running the step.
            context: Step context; feedback fields are updated between attempts.
            config: Retry count, per-attempt timeout and switches.

        Returns:
            ExecutionResult for the step.
        """
        config = config or self.config
        resolution = self.resolver.resolve(agent, context)
        logger.debug(f"Step {context.step_id} resolved to {resolution}")

        if resolution.kind == ResolutionKind.NOT_FOUND:
            names = ", ".join(resolution.rejected) or "none matched"
            logger.error(f"Step {context.step_id}: no template found ({names})")
            return ExecutionResult.failed(
                f"No template found for step {context.step_id or '?'} ({names})",
                attempts=0,
                category=TEMPLATE_NOT_FOUND,
            )

        if resolution.kind == ResolutionKind.ELICITATION and config.elicitation_enabled:
            request = await self.coordinator.prepare(agent, context)
            return ExecutionResult.needs_input(request)

        template = (
            self.loader.load_template(resolution.template_id)
            if resolution.kind == ResolutionKind.TEMPLATE and resolution.template_id
            else None
        )
        validate = (
            config.validation_enabled
            and template is not None
            and not template.is_interactive
            and not context.chat_mode
        )

        last_error: str | None = None
        last_category: str | None = None
        timed_out = False

        for attempt in range(1, config.max_retries + 1):
            logger.debug(f"Step {context.step_id}: attempt {attempt}/{config.max_retries}")
            try:
                outcome = await self._race(
                    self._attempt(agent, template, resolution, context, config), config.timeout
                )
            except TimeoutError:
                timed_out = True
                last_error = f"Attempt timed out after {config.timeout:g}s"
                last_category = "TIMEOUT"
                context.attempt_feedback = (
                    f"Previous attempt timed out after {config.timeout:g}s. Be more concise."
                )
                logger.warning(f"Step {context.step_id}: attempt {attempt} timed out")
                continue
            except UsageLimitError as e:
                logger.error(f"Step {context.step_id}: {e}")
                return ExecutionResult.failed(
                    f"{describe_failure(e.category)} ({e.message})",
                    attempts=attempt,
                    category=e.category.value,
                )
            except AgentRelayError as e:
                timed_out = False
                last_error = f"{describe_failure(e.category)} ({e.message})"
                last_category = e.category.value
                context.attempt_feedback = f"Previous attempt failed: {last_error}"
                logger.warning(f"Step {context.step_id}: attempt {attempt} failed: {e}")
                continue

            if isinstance(outcome, ElicitationRequest):
                return ExecutionResult.needs_input(outcome, attempts=attempt)

            if validate and template is not None:
                validation = self.validator.validate(outcome.content, template)
                if not validation.is_valid:
                    errors = list(validation.errors)
                    if attempt < config.max_retries:
                        logger.info(
                            f"Step {context.step_id}: attempt {attempt} failed validation, retrying"
                        )
                        context.validation_feedback = errors
                        continue
                    logger.error(f"Step {context.step_id}: validation failed on final attempt")
                    return ExecutionResult.invalid(
                        errors, attempts=attempt, content=outcome.content
                    )

            artifacts = (context.creates,) if context.creates else ()
            result = ExecutionResult.succeeded(
                outcome.content,
                attempts=attempt,
                provider=outcome.provider,
                usage=outcome.usage.to_dict(),
                artifacts=artifacts,
            )
            await self._record(agent, context, result)
            return result

        logger.error(f"Step {context.step_id}: all {config.max_retries} attempts failed")
        return ExecutionResult.failed(
            last_error or "All retry attempts failed",
            attempts=config.max_retries,
            category=last_category,
            timed_out=timed_out,
        )

    async def _attempt(
        self,
        agent: Agent,
        template: Template | None,
        resolution: Resolution,
        context: StepContext,
        config: StepConfig,
    ) -> GatewayResponse | ElicitationRequest:
        if template is not None:
            if config.elicitation_enabled:
                section = self.coordinator.detect_missing_input(template, context)
                if section is not None:
                    return await self.coordinator.prepare(agent, context, section)
            prompt = self.assembler.build_document_prompt(agent, template, context)
            complexity = CONVERSATION_COMPLEXITY if template.is_interactive else DOCUMENT_COMPLEXITY
        elif resolution.kind == ResolutionKind.CONVERSATIONAL or not context.step_notes:
            prompt = self.assembler.build_chat_prompt(agent, context)
            complexity = CONVERSATION_COMPLEXITY
        else:
            prompt = self.assembler.build_notes_prompt(agent, context)
            complexity = NOTES_COMPLEXITY

        options = CallOptions(complexity=complexity, user_id=context.user_id)
        return await self.gateway.call(prompt, options)

    async def _race(self, coro: Coroutine[Any, Any, T], timeout: float) -> T:
        """Await ``coro`` for at most ``timeout`` seconds without cancelling it.

        On timeout the attempt keeps running in the background and its
        result is discarded.
        """
        task = asyncio.ensure_future(coro)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except TimeoutError:
            self._orphans.add(task)
            task.add_done_callback(self._discard_orphan)
            raise

    def _discard_orphan(self, task: asyncio.Task[Any]) -> None:
        self._orphans.discard(task)
        if not task.cancelled() and (exc := task.exception()) is not None:
            logger.debug(f"Timed-out attempt finished with error: {exc}")

    async def _record(self, agent: Agent, context: StepContext, result: ExecutionResult) -> None:
        if self.state_store is None or not context.workflow_id:
            return
        await self.state_store.record_step_output(
            context.workflow_id,
            StepOutput(
                step_id=context.step_id or "step",
                agent_id=agent.id,
                content=result.content,
                provider=result.provider,
                attempts=result.attempts,
                artifacts=list(result.artifacts),
                usage=dict(result.usage),
            ),
        )

    async def close(self) -> None:
        """Cancel attempts still running after their timeout."""
        pending = list(self._orphans)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._orphans.clear()
