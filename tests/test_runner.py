"""Tests for the workflow runner."""

import asyncio
from pathlib import Path

import pytest
from conftest import ARCHITECTURE_DOCUMENT, BRIEF_REPLY, PRD_DOCUMENT, FakeProvider, FakeSleep

from agentrelay.engine import (
    AgentNotFoundError,
    ElicitationCoordinator,
    FileArtifactSink,
    InMemoryWorkflowStateStore,
    ResourceLoader,
    StepExecutor,
    WorkflowNotPausedError,
    WorkflowRunner,
)
from agentrelay.engine.prompt import INTERACTIVE_INSTRUCTION
from agentrelay.gateway import ProviderGateway
from agentrelay.models import (
    RetryConfig,
    StepConfig,
    WorkflowDefinition,
    WorkflowStatus,
    WorkflowStep,
)


class Harness:
    """Runner wired to in-memory state, a fake provider and a temp artifact dir."""

    def __init__(
        self,
        provider: FakeProvider,
        artifacts: Path,
        max_retries: int = 3,
        loader: ResourceLoader | None = None,
    ) -> None:
        self.provider = provider
        self.store = InMemoryWorkflowStateStore()
        self.loader = loader or ResourceLoader()
        gateway = ProviderGateway(
            [provider], retry_config=RetryConfig(max_retries=0), sleep=FakeSleep()
        )
        coordinator = ElicitationCoordinator(self.store)
        self.executor = StepExecutor(gateway, self.loader, coordinator, state_store=self.store)
        self.runner = WorkflowRunner(
            self.executor,
            self.loader,
            self.store,
            artifact_sink=FileArtifactSink(artifacts),
            step_config=StepConfig(max_retries=max_retries, timeout=5.0),
        )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider("fake", BRIEF_REPLY, PRD_DOCUMENT, ARCHITECTURE_DOCUMENT)


@pytest.fixture
def harness(provider: FakeProvider, tmp_path: Path) -> Harness:
    return Harness(provider, tmp_path / "artifacts")


class TestWorkflowRunner:
    """Tests for WorkflowRunner."""

    @pytest.mark.asyncio
    async def test_pauses_for_project_brief(self, harness: Harness) -> None:
        """Test the greenfield workflow pauses on its first section."""
        state = await harness.runner.start("greenfield", "A chore tracker", workflow_id="wf-1")

        assert state.status == WorkflowStatus.PAUSED_FOR_ELICITATION
        assert state.current_step == 0
        assert state.elicitation is not None
        assert state.elicitation.section_id == "introduction"
        assert state.elicitation.agent_id == "analyst"
        assert harness.provider.calls == 0

        stored = await harness.store.load("wf-1")
        assert stored.is_paused is True
        assert stored.messages[0].content == "A chore tracker"

    @pytest.mark.asyncio
    async def test_resume_runs_to_completion(self, harness: Harness, tmp_path: Path) -> None:
        """Test answering the question completes every remaining step."""
        await harness.runner.start(
            "greenfield", "A chore tracker", project_name="ChoreChart", workflow_id="wf-1"
        )

        state = await harness.runner.resume("wf-1", "Families sharing weekly chores")

        assert state.status == WorkflowStatus.COMPLETED
        assert state.current_step == 3
        assert state.answers == {"brief:introduction": "Families sharing weekly chores"}
        assert [c.step_id for c in state.checkpoints] == ["brief", "prd", "architecture"]
        assert [o.step_id for o in state.step_outputs] == ["brief", "prd", "architecture"]
        assert state.messages[-1].content == ARCHITECTURE_DOCUMENT
        assert state.messages[-1].agent_id == "architect"

        brief_prompt = harness.provider.prompts[0]
        assert INTERACTIVE_INSTRUCTION in brief_prompt
        assert "User input: Families sharing weekly chores" in brief_prompt

        artifacts = tmp_path / "artifacts" / "wf-1"
        assert (artifacts / "project-brief.md").read_text() == BRIEF_REPLY
        assert (artifacts / "prd.md").read_text() == PRD_DOCUMENT
        assert (artifacts / "architecture.md").read_text() == ARCHITECTURE_DOCUMENT

    @pytest.mark.asyncio
    async def test_resume_completed_workflow(self, harness: Harness) -> None:
        """Test a finished workflow cannot be resumed."""
        await harness.runner.start("greenfield", "A chore tracker", workflow_id="wf-1")
        await harness.runner.resume("wf-1", "Families")

        with pytest.raises(WorkflowNotPausedError):
            await harness.runner.resume("wf-1", "Again")

    @pytest.mark.asyncio
    async def test_concurrent_resumes(self, harness: Harness) -> None:
        """Test only one of two simultaneous answers is accepted."""
        await harness.runner.start("greenfield", "A chore tracker", workflow_id="wf-1")

        results = await asyncio.gather(
            harness.runner.resume("wf-1", "first"),
            harness.runner.resume("wf-1", "second"),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, WorkflowNotPausedError)]
        assert len(errors) == 1
        state = await harness.store.load("wf-1")
        assert state.status == WorkflowStatus.COMPLETED
        assert state.answers["brief:introduction"] in ("first", "second")

    @pytest.mark.asyncio
    async def test_step_failure_marks_workflow_failed(self, tmp_path: Path) -> None:
        """Test a failed step stops the workflow with its error."""
        harness = Harness(FakeProvider("fake", "Too short"), tmp_path, max_retries=2)
        definition = WorkflowDefinition(
            id="prd-only",
            steps=[WorkflowStep(id="prd", agent="pm", command="create-prd", creates="prd.md")],
        )

        state = await harness.runner.start(definition, "A recipe app", workflow_id="wf-2")

        assert state.status == WorkflowStatus.FAILED
        assert state.error_category == "VALIDATION_FAILURE"
        assert state.error is not None
        assert state.error.startswith("Output validation failed")
        assert state.current_step == 0
        assert harness.provider.calls == 2
        assert not (tmp_path / "wf-2" / "prd.md").exists()

    @pytest.mark.asyncio
    async def test_unknown_agent(self, harness: Harness) -> None:
        """Test a missing agent is raised and recorded on the workflow."""
        definition = WorkflowDefinition(
            id="broken", steps=[WorkflowStep(id="s1", agent="ghost", notes="Say hi")]
        )

        with pytest.raises(AgentNotFoundError):
            await harness.runner.start(definition, "hi", workflow_id="wf-3")

        state = await harness.store.load("wf-3")
        assert state.status == WorkflowStatus.FAILED
        assert "ghost" in (state.error or "")

    @pytest.mark.asyncio
    async def test_generated_workflow_id(self, harness: Harness) -> None:
        """Test an id is generated when none is given."""
        state = await harness.runner.start("greenfield", "A chore tracker")
        assert len(state.workflow_id) == 36

    @pytest.mark.asyncio
    async def test_continue_running_workflow(self, harness: Harness) -> None:
        """Test a RUNNING workflow can be driven forward again."""
        definition = WorkflowDefinition(
            id="prd-only",
            steps=[WorkflowStep(id="prd", agent="pm", command="create-prd")],
        )
        harness.provider.script = [PRD_DOCUMENT]
        state = await harness.runner.start(definition, "A recipe app", workflow_id="wf-4")
        assert state.status == WorkflowStatus.COMPLETED

        again = await harness.runner.continue_workflow("wf-4")
        assert again.status == WorkflowStatus.COMPLETED
        assert harness.provider.calls == 1



ELICITING_TEMPLATE = """name: {name}
output:
  format: markdown
sections:
  - id: introduction
    title: Introduction
    instruction: Ask what the {name} is about.
    elicitation:
      required: true
  - id: details
    title: Details
    instruction: Expand on the introduction.
"""

SHORT_DOCUMENT = """# Chore Chart

## Introduction
Families share a weekly list of chores and tick them off together.

## Details
Parents assign chores, kids mark them done, and everyone sees the week at a glance.
"""


@pytest.fixture
def eliciting_loader(resources_dir: Path) -> ResourceLoader:
    """Loader with two templates that both ask for an ``introduction``."""
    for name in ("one", "two"):
        path = resources_dir / "templates" / f"{name}-tmpl.yaml"
        path.write_text(ELICITING_TEMPLATE.format(name=name))
    return ResourceLoader(resources_dir)


class TestStepScopedAnswers:
    """Tests for answers reaching only the step that asked for them."""

    @pytest.mark.asyncio
    async def test_quoted_question_on_eliciting_section(
        self, eliciting_loader: ResourceLoader, tmp_path: Path
    ) -> None:
        """Test an ``Ask user`` note on a template section completes after one answer."""
        harness = Harness(
            FakeProvider("fake", SHORT_DOCUMENT), tmp_path, loader=eliciting_loader
        )
        definition = WorkflowDefinition(
            id="quoted",
            steps=[
                WorkflowStep(
                    id="s1", agent="analyst", uses="one-tmpl", notes='Ask user: "What is the idea?"'
                )
            ],
        )

        state = await harness.runner.start(definition, "A chore tracker", workflow_id="wf-5")
        assert state.status == WorkflowStatus.PAUSED_FOR_ELICITATION
        assert state.elicitation is not None
        assert state.elicitation.section_id == "introduction"
        assert state.elicitation.instruction == "What is the idea?"

        state = await harness.runner.resume("wf-5", "A chore tracker")

        assert state.status == WorkflowStatus.COMPLETED
        assert state.answers == {"s1:introduction": "A chore tracker"}
        assert harness.provider.calls == 1
        assert "User input: A chore tracker" in harness.provider.prompts[0]

    @pytest.mark.asyncio
    async def test_same_section_id_asked_per_step(
        self, eliciting_loader: ResourceLoader, tmp_path: Path
    ) -> None:
        """Test a later step with the same section id asks its own question."""
        harness = Harness(
            FakeProvider("fake", SHORT_DOCUMENT), tmp_path, loader=eliciting_loader
        )
        definition = WorkflowDefinition(
            id="two-steps",
            steps=[
                WorkflowStep(id="s1", agent="analyst", uses="one-tmpl"),
                WorkflowStep(id="s2", agent="analyst", uses="two-tmpl"),
            ],
        )

        await harness.runner.start(definition, "A chore tracker", workflow_id="wf-6")
        state = await harness.runner.resume("wf-6", "Answer for the first step")

        assert state.status == WorkflowStatus.PAUSED_FOR_ELICITATION
        assert state.current_step == 1
        assert state.elicitation is not None
        assert state.elicitation.step_id == "s2"
        assert state.elicitation.section_id == "introduction"

        state = await harness.runner.resume("wf-6", "Answer for the second step")

        assert state.status == WorkflowStatus.COMPLETED
        assert state.answers == {
            "s1:introduction": "Answer for the first step",
            "s2:introduction": "Answer for the second step",
        }
        first, second = harness.provider.prompts
        assert "Answer for the first step" in first
        assert "Answer for the second step" not in first
        assert "Answer for the second step" in second
        assert "Answer for the first step" not in second

    @pytest.mark.asyncio
    async def test_locks_released_after_run(self, harness: Harness) -> None:
        """Test no per-workflow lock outlives start and resume."""
        await harness.runner.start("greenfield", "A chore tracker", workflow_id="wf-7")
        assert len(harness.runner.locks) == 0

        await harness.runner.resume("wf-7", "Families")
        assert len(harness.runner.locks) == 0


class TestFileArtifactSink:
    """Tests for FileArtifactSink."""

    @pytest.mark.asyncio
    async def test_write(self, tmp_path: Path) -> None:
        """Test files land under the workflow's directory."""
        sink = FileArtifactSink(tmp_path)
        location = await sink.write("wf-1", "docs/prd.md", "# PRD")
        assert Path(location) == tmp_path / "wf-1" / "docs" / "prd.md"
        assert Path(location).read_text() == "# PRD"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("filename", ["../escape.md", "/etc/passwd", ""])
    async def test_rejects_unsafe_names(self, tmp_path: Path, filename: str) -> None:
        """Test paths outside the workflow directory are refused."""
        sink = FileArtifactSink(tmp_path)
        with pytest.raises(ValueError):
            await sink.write("wf-1", filename, "x")
