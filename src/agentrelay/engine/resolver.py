"""Template resolution for workflow steps.

Resolution runs an ordered list of pure detector functions. Each returns a
template identifier or None. The first identifier that names an existing
template wins. When no detector finds one, the step is checked against the
interactive rules and either enters elicitation, runs from its notes, or is
reported as not found.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from agentrelay.models import Agent, parse_command_reference

from .loader import normalize_id

if TYPE_CHECKING:
    from .context import StepContext

logger = logging.getLogger(__name__)

Detector = Callable[[Agent, "StepContext"], str | None]

ACTION_TEMPLATES: dict[str, str] = {
    "check existing documentation": "check-documentation",
    "classify enhancement scope": "enhancement-classification-tmpl",
    "create prd": "prd-tmpl",
    "create architecture": "architecture-tmpl",
    "create brownfield prd": "brownfield-prd-tmpl",
    "create front-end spec": "front-end-spec-tmpl",
    "create project brief": "project-brief-tmpl",
}

CONTENT_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"check.*documentation.*status", re.IGNORECASE), "check-documentation"),
    (re.compile(r"classify.*enhancement", re.IGNORECASE), "enhancement-classification-tmpl"),
    (re.compile(r"create.*prd", re.IGNORECASE), "prd-tmpl"),
    (re.compile(r"architecture.*document", re.IGNORECASE), "architecture-tmpl"),
    (re.compile(r"brownfield.*prd", re.IGNORECASE), "brownfield-prd-tmpl"),
    (re.compile(r"front.*end.*spec", re.IGNORECASE), "front-end-spec-tmpl"),
    (re.compile(r"project.*brief", re.IGNORECASE), "project-brief-tmpl"),
    (re.compile(r"competitor.*analysis", re.IGNORECASE), "competitor-analysis-tmpl"),
    (re.compile(r"market.*research", re.IGNORECASE), "market-research-tmpl"),
)

CREATES_TEMPLATES: dict[str, str] = {
    "prd.md": "prd-tmpl",
    "architecture.md": "architecture-tmpl",
    "brownfield-prd.md": "brownfield-prd-tmpl",
    "front-end-spec.md": "front-end-spec-tmpl",
    "project-brief.md": "project-brief-tmpl",
    "competitor-analysis.md": "competitor-analysis-tmpl",
    "market-research.md": "market-research-tmpl",
    "fullstack-architecture.md": "fullstack-architecture-tmpl",
}

NOTES_REFERENCES: tuple[re.Pattern[str], ...] = (
    re.compile(r"using\s+([a-zA-Z0-9\-_]+(?:-tmpl)?(?:\.yaml)?)", re.IGNORECASE),
    re.compile(r"with\s+([a-zA-Z0-9\-_]+(?:-tmpl)?(?:\.yaml)?)", re.IGNORECASE),
    re.compile(r"([a-zA-Z0-9\-_]+-tmpl(?:\.yaml)?)"),
)

INTERACTIVE_ACTIONS = frozenset(
    {
        "classify enhancement scope",
        "check existing documentation",
        "elicit",
        "determine if architecture document needed",
        "create project brief",
    }
)

ELICITATION_KEYWORDS: tuple[str, ...] = (
    "ask user",
    "please describe",
    "elicit",
    "user input",
    "question",
    "respond",
    "describe the",
    "can you",
)


def _as_template_id(name: str) -> str:
    name = normalize_id(name)
    return name if name.endswith("-tmpl") else f"{name}-tmpl"


def _notes_text(context: StepContext) -> str:
    return context.step_notes or ""


def detect_explicit_reference(agent: Agent, context: StepContext) -> str | None:
    """The step names a template through ``uses`` or its command."""
    if context.uses:
        return _as_template_id(context.uses)
    if context.command:
        command = agent.find_command(context.command)
        if command and command.uses:
            return normalize_id(command.uses)
        if reference := parse_command_reference(context.command):
            return normalize_id(reference)
    return None


def detect_action_mapping(agent: Agent, context: StepContext) -> str | None:
    """Exact action name lookup."""
    if not context.action:
        return None
    return ACTION_TEMPLATES.get(context.action.strip().lower())


def detect_content_pattern(agent: Agent, context: StepContext) -> str | None:
    """First regex that matches the step notes or action."""
    text = " ".join(filter(None, (context.step_notes, context.action)))
    if not text:
        return None
    for pattern, template_id in CONTENT_PATTERNS:
        if pattern.search(text):
            return template_id
    return None


def detect_creates_mapping(agent: Agent, context: StepContext) -> str | None:
    """Artifact filename lookup."""
    if not context.creates:
        return None
    filename = context.creates.strip().rsplit("/", 1)[-1].lower()
    return CREATES_TEMPLATES.get(filename)


def detect_notes_reference(agent: Agent, context: StepContext) -> str | None:
    """A ``using <name>`` or ``with <name>`` phrase in the step notes."""
    notes = _notes_text(context)
    for pattern in NOTES_REFERENCES:
        if match := pattern.search(notes):
            return _as_template_id(match.group(1))
    return None


DEFAULT_DETECTORS: tuple[Detector, ...] = (
    detect_explicit_reference,
    detect_action_mapping,
    detect_content_pattern,
    detect_creates_mapping,
    detect_notes_reference,
)


def is_interactive_step(agent: Agent, context: StepContext) -> bool:
    """Whether the step is a conversation with the user rather than a document."""
    action = (context.action or "").strip().lower()
    if action and not (context.command or context.uses or context.creates):
        return True
    if action in INTERACTIVE_ACTIONS:
        return True
    if agent.is_interactive:
        return True
    notes = _notes_text(context).lower()
    return any(keyword in notes for keyword in ELICITATION_KEYWORDS)


class ResolutionKind(str, Enum):
    """What a step resolves to."""

    TEMPLATE = "TEMPLATE"  # Generate a document from a template
    ELICITATION = "ELICITATION"  # Ask the user before doing anything
    CONVERSATIONAL = "CONVERSATIONAL"  # Chat reply, no template
    NOTES = "NOTES"  # Follow the step notes, no template
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class Resolution:
    """Result of resolving a step."""

    kind: ResolutionKind
    template_id: str | None = None
    strategy: str | None = None
    rejected: tuple[str, ...] = ()  # Candidates that named no existing template


class TemplateResolver:
    """Chooses the template, or the non-template path, for a step."""

    def __init__(
        self,
        template_exists: Callable[[str], bool],
        detectors: Sequence[Detector] = DEFAULT_DETECTORS,
    ) -> None:
        """Initialize the resolver.

        Args:
            template_exists: Predicate telling whether a template id exists.
            detectors: Detector functions in priority order.
        """
        self._exists = template_exists
        self.detectors = tuple(detectors)

    def resolve(
        self, agent: Agent, context: StepContext, interactive_key: str | None = None
    ) -> Resolution:
        """Resolve a step.

        Args:
            agent: Agent running the step.
            context: Step context.
            interactive_key: Answer key for interactive steps; when the context
                already holds an answer under it the step becomes conversational.

        Returns:
            Resolution describing what to run.
        """
        if context.chat_mode:
            return Resolution(ResolutionKind.CONVERSATIONAL, strategy="chat")

        rejected: list[str] = []
        for detector in self.detectors:
            candidate = detector(agent, context)
            if not candidate:
                continue
            if self._exists(candidate):
                logger.debug(f"Step {context.step_id}: {detector.__name__} -> {candidate}")
                return Resolution(
                    ResolutionKind.TEMPLATE,
                    template_id=candidate,
                    strategy=detector.__name__,
                    rejected=tuple(rejected),
                )
            logger.debug(f"Step {context.step_id}: {detector.__name__} -> {candidate} (missing)")
            rejected.append(candidate)

        if is_interactive_step(agent, context):
            key = interactive_key or context.step_id
            if key and context.answer_for(key):
                return Resolution(
                    ResolutionKind.CONVERSATIONAL, strategy="answered", rejected=tuple(rejected)
                )
            return Resolution(
                ResolutionKind.ELICITATION, strategy="interactive", rejected=tuple(rejected)
            )

        if rejected:
            return Resolution(ResolutionKind.NOT_FOUND, rejected=tuple(rejected))

        if context.step_notes:
            return Resolution(ResolutionKind.NOTES, strategy="notes")

        return Resolution(ResolutionKind.NOT_FOUND)
