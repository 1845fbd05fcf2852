"""Structural validation of generated documents."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from agentrelay.models import Template

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 100

PLACEHOLDER_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\{\{[^}]+\}\}",
        r"Lorem ipsum",
        r"Add Your API Keys",
        r"provide your own API keys",
        r"shared quota.*exhausted",
        r"To continue using AI features",
        r"Get free API keys",
        r"I don't have",
        r"I cannot",
        r"As an AI",
        r"I'm sorry.*unable",
        r"generic placeholder",
        r"replace this.*text",
        r"fill in.*details",
    )
)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one document."""

    is_valid: bool
    errors: tuple[str, ...] = ()


def _section_present(title: str, content: str) -> bool:
    escaped = re.escape(title.strip())
    patterns = (
        rf"^#{{1,6}}\s*{escaped}",
        rf"^#{{1,6}}\s*\d+\.?\s*{escaped}",
        rf"\b{escaped}\b",
    )
    return any(re.search(p, content, re.IGNORECASE | re.MULTILINE) for p in patterns)


class OutputValidator:
    """Checks content against a template's structural requirements.

    Validation is a pure function of its inputs.
    """

    def __init__(self, min_length: int = MIN_CONTENT_LENGTH) -> None:
        self.min_length = min_length

    def validate(self, content: object, template: Template) -> ValidationResult:
        """Validate ``content`` for ``template``.

        Args:
            content: Generated content, expected to be a string.
            template: Template the content was generated from.

        Returns:
            ValidationResult with every problem found.
        """
        if not isinstance(content, str) or not content.strip():
            return ValidationResult(False, ("Content is empty or not text",))

        errors: list[str] = []

        if template.output.format == "json":
            errors.extend(self._check_json(content, template))
        else:
            for title in template.required_sections:
                if not _section_present(title, content):
                    errors.append(f"Missing required section: {title}")

        if len(content.strip()) < self.min_length:
            errors.append(
                f"Content too short ({len(content.strip())} characters, "
                f"minimum {self.min_length})"
            )

        for pattern in PLACEHOLDER_PATTERNS:
            if match := pattern.search(content):
                errors.append(f"Contains placeholder or refusal text: {match.group(0)[:60]!r}")

        if errors:
            logger.debug(f"Validation of {template.id} failed: {errors}")
        return ValidationResult(not errors, tuple(errors))

    def _check_json(self, content: str, template: Template) -> list[str]:
        text = content.strip()
        # Models often wrap JSON in a fenced block
        fenced = re.match(r"^```(?:json)?\s*(.*?)\s*```$", text, re.DOTALL)
        if fenced:
            text = fenced.group(1)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            return [f"Content is not valid JSON: {e.msg}"]
        if not isinstance(data, dict):
            return ["JSON output must be an object"]
        missing = [key for key in template.output.structure if key not in data]
        return [f"Missing JSON field: {key}" for key in missing]
