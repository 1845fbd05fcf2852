"""Jinja2 rendering for template instructions."""

from __future__ import annotations

import logging
import re
from typing import Any

from jinja2 import TemplateSyntaxError, Undefined, UndefinedError
from jinja2.exceptions import SecurityError
from jinja2.sandbox import SandboxedEnvironment

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{.*?\}\}|\{%.*?%\}")


class PreservingUndefined(Undefined):
    """Undefined that renders back as its own ``{{name}}`` placeholder."""

    __slots__ = ()

    def __str__(self) -> str:
        return f"{{{{{self._undefined_name}}}}}" if self._undefined_name else ""

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        return PreservingUndefined(name=f"{self._undefined_name}.{name}")


class TemplateEngine:
    """Sandboxed Jinja2 rendering that leaves unknown placeholders in place."""

    def __init__(self) -> None:
        """Initialize the template engine with sandbox environment."""
        self.env = SandboxedEnvironment(
            undefined=PreservingUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )

    def render(self, text: str, variables: dict[str, Any]) -> str:
        """Render ``text``; text without placeholders is returned as is.

        Malformed syntax, undefined names used in expressions and sandbox
        violations are logged and the text returned unchanged.
        """
        if not self.has_template(text):
            return text
        try:
            return self.env.from_string(text).render(**variables)
        except TemplateSyntaxError as e:
            logger.warning(f"Leaving instruction unrendered, bad placeholder syntax: {e}")
            return text
        except (UndefinedError, SecurityError) as e:
            logger.warning(f"Leaving instruction unrendered, cannot evaluate placeholder: {e}")
            return text

    def has_template(self, value: str) -> bool:
        """Check if a string contains Jinja2 template syntax."""
        return bool(_PLACEHOLDER.search(value))
