"""Agent models for AgentRelay."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

INTERACTIVE_CAPABILITY = "interactive_elicitation"

_TASK_WITH = re.compile(r"use task\s+[\w\-]+\s+with\s+([\w\-]+(?:\.yaml)?)", re.IGNORECASE)
_WITH = re.compile(r"with\s+([\w\-]+(?:\.yaml)?)", re.IGNORECASE)


def parse_command_reference(text: str | None) -> str | None:
    """Extract the template named in compound command text.

    ``"use task create-doc with prd-tmpl.yaml"`` gives ``"prd-tmpl"``.
    Returns None when the text names no template.
    """
    if not text:
        return None
    match = _TASK_WITH.search(text) or _WITH.search(text)
    if not match:
        return None
    return match.group(1).removesuffix(".yaml")


class Persona(BaseModel):
    """How an agent presents itself."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    role: str = Field(default="", description="Role description")
    identity: str = Field(default="", description="Who the agent is")
    style: str = Field(default="", description="Communication style")
    focus: str = Field(default="", description="What the agent concentrates on")
    core_principles: tuple[str, ...] = Field(default=(), description="Guiding principles")


class AgentCommand(BaseModel):
    """One entry of an agent's command table."""

    model_config = ConfigDict(frozen=True)

    name: str
    uses: str | None = Field(default=None, description="Template the command runs")
    description: str = ""
    creates: str | None = Field(default=None, description="Artifact filename produced")

    @model_validator(mode="before")
    @classmethod
    def normalize(cls, data: Any) -> Any:
        """Accept bare strings and single-key ``{command: text}`` mappings."""
        if isinstance(data, str):
            name, _, text = data.partition(":")
            text = text.strip()
            return {
                "name": name.strip(),
                "description": text,
                "uses": parse_command_reference(text),
            }
        if isinstance(data, dict) and "name" not in data and len(data) == 1:
            name, text = next(iter(data.items()))
            text = str(text or "")
            return {"name": str(name), "description": text, "uses": parse_command_reference(text)}
        return data


class Agent(BaseModel):
    """A configured AI persona with a command table."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., pattern=r"^[a-z][a-z0-9_-]*$", description="Agent identifier")
    name: str = Field(default="", description="Display name")
    title: str = Field(default="", description="Job title")
    when_to_use: str = Field(default="", alias="whenToUse")
    persona: Persona = Field(default_factory=Persona)
    capabilities: tuple[str, ...] = Field(default=())
    commands: tuple[AgentCommand, ...] = Field(default=())

    @model_validator(mode="before")
    @classmethod
    def flatten_nested(cls, data: Any) -> Any:
        """Merge the nested ``agent: {id, name, ...}`` layout into the top level."""
        if isinstance(data, dict) and isinstance(data.get("agent"), dict):
            merged = {k: v for k, v in data.items() if k != "agent"}
            for key, value in data["agent"].items():
                merged.setdefault(key, value)
            return merged
        return data

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def is_interactive(self) -> bool:
        return INTERACTIVE_CAPABILITY in self.capabilities

    def find_command(self, name: str) -> AgentCommand | None:
        """Look up a command by name, ignoring a leading ``*``."""
        wanted = name.lstrip("*").strip().lower()
        for command in self.commands:
            if command.name.lower() == wanted:
                return command
        return None
