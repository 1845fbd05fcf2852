"""Template models for AgentRelay."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TemplateSection(BaseModel):
    """One section of a document template."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    instruction: str = ""
    elicit: bool = Field(default=False, description="Section needs user input first")
    required: bool = Field(default=True, description="Section must appear in output")
    format: str | None = Field(default=None, description="Output hint, e.g. bullet-list")
    examples: tuple[str, ...] = Field(default=())
    sections: tuple[TemplateSection, ...] = Field(default=())

    @model_validator(mode="before")
    @classmethod
    def normalize(cls, data: Any) -> Any:
        """Accept ``elicitation: {required: true}`` and ``type`` as format."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        elicitation = data.pop("elicitation", None)
        if isinstance(elicitation, dict) and elicitation.get("required"):
            data["elicit"] = True
        if "type" in data and "format" not in data:
            data["format"] = data.pop("type")
        data.setdefault("title", str(data.get("id", "")).replace("-", " ").title())
        return data

    @property
    def label(self) -> str:
        return self.title or self.id


class TemplateOutput(BaseModel):
    """Output requirements for a template."""

    model_config = ConfigDict(frozen=True)

    format: Literal["markdown", "json"] = "markdown"
    filename: str | None = None
    title: str | None = None
    structure: tuple[str, ...] = Field(default=(), description="Required JSON keys")


class Template(BaseModel):
    """An ordered set of sections an agent's output must satisfy."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Template identifier, e.g. prd-tmpl")
    name: str = ""
    version: str = "1.0"
    mode: Literal["document", "interactive"] = "document"
    output: TemplateOutput = Field(default_factory=TemplateOutput)
    sections: tuple[TemplateSection, ...] = Field(default=())
    required_sections: tuple[str, ...] = Field(default=())
    quality: tuple[str, ...] = Field(default=(), description="Quality standards")

    @model_validator(mode="before")
    @classmethod
    def flatten_nested(cls, data: Any) -> Any:
        """Merge the nested ``template:`` / ``workflow:`` layout."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        meta = data.pop("template", None)
        if isinstance(meta, dict):
            for key in ("id", "name", "version", "output", "sections", "quality"):
                if key in meta:
                    data.setdefault(key, meta[key])
        workflow = data.pop("workflow", None)
        if isinstance(workflow, dict) and "mode" in workflow:
            data.setdefault("mode", workflow["mode"])
        if "version" in data:
            data["version"] = str(data["version"])
        return data

    @model_validator(mode="after")
    def derive_required_sections(self) -> Template:
        """Default the required list to the titles of required top-level sections."""
        if not self.required_sections:
            titles = tuple(s.label for s in self.sections if s.required)
            object.__setattr__(self, "required_sections", titles)
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def is_interactive(self) -> bool:
        return self.mode == "interactive"

    def iter_sections(self) -> Iterator[TemplateSection]:
        """Walk all sections depth-first in document order."""

        def walk(sections: tuple[TemplateSection, ...]) -> Iterator[TemplateSection]:
            for section in sections:
                yield section
                yield from walk(section.sections)

        yield from walk(self.sections)
