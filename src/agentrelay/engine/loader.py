"""YAML resource loader for agents, templates and workflows."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from agentrelay.models import Agent, Template, WorkflowDefinition

from .errors import (
    AgentNotFoundError,
    ResourceNotFoundError,
    ResourceParseError,
    TemplateNotFoundError,
    TemplateParseError,
    WorkflowNotFoundError,
)

logger = logging.getLogger(__name__)

BUNDLED_RESOURCES = Path(__file__).resolve().parent.parent / "resources"

M = TypeVar("M", bound=BaseModel)


def normalize_id(identifier: str) -> str:
    """Strip directory parts and a ``.yaml``/``.yml`` suffix."""
    name = identifier.strip().rsplit("/", 1)[-1]
    for suffix in (".yaml", ".yml"):
        name = name.removesuffix(suffix)
    return name


class ResourceLoader:
    """Loads and caches resources from ``agents/``, ``templates/`` and ``workflows/``.

    A missing file raises the matching ``*NotFoundError``; a file that exists
    but cannot be parsed raises ``ResourceParseError`` (``TemplateParseError``
    for templates).
    """

    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root) if root else BUNDLED_RESOURCES
        self._agents: dict[str, Agent] = {}
        self._templates: dict[str, Template] = {}
        self._workflows: dict[str, WorkflowDefinition] = {}

    def _path(self, kind: str, identifier: str) -> Path | None:
        for suffix in (".yaml", ".yml"):
            path = self.root / kind / f"{identifier}{suffix}"
            if path.is_file():
                return path
        return None

    def _read(self, path: Path, parse_error: type[ResourceParseError]) -> dict[str, Any]:
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise parse_error(f"Invalid YAML syntax in {path}: {e}") from e

        if not isinstance(data, dict):
            raise parse_error(f"Expected a mapping in {path}")
        return data

    def _validate(
        self,
        model: type[M],
        data: dict[str, Any],
        source: str,
        parse_error: type[ResourceParseError],
    ) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            # Convert Pydantic errors to more readable format
            errors = []
            for error in e.errors():
                loc = " -> ".join(str(part) for part in error["loc"])
                errors.append({"location": loc, "message": error["msg"], "type": error["type"]})

            error_messages = [f"  {err['location']}: {err['message']}" for err in errors]
            msg = f"{model.__name__} validation failed ({source}):\n" + "\n".join(error_messages)
            raise parse_error(msg, errors=errors) from e

    def _load(
        self,
        kind: str,
        identifier: str,
        model: type[M],
        cache: dict[str, M],
        not_found: type[ResourceNotFoundError],
        parse_error: type[ResourceParseError] = ResourceParseError,
    ) -> M:
        key = normalize_id(identifier)
        if key in cache:
            return cache[key]

        path = self._path(kind, key)
        if path is None:
            raise not_found(key)

        data = self._read(path, parse_error)
        data.setdefault("id", key)
        if isinstance(data.get("template"), dict):
            data["template"].setdefault("id", key)
        resource = self._validate(model, data, str(path), parse_error)
        cache[key] = resource
        logger.debug(f"Loaded {kind[:-1]} {key} from {path}")
        return resource

    def load_agent(self, identifier: str) -> Agent:
        """Load an agent by id.

        Raises:
            AgentNotFoundError: If there is no such agent file.
            ResourceParseError: If the file is invalid.
        """
        return self._load("agents", identifier, Agent, self._agents, AgentNotFoundError)

    def load_template(self, identifier: str) -> Template:
        """Load a template by id (``prd-tmpl`` or ``prd-tmpl.yaml``).

        Raises:
            TemplateNotFoundError: If there is no such template file.
            TemplateParseError: If the file is invalid.
        """
        return self._load(
            "templates",
            identifier,
            Template,
            self._templates,
            TemplateNotFoundError,
            TemplateParseError,
        )

    def load_workflow(self, identifier: str) -> WorkflowDefinition:
        """Load a workflow definition by id.

        Raises:
            WorkflowNotFoundError: If there is no such workflow file.
            ResourceParseError: If the file is invalid.
        """
        return self._load(
            "workflows", identifier, WorkflowDefinition, self._workflows, WorkflowNotFoundError
        )

    def has_template(self, identifier: str) -> bool:
        """Whether a template file exists, without parsing it."""
        key = normalize_id(identifier)
        return key in self._templates or self._path("templates", key) is not None

    def _list(self, kind: str) -> list[str]:
        directory = self.root / kind
        if not directory.is_dir():
            return []
        return sorted({p.stem for p in directory.iterdir() if p.suffix in (".yaml", ".yml")})

    def list_agents(self) -> list[str]:
        return self._list("agents")

    def list_templates(self) -> list[str]:
        return self._list("templates")

    def list_workflows(self) -> list[str]:
        return self._list("workflows")

    def clear_cache(self) -> None:
        """Forget loaded resources so the next load re-reads files."""
        self._agents.clear()
        self._templates.clear()
        self._workflows.clear()
