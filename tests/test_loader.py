"""Tests for YAML resource loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from agentrelay.engine import (
    AgentNotFoundError,
    ResourceLoader,
    ResourceParseError,
    TemplateNotFoundError,
    TemplateParseError,
    WorkflowNotFoundError,
)
from agentrelay.engine.loader import normalize_id


class TestNormalizeId:
    """Tests for identifier normalization."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("prd-tmpl", "prd-tmpl"),
            ("prd-tmpl.yaml", "prd-tmpl"),
            ("templates/prd-tmpl.yml", "prd-tmpl"),
            ("  analyst ", "analyst"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        """Test directories and YAML suffixes are stripped."""
        assert normalize_id(raw) == expected


class TestBundledResources:
    """Tests for the resources shipped with the package."""

    def test_lists(self, loader: ResourceLoader) -> None:
        """Test bundled agents, templates and workflows are discoverable."""
        assert loader.list_agents() == ["analyst", "architect", "pm"]
        assert "prd-tmpl" in loader.list_templates()
        assert loader.list_workflows() == ["greenfield"]

    def test_every_resource_parses(self, loader: ResourceLoader) -> None:
        """Test every bundled file validates."""
        for agent_id in loader.list_agents():
            assert loader.load_agent(agent_id).id == agent_id
        for template_id in loader.list_templates():
            assert loader.load_template(template_id).id == template_id
        workflow = loader.load_workflow("greenfield")
        assert [s.id for s in workflow.steps] == ["brief", "prd", "architecture"]

    def test_nested_template_layout(self, loader: ResourceLoader) -> None:
        """Test the nested project brief template."""
        template = loader.load_template("project-brief-tmpl.yaml")
        assert template.is_interactive is True
        assert template.sections[0].elicit is True
        assert template.output.filename == "project-brief.md"


class TestResourceLoader:
    """Tests for error handling and caching."""

    def test_missing_resources(self, loader: ResourceLoader) -> None:
        """Test each resource kind has its own not-found error."""
        with pytest.raises(TemplateNotFoundError, match="Template not found: nope-tmpl"):
            loader.load_template("nope-tmpl")
        with pytest.raises(AgentNotFoundError):
            loader.load_agent("nobody")
        with pytest.raises(WorkflowNotFoundError):
            loader.load_workflow("nothing")

    def test_has_template(self, loader: ResourceLoader) -> None:
        """Test existence checks without parsing."""
        assert loader.has_template("prd-tmpl") is True
        assert loader.has_template("prd-tmpl.yaml") is True
        assert loader.has_template("nope-tmpl") is False

    def test_invalid_yaml(self, resources_dir: Path) -> None:
        """Test YAML syntax errors are parse errors, not not-found errors."""
        (resources_dir / "templates" / "broken-tmpl.yaml").write_text("sections: [unclosed\n")
        loader = ResourceLoader(resources_dir)
        assert loader.has_template("broken-tmpl") is True
        with pytest.raises(TemplateParseError, match="Invalid YAML syntax"):
            loader.load_template("broken-tmpl")

    def test_not_a_mapping(self, resources_dir: Path) -> None:
        """Test a YAML list is rejected."""
        (resources_dir / "templates" / "list-tmpl.yaml").write_text("- a\n- b\n")
        with pytest.raises(TemplateParseError, match="Expected a mapping"):
            ResourceLoader(resources_dir).load_template("list-tmpl")

    def test_schema_errors_are_readable(self, resources_dir: Path) -> None:
        """Test validation errors name the failing field."""
        (resources_dir / "templates" / "bad-tmpl.yaml").write_text(
            "output:\n  format: pdf\nsections: []\n"
        )
        with pytest.raises(TemplateParseError) as exc_info:
            ResourceLoader(resources_dir).load_template("bad-tmpl")
        assert "output -> format" in exc_info.value.message
        assert exc_info.value.errors

    def test_invalid_agent_is_resource_error(self, resources_dir: Path) -> None:
        """Test a broken agent file is a parse error that does not claim to be a template."""
        (resources_dir / "agents" / "broken.yaml").write_text("agent: [unclosed\n")
        with pytest.raises(ResourceParseError, match="Invalid YAML syntax") as exc_info:
            ResourceLoader(resources_dir).load_agent("broken")
        assert not isinstance(exc_info.value, TemplateParseError)

    def test_invalid_workflow_is_resource_error(self, resources_dir: Path) -> None:
        """Test a workflow that fails validation names the workflow model."""
        (resources_dir / "workflows" / "empty.yaml").write_text("name: Empty\nsteps: []\n")
        with pytest.raises(ResourceParseError, match="WorkflowDefinition validation failed"):
            ResourceLoader(resources_dir).load_workflow("empty")

    def test_template_error_is_resource_error(self, resources_dir: Path) -> None:
        """Test template parse errors can be caught as resource parse errors."""
        (resources_dir / "templates" / "list-tmpl.yaml").write_text("- a\n- b\n")
        with pytest.raises(ResourceParseError):
            ResourceLoader(resources_dir).load_template("list-tmpl")

    def test_cache_and_clear(self, resources_dir: Path) -> None:
        """Test loaded resources are cached until the cache is cleared."""
        loader = ResourceLoader(resources_dir)
        first = loader.load_agent("pm")
        assert loader.load_agent("pm") is first

        path = resources_dir / "agents" / "pm.yaml"
        path.write_text(path.read_text().replace("name: Jordan", "name: Sam"))
        assert loader.load_agent("pm").name == "Jordan"

        loader.clear_cache()
        assert loader.load_agent("pm").name == "Sam"
