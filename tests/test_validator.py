"""Tests for output validation."""

from __future__ import annotations

import json

import pytest
from conftest import PRD_DOCUMENT

from agentrelay.engine import OutputValidator, ResourceLoader
from agentrelay.models import Template


@pytest.fixture
def validator() -> OutputValidator:
    return OutputValidator()


@pytest.fixture
def prd(loader: ResourceLoader) -> Template:
    return loader.load_template("prd-tmpl")


class TestOutputValidator:
    """Tests for OutputValidator."""

    def test_valid_document(self, validator: OutputValidator, prd: Template) -> None:
        """Test a complete document passes."""
        result = validator.validate(PRD_DOCUMENT, prd)
        assert result.is_valid is True
        assert result.errors == ()

    def test_missing_section(self, validator: OutputValidator, prd: Template) -> None:
        """Test each missing required section is reported."""
        content = PRD_DOCUMENT.split("## User Stories")[0]
        result = validator.validate(content, prd)
        assert result.is_valid is False
        assert "Missing required section: User Stories" in result.errors

    def test_numbered_headings_accepted(self, validator: OutputValidator) -> None:
        """Test ``## 1. Title`` headings count as the section."""
        template = Template.model_validate(
            {"id": "t", "sections": [{"id": "overview", "title": "Overview"}]}
        )
        content = "## 1. Overview\n" + "The system stores recipes and serves them. " * 5
        assert validator.validate(content, template).is_valid is True

    def test_optional_sections_not_required(
        self, validator: OutputValidator, prd: Template
    ) -> None:
        """Test optional sections may be left out."""
        assert "Out of Scope" not in prd.required_sections
        assert "Out of Scope" not in PRD_DOCUMENT
        assert validator.validate(PRD_DOCUMENT, prd).is_valid is True

    def test_too_short(self, validator: OutputValidator) -> None:
        """Test the minimum length."""
        template = Template.model_validate({"id": "t", "sections": [{"id": "goals"}]})
        result = validator.validate("## Goals\nShip it.", template)
        assert result.is_valid is False
        assert any(e.startswith("Content too short") for e in result.errors)

    @pytest.mark.parametrize(
        "phrase",
        [
            "Lorem ipsum dolor sit amet.",
            "As an AI language model I will try.",
            "I cannot produce that document.",
            "Owner: {{owner_name}}",
        ],
    )
    def test_placeholder_and_refusal_text(
        self, validator: OutputValidator, prd: Template, phrase: str
    ) -> None:
        """Test denylisted phrases fail validation."""
        result = validator.validate(PRD_DOCUMENT + "\n" + phrase, prd)
        assert result.is_valid is False
        assert any("placeholder or refusal" in e for e in result.errors)

    @pytest.mark.parametrize("content", ["", "   ", None, 42])
    def test_empty_or_not_text(
        self, validator: OutputValidator, prd: Template, content: object
    ) -> None:
        """Test empty and non-string content."""
        result = validator.validate(content, prd)
        assert result.is_valid is False
        assert result.errors == ("Content is empty or not text",)

    def test_idempotent(self, validator: OutputValidator, prd: Template) -> None:
        """Test validating twice gives the same result."""
        content = PRD_DOCUMENT.replace("## Requirements", "## Needs")
        assert validator.validate(content, prd) == validator.validate(content, prd)


class TestJsonValidation:
    """Tests for JSON-format templates."""

    @pytest.fixture
    def template(self) -> Template:
        return Template.model_validate(
            {
                "id": "scope-tmpl",
                "output": {"format": "json", "structure": ["scope", "rationale"]},
                "sections": [{"id": "scope"}],
            }
        )

    def test_valid_json(self, validator: OutputValidator, template: Template) -> None:
        """Test a fenced JSON object with every field passes."""
        body = {"scope": "major", "rationale": "Touches billing, auth and the public API " * 3}
        content = f"```json\n{json.dumps(body)}\n```"
        assert validator.validate(content, template).is_valid is True

    def test_missing_field(self, validator: OutputValidator, template: Template) -> None:
        """Test missing JSON fields are reported."""
        content = json.dumps({"scope": "minor", "notes": "x" * 120})
        result = validator.validate(content, template)
        assert "Missing JSON field: rationale" in result.errors

    def test_invalid_json(self, validator: OutputValidator, template: Template) -> None:
        """Test malformed JSON is reported."""
        result = validator.validate("{not json" + " " * 120 + "}", template)
        assert any(e.startswith("Content is not valid JSON") for e in result.errors)
