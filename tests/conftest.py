"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from agentrelay.engine import ResourceLoader
from agentrelay.engine.loader import BUNDLED_RESOURCES
from agentrelay.gateway.providers import ProviderAdapter, ProviderResponse, TokenUsage
from agentrelay.models import Agent

PRD_DOCUMENT = """# Recipe Share Product Requirements Document

## Goals and Background Context
- Let home cooks publish recipes and find dishes by ingredient.
- Grow to ten thousand weekly active cooks within a year.

## Requirements
### Functional
1. FR1: Cooks can publish a recipe with ingredients, steps and photos.
2. FR2: Visitors can search recipes by ingredient.
### Non Functional
1. NFR1: Search results load within 300 ms for the median query.

## User Stories
- As a cook, I want to publish a recipe so that friends can try it.
- As a visitor, I want to search by ingredient so that I can use what is in my fridge.
"""

ARCHITECTURE_DOCUMENT = """# Recipe Share Architecture

## Overview
A Python web service with a PostgreSQL database behind a CDN for photos.

## Tech Stack
- FastAPI, SQLAlchemy, PostgreSQL, S3 for images.

## Components
- Recipe API, search indexer, image pipeline.

## Data Model
- Recipe, Ingredient, Cook, with a many-to-many recipe_ingredients table.

## Deployment
- Containers on a managed Kubernetes cluster, one region to start.
"""

BRIEF_REPLY = "Thanks! Who will use the chore tracker most: parents or kids?"


class FakeProvider(ProviderAdapter):
    """Provider that plays back a script.

    Each script item is returned (strings and ProviderResponse) or raised
    (exceptions) in order; the last item repeats forever.
    """

    def __init__(self, name: str, *script: str | BaseException | ProviderResponse) -> None:
        self.name = name
        self.script = list(script) or ["ok"]
        self.prompts: list[str] = []
        self.closed = False

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def invoke(self, prompt: str, max_tokens: int, temperature: float) -> ProviderResponse:
        self.prompts.append(prompt)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, ProviderResponse):
            return item
        return ProviderResponse(
            content=item,
            usage=TokenUsage(prompt_tokens=10, completion_tokens=20),
            model="fake-model",
            cost_usd=0.01,
        )

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Monotonic clock under test control."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Records requested delays and advances a FakeClock instead of sleeping."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.delays: list[float] = []
        self.clock = clock

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.clock is not None:
            self.clock.advance(delay)


@pytest.fixture
def clock() -> FakeClock:
    """A controllable monotonic clock."""
    return FakeClock()


@pytest.fixture
def fake_sleep(clock: FakeClock) -> FakeSleep:
    """A sleep that advances the fake clock."""
    return FakeSleep(clock)


@pytest.fixture
def loader() -> ResourceLoader:
    """Loader over the bundled agents, templates and workflows."""
    return ResourceLoader()


@pytest.fixture
def resources_dir(tmp_path: Path) -> Path:
    """A writable copy of the bundled resources."""
    target = tmp_path / "resources"
    shutil.copytree(BUNDLED_RESOURCES, target)
    return target


@pytest.fixture
def analyst(loader: ResourceLoader) -> Agent:
    return loader.load_agent("analyst")


@pytest.fixture
def pm(loader: ResourceLoader) -> Agent:
    return loader.load_agent("pm")


@pytest.fixture
def architect(loader: ResourceLoader) -> Agent:
    return loader.load_agent("architect")
