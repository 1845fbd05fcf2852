"""Configuration models for AgentRelay."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class RetryConfig(BaseModel):
    """Retry configuration for a single provider call."""

    model_config = ConfigDict(populate_by_name=True)

    max_retries: int = Field(default=2, ge=0, le=10, description="Retries after the first attempt")
    base_delay: float = Field(default=2.0, ge=0.0, le=60.0, description="First delay in seconds")
    max_delay: float = Field(default=30.0, ge=0.0, le=600.0, description="Maximum delay in seconds")
    multiplier: float = Field(default=3.0, ge=1.0, le=10.0, description="Backoff growth factor")


class CircuitBreakerConfig(BaseModel):
    """Circuit breaker thresholds for one provider."""

    failure_threshold: int = Field(default=5, ge=1, description="Failures before opening")
    reset_timeout: float = Field(default=60.0, ge=0.0, description="Seconds before a trial call")
    monitoring_period: float = Field(default=300.0, ge=0.0, description="Reporting window")


class ThrottleConfig(BaseModel):
    """Per-caller request spacing."""

    min_interval: float = Field(default=2.0, ge=0.0, description="Seconds between dispatches")
    retention: float = Field(default=300.0, ge=0.0, description="Idle seconds before eviction")
    sweep_interval: float = Field(default=300.0, gt=0.0, description="Seconds between sweeps")


class UsageLimits(BaseModel):
    """Daily per-user ceilings."""

    daily_requests: int = Field(default=1000, ge=0, description="Requests per UTC day")
    daily_cost: float = Field(default=10.0, ge=0.0, description="Estimated USD per UTC day")


class StepConfig(BaseModel):
    """Execution settings for one workflow step."""

    max_retries: int = Field(default=3, ge=1, le=10, description="Attempts per step")
    timeout: float = Field(default=120.0, gt=0.0, description="Seconds per attempt")
    validation_enabled: bool = Field(default=True, description="Validate generated documents")
    elicitation_enabled: bool = Field(default=True, description="Allow pausing for user input")


def _primary_breaker() -> CircuitBreakerConfig:
    return CircuitBreakerConfig(failure_threshold=5, reset_timeout=60.0)


def _secondary_breaker() -> CircuitBreakerConfig:
    return CircuitBreakerConfig(failure_threshold=3, reset_timeout=30.0)


class Settings(BaseModel):
    """Top-level AgentRelay settings."""

    provider_priority: list[str] = Field(
        default_factory=lambda: ["anthropic", "openai"],
        description="Providers in the order they are tried",
    )
    models: dict[str, str] = Field(
        default_factory=lambda: {
            "anthropic": "claude-sonnet-4-20250514",
            "openai": "gpt-4o-mini",
        },
        description="Model name per provider",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", description="Chat-completions endpoint base"
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Default temperature")
    request_timeout: float = Field(default=120.0, gt=0.0, description="HTTP timeout in seconds")
    resource_dir: Path | None = Field(
        default=None, description="Agents/templates/workflows directory, bundled if unset"
    )
    retry: RetryConfig = Field(default_factory=RetryConfig)
    primary_breaker: CircuitBreakerConfig = Field(default_factory=_primary_breaker)
    secondary_breaker: CircuitBreakerConfig = Field(default_factory=_secondary_breaker)
    throttle: ThrottleConfig = Field(default_factory=ThrottleConfig)
    usage_limits: UsageLimits = Field(default_factory=UsageLimits)
    step: StepConfig = Field(default_factory=StepConfig)

    def breaker_config_for(self, position: int) -> CircuitBreakerConfig:
        """Breaker thresholds for the provider at ``position`` in the priority list."""
        return self.primary_breaker if position == 0 else self.secondary_breaker
