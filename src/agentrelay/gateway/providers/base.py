"""Provider adapter contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

# Completion reasons that mean the provider refused to answer
POLICY_FINISH_REASONS = frozenset({"content_filter", "safety", "recitation", "refusal", "blocked"})

# Per 1M tokens
DEFAULT_PRICING = {"input": 3.00, "output": 15.00}


@dataclass
class TokenUsage:
    """Token counts for one call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class ProviderResponse:
    """What a provider returned for one prompt."""

    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: str | None = None
    model: str | None = None
    cost_usd: float = 0.0

    @property
    def policy_rejected(self) -> bool:
        return (self.finish_reason or "").lower() in POLICY_FINISH_REASONS


def calculate_cost(
    pricing: dict[str, dict[str, float]],
    model: str,
    input_tokens: int,
    output_tokens: int,
) -> float:
    """Calculate API cost in USD from a per-1M-token pricing table.

    Unknown models fall back to a prefix match, then to ``DEFAULT_PRICING``.
    """
    price = pricing.get(model)

    if not price:
        # Try prefix matching for versioned models
        for model_name, candidate in pricing.items():
            if model.startswith(model_name.rsplit("-", 1)[0]):
                price = candidate
                break

    if not price:
        price = DEFAULT_PRICING

    input_cost = (input_tokens / 1_000_000) * price["input"]
    output_cost = (output_tokens / 1_000_000) * price["output"]
    return round(input_cost + output_cost, 6)


class ProviderAdapter(ABC):
    """Wraps one vendor's completion API.

    Implementations raise ``ProviderError`` carrying the HTTP status (when
    there is one) so failures can be classified.
    """

    name: str

    @abstractmethod
    async def invoke(self, prompt: str, max_tokens: int, temperature: float) -> ProviderResponse:
        """Send ``prompt`` and return the completion."""

    async def close(self) -> None:  # noqa: B027
        """Release network resources."""
