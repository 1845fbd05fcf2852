"""Anthropic messages API provider."""

from __future__ import annotations

import logging

import anthropic

from agentrelay.gateway.errors import ProviderError

from .base import ProviderAdapter, ProviderResponse, TokenUsage, calculate_cost

logger = logging.getLogger(__name__)

# Model pricing (per 1M tokens)
MODEL_PRICING: dict[str, dict[str, float]] = {
    "claude-3-5-haiku-20241022": {"input": 0.80, "output": 4.00},
    "claude-3-5-sonnet-20241022": {"input": 3.00, "output": 15.00},
    "claude-3-7-sonnet-20250219": {"input": 3.00, "output": 15.00},
    "claude-sonnet-4-20250514": {"input": 3.00, "output": 15.00},
    "claude-opus-4-20250514": {"input": 15.00, "output": 75.00},
}


class AnthropicProvider(ProviderAdapter):
    """Completions through ``anthropic.AsyncAnthropic``."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        timeout: float = 120.0,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        self.model = model
        self._client = client or anthropic.AsyncAnthropic(
            api_key=api_key, timeout=timeout, max_retries=0
        )

    async def invoke(self, prompt: str, max_tokens: int, temperature: float) -> ProviderResponse:
        """Send ``prompt`` as a single user message.

        Raises:
            ProviderError: On any API failure, with the HTTP status if known.
        """
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APITimeoutError as e:
            raise ProviderError(message=f"Request timed out: {e}", provider=self.name) from e
        except anthropic.APIConnectionError as e:
            raise ProviderError(message=f"API connection error: {e}", provider=self.name) from e
        except anthropic.APIStatusError as e:
            raise ProviderError(
                message=f"API error: {e.message}", provider=self.name, status_code=e.status_code
            ) from e

        text = "".join(block.text for block in response.content if block.type == "text")
        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens

        return ProviderResponse(
            content=text,
            usage=TokenUsage(prompt_tokens=input_tokens, completion_tokens=output_tokens),
            finish_reason=response.stop_reason,
            model=response.model,
            cost_usd=calculate_cost(MODEL_PRICING, self.model, input_tokens, output_tokens),
        )

    async def close(self) -> None:
        await self._client.close()
