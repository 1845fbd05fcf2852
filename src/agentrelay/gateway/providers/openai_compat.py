"""OpenAI-compatible chat-completions provider over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from agentrelay.gateway.errors import ProviderError

from .base import ProviderAdapter, ProviderResponse, TokenUsage, calculate_cost

logger = logging.getLogger(__name__)

# Model pricing (per 1M tokens)
MODEL_PRICING: dict[str, dict[str, float]] = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
}


class OpenAICompatibleProvider(ProviderAdapter):
    """Completions through any ``/chat/completions`` endpoint."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
        name: str | None = None,
    ) -> None:
        self.model = model
        if name:
            self.name = name
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    async def invoke(self, prompt: str, max_tokens: int, temperature: float) -> ProviderResponse:
        """Send ``prompt`` as a single user message.

        Raises:
            ProviderError: On any HTTP or transport failure.
        """
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            response = await self._client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as e:
            raise ProviderError(message=f"Request timed out: {e}", provider=self.name) from e
        except httpx.TransportError as e:
            raise ProviderError(message=f"Connection failed: {e}", provider=self.name) from e

        if not response.is_success:
            raise ProviderError(
                message=f"HTTP {response.status_code}: {self._error_detail(response)}",
                provider=self.name,
                status_code=response.status_code,
            )

        body = response.json()
        choices = body.get("choices") or [{}]
        choice = choices[0]
        text = (choice.get("message") or {}).get("content") or ""
        usage = body.get("usage") or {}
        prompt_tokens = int(usage.get("prompt_tokens", 0))
        completion_tokens = int(usage.get("completion_tokens", 0))

        return ProviderResponse(
            content=text,
            usage=TokenUsage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
            finish_reason=choice.get("finish_reason"),
            model=body.get("model", self.model),
            cost_usd=calculate_cost(MODEL_PRICING, self.model, prompt_tokens, completion_tokens),
        )

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            error = response.json().get("error")
        except ValueError:
            return response.reason_phrase
        if isinstance(error, dict):
            return str(error.get("message") or error.get("code") or response.reason_phrase)
        return str(error or response.reason_phrase)

    async def close(self) -> None:
        await self._client.aclose()
