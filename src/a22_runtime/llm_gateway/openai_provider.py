"""Chat-completions style provider adapter."""

from __future__ import annotations

from typing import Any

import httpx

from .models import ProviderRequest, ProviderResponse, TokenUsage
from .provider import ModelProvider

AVAILABILITY_TIMEOUT_SECONDS = 5.0


class OpenAIProvider(ModelProvider):
    """Adapter for OpenAI-compatible ``/chat/completions`` backends."""

    name = "openai"
    default_endpoint = "https://api.openai.com/v1"

    def completion_url(self) -> str:
        return f"{self.endpoint}/chat/completions"

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def transform_request(self, request: ProviderRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": request.model,
            "messages": [
                {"role": message.role, "content": message.content}
                for message in request.messages
            ],
            "temperature": 0.7 if request.temperature is None else request.temperature,
            "stream": request.stream or False,
        }
        if request.max_tokens is not None:
            body["max_tokens"] = request.max_tokens
        if request.stop:
            body["stop"] = request.stop
        body.update(request.extra)
        return body

    def transform_response(self, data: dict[str, Any]) -> ProviderResponse:
        choices = data.get("choices") or [{}]
        choice = choices[0]
        usage = data.get("usage")

        return ProviderResponse(
            content=(choice.get("message") or {}).get("content") or "",
            model=data.get("model"),
            usage=TokenUsage(
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=usage.get("completion_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            )
            if usage
            else None,
            finish_reason=choice.get("finish_reason"),
        )

    async def is_available(self) -> bool:
        try:
            response = await self.client.get(
                f"{self.endpoint}/models",
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=AVAILABILITY_TIMEOUT_SECONDS,
            )
        except httpx.HTTPError:
            return False
        return response.is_success
