"""Messages-with-separate-system-field provider adapter."""

from __future__ import annotations

from typing import Any

import httpx

from .models import ProviderRequest, ProviderResponse, TokenUsage
from .provider import ModelProvider

ANTHROPIC_VERSION = "2023-06-01"
AVAILABILITY_CHECK_MODEL = "claude-3-haiku-20240307"
AVAILABILITY_TIMEOUT_SECONDS = 5.0


class AnthropicProvider(ModelProvider):
    """Adapter for the Anthropic ``/v1/messages`` API.

    System messages are lifted out of the message list into the top-level
    ``system`` field; every non-assistant role is sent as ``user``.
    """

    name = "anthropic"
    default_endpoint = "https://api.anthropic.com"

    def completion_url(self) -> str:
        return f"{self.endpoint}/v1/messages"

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def transform_request(self, request: ProviderRequest) -> dict[str, Any]:
        system = next(
            (message.content for message in request.messages if message.role == "system"),
            None,
        )
        body: dict[str, Any] = {
            "model": request.model,
            "messages": [
                {
                    "role": "assistant" if message.role == "assistant" else "user",
                    "content": message.content,
                }
                for message in request.messages
                if message.role != "system"
            ],
            "temperature": 0.7 if request.temperature is None else request.temperature,
            "max_tokens": request.max_tokens or 4096,
            "stream": request.stream or False,
        }
        if system is not None:
            body["system"] = system
        if request.stop:
            body["stop_sequences"] = request.stop
        body.update(request.extra)
        return body

    def transform_response(self, data: dict[str, Any]) -> ProviderResponse:
        content = (data.get("content") or [{}])[0]
        usage = data.get("usage")

        token_usage = None
        if usage:
            input_tokens = usage.get("input_tokens", 0)
            output_tokens = usage.get("output_tokens", 0)
            token_usage = TokenUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            )

        return ProviderResponse(
            content=content.get("text") or "",
            model=data.get("model"),
            usage=token_usage,
            finish_reason=data.get("stop_reason"),
        )

    async def is_available(self) -> bool:
        # No models endpoint; a minimal request proves the key works (400 = auth ok)
        try:
            response = await self.client.post(
                self.completion_url(),
                json={
                    "model": AVAILABILITY_CHECK_MODEL,
                    "messages": [{"role": "user", "content": "test"}],
                    "max_tokens": 1,
                },
                headers=self.headers(),
                timeout=AVAILABILITY_TIMEOUT_SECONDS,
            )
        except httpx.HTTPError:
            return False
        return response.is_success or response.status_code == 400
