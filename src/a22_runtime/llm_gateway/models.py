"""Model gateway data models.

Universal request/response shapes shared by every provider adapter.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Message(BaseModel):
    role: str
    content: str


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ProviderRequest(BaseModel):
    """Completion request in the provider-independent shape."""

    messages: list[Message] = Field(
        description="Conversation messages",
    )
    model: str = Field(
        description="Target model name",
    )
    temperature: float | None = Field(
        default=None,
        description="Sampling temperature",
    )
    max_tokens: int | None = Field(
        default=None,
        description="Maximum tokens to generate",
    )
    stop: list[str] | None = Field(
        default=None,
        description="Stop sequences",
    )
    stream: bool | None = Field(
        default=None,
        description="Whether to stream the response",
    )
    extra: dict[str, Any] = Field(
        default_factory=dict,
        description="Provider-specific parameters passed through unchanged",
    )

    @classmethod
    def build(
        cls,
        model: str,
        messages: list[Message] | list[dict[str, Any]],
        params: dict[str, Any] | None = None,
    ) -> ProviderRequest:
        """Build a request, splitting known parameters from provider extras."""
        params = dict(params or {})
        known = {
            key: params.pop(key)
            for key in ("temperature", "max_tokens", "stop", "stream")
            if key in params
        }
        return cls(model=model, messages=messages, extra=params, **known)


class ProviderResponse(BaseModel):
    """Completion response in the provider-independent shape."""

    content: str = Field(
        default="",
        description="Generated text",
    )
    model: str | None = Field(
        default=None,
        description="Model that generated the response",
    )
    usage: TokenUsage | None = Field(
        default=None,
        description="Token usage statistics",
    )
    finish_reason: str | None = Field(
        default=None,
        description="Reason the backend stopped generating",
    )


class ProviderUsage(BaseModel):
    """Per-provider usage counters."""

    requests: int = 0
    tokens: int = 0
    errors: int = 0
