"""Model gateway.

Routes completion requests across multiple backend providers with:
- Failover, cost-optimized, latency-optimized and round-robin strategies
- Per-provider token bucket throttling
- Per-provider usage tracking (requests, tokens, errors)
- Credential resolution from the environment or a secrets manager
"""

from __future__ import annotations

from .anthropic_provider import AnthropicProvider
from .cost_models import estimate_cost
from .credentials import CredentialResolver
from .exceptions import (
    AllProvidersFailedError,
    CredentialResolutionError,
    GatewayConfigurationError,
    GatewayError,
    ProviderNotFoundError,
    ProviderRequestError,
)
from .gateway import ModelGateway
from .models import Message, ProviderRequest, ProviderResponse, ProviderUsage, TokenUsage
from .openai_provider import OpenAIProvider
from .provider import ModelProvider, ProviderRegistry
from .rate_limiter import TokenBucketRateLimiter

__all__ = [
    # Gateway
    "ModelGateway",
    "CredentialResolver",
    "TokenBucketRateLimiter",
    "estimate_cost",
    # Providers
    "ModelProvider",
    "ProviderRegistry",
    "OpenAIProvider",
    "AnthropicProvider",
    # Request/Response Models
    "Message",
    "ProviderRequest",
    "ProviderResponse",
    "ProviderUsage",
    "TokenUsage",
    # Exceptions
    "GatewayError",
    "GatewayConfigurationError",
    "CredentialResolutionError",
    "ProviderNotFoundError",
    "ProviderRequestError",
    "AllProvidersFailedError",
]
