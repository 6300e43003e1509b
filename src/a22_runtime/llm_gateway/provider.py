"""Provider adapter interface and registry.

Each adapter maps the universal request/response shape to one backend's wire
format over a shared ``httpx.AsyncClient``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from .exceptions import GatewayConfigurationError, ProviderRequestError
from .models import ProviderRequest, ProviderResponse

logger = structlog.get_logger(__name__)


class ModelProvider(ABC):
    """Base class for HTTP model provider adapters."""

    name: str = "provider"
    type: str = "llm"
    default_endpoint: str = ""

    def __init__(
        self,
        api_key: str,
        endpoint: str | None = None,
        timeout_ms: int = 30000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the adapter.

        Args:
            api_key: Resolved credential for the backend
            endpoint: Backend base URL (defaults to the public endpoint)
            timeout_ms: Request timeout in milliseconds
            client: Optional HTTP client (created lazily when omitted)
        """
        self.api_key = api_key
        self.endpoint = (endpoint or self.default_endpoint).rstrip("/")
        self.timeout_ms = timeout_ms
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_ms / 1000)
        return self._client

    async def complete(self, request: ProviderRequest) -> ProviderResponse:
        """Send a completion request and map the backend response.

        Raises:
            ProviderRequestError: If the backend answers with a non-2xx status
            httpx.HTTPError: If the request cannot be delivered
        """
        response = await self.client.post(
            self.completion_url(),
            json=self.transform_request(request),
            headers=self.headers(),
        )
        if response.is_error:
            raise ProviderRequestError(
                f"{self.name} API error: {response.status_code} - {response.text}",
                provider=self.name,
                status_code=response.status_code,
            )
        return self.transform_response(response.json())

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @abstractmethod
    def completion_url(self) -> str:
        """Return the completion endpoint URL."""

    @abstractmethod
    def headers(self) -> dict[str, str]:
        """Return authentication and content headers."""

    @abstractmethod
    def transform_request(self, request: ProviderRequest) -> dict[str, Any]:
        """Map the universal request to the backend body."""

    @abstractmethod
    def transform_response(self, data: dict[str, Any]) -> ProviderResponse:
        """Map the backend body to the universal response."""

    @abstractmethod
    async def is_available(self) -> bool:
        """Check whether the backend is reachable with these credentials."""


class ProviderRegistry:
    """Registry of provider adapters keyed by provider id."""

    def __init__(self) -> None:
        self._providers: dict[str, ModelProvider] = {}

    def register(self, provider_id: str, provider: ModelProvider) -> None:
        """Register an adapter.

        Raises:
            GatewayConfigurationError: If the id is already registered
        """
        if provider_id in self._providers:
            raise GatewayConfigurationError(
                f"Provider {provider_id} is already registered"
            )
        self._providers[provider_id] = provider
        logger.info("provider_registered", provider_id=provider_id, adapter=provider.name)

    def get(self, provider_id: str) -> ModelProvider | None:
        return self._providers.get(provider_id)

    def has(self, provider_id: str) -> bool:
        return provider_id in self._providers

    def list(self) -> list[str]:
        return list(self._providers)

    def __len__(self) -> int:
        return len(self._providers)
