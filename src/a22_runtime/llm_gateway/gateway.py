"""Model gateway: provider orchestration with fallback strategies.

Owns the provider registry, one usage record per registered provider, a
rate limiter for each provider that declares limits, and the credential
resolver. Provider failures are caught only by the failover loop; every other
path propagates them.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import structlog

from ..config import Settings, get_settings
from ..models.program import (
    AdvancedModel,
    ModelProviderConfig,
    ModelSpec,
    ProviderDefinition,
    RoutingStrategy,
    SimpleModel,
    parse_model_spec,
)
from .anthropic_provider import AnthropicProvider
from .cost_models import estimate_cost
from .credentials import CredentialResolver
from .exceptions import (
    AllProvidersFailedError,
    CredentialResolutionError,
    GatewayConfigurationError,
    ProviderNotFoundError,
)
from .models import Message, ProviderRequest, ProviderResponse, ProviderUsage
from .openai_provider import OpenAIProvider
from .provider import ModelProvider, ProviderRegistry
from .rate_limiter import TokenBucketRateLimiter

if TYPE_CHECKING:
    from ..security.audit_logger import AuditLogger

logger = structlog.get_logger(__name__)

# Adapter chosen when the provider name or id contains the key
PROVIDER_ADAPTERS: dict[str, type[ModelProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
}

Messages = Sequence[Message] | Sequence[dict[str, Any]]


class ModelGateway:
    """Routes completion requests across the program's model providers."""

    def __init__(
        self,
        providers: Sequence[ProviderDefinition] = (),
        credential_resolver: CredentialResolver | None = None,
        audit_logger: AuditLogger | None = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize the gateway.

        Providers are not contacted until ``initialize`` is awaited.

        Args:
            providers: Provider definitions from the program
            credential_resolver: Resolver for credential references
            audit_logger: Optional audit logger for credential access events
            settings: Runtime settings (defaults to the cached settings)
        """
        self._definitions = list(providers)
        self._credential_resolver = credential_resolver or CredentialResolver()
        self._audit_logger = audit_logger
        self._settings = settings or get_settings()
        self.registry = ProviderRegistry()
        self._rate_limiters: dict[str, TokenBucketRateLimiter] = {}
        self._usage: dict[str, ProviderUsage] = {}
        self._initialized = False

    async def initialize(self) -> None:
        """Create adapters for every provider definition.

        A provider whose credentials cannot be resolved, whose type is
        unsupported or whose id is already registered is skipped; the
        remaining providers are still registered.
        """
        if self._initialized:
            return

        for definition in self._definitions:
            try:
                provider = await self._create_provider(definition)
                self.register_provider(
                    definition.id,
                    provider,
                    limiter=self._build_rate_limiter(definition),
                )
            except GatewayConfigurationError as e:
                logger.error(
                    "provider_initialization_failed",
                    provider_id=definition.id,
                    error=str(e),
                )

        self._initialized = True
        logger.info(
            "model_gateway_initialized",
            providers=self.registry.list(),
            failed=len(self._definitions) - len(self.registry),
        )

    def register_provider(
        self,
        provider_id: str,
        provider: ModelProvider,
        limiter: TokenBucketRateLimiter | None = None,
    ) -> None:
        """Register an adapter with its usage record and optional rate limiter.

        Raises:
            GatewayConfigurationError: If the id is already registered
        """
        self.registry.register(provider_id, provider)
        # Providers without declared limits are never throttled
        if limiter is not None:
            self._rate_limiters[provider_id] = limiter
        self._usage[provider_id] = ProviderUsage()

    async def complete(
        self,
        model_config: ModelSpec | str,
        messages: Messages,
        params: dict[str, Any] | None = None,
    ) -> ProviderResponse:
        """Complete a request using the given model configuration.

        Args:
            model_config: ``"provider/model"`` string, ``SimpleModel`` or ``AdvancedModel``
            messages: Conversation messages
            params: Request parameters (temperature, max_tokens, ...)

        Returns:
            Response of the provider that served the request

        Raises:
            AllProvidersFailedError: If every failover candidate failed
            ProviderNotFoundError: If a direct or round-robin target is unregistered
        """
        if isinstance(model_config, str):
            model_config = parse_model_spec(model_config)

        match model_config:
            case SimpleModel(provider=provider_id, name=model_name):
                return await self.complete_with_provider(
                    provider_id, model_name, messages, params
                )
            case AdvancedModel(strategy=strategy):
                return await self._complete_with_strategy(
                    strategy, model_config.candidates, messages, params
                )
            case _:
                raise GatewayConfigurationError(
                    f"Unsupported model configuration: {model_config!r}"
                )

    async def complete_with_provider(
        self,
        provider_id: str,
        model_name: str,
        messages: Messages,
        params: dict[str, Any] | None = None,
    ) -> ProviderResponse:
        """Send one request to one provider, throttled and counted.

        Errors are counted and re-raised unchanged; retry decisions belong to
        the routing strategy.

        Raises:
            ProviderNotFoundError: If the provider is not registered
        """
        provider = self.registry.get(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)

        limiter = self._rate_limiters.get(provider_id)
        if limiter is not None:
            await limiter.acquire()

        stats = self._usage[provider_id]
        stats.requests += 1
        start_time = time.time()

        try:
            request = ProviderRequest.build(model_name, list(messages), params)
            response = await provider.complete(request)
        except Exception as e:
            stats.errors += 1
            logger.warning(
                "provider_request_failed",
                provider_id=provider_id,
                model=model_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        if response.usage:
            stats.tokens += response.usage.total_tokens

        logger.info(
            "provider_request_success",
            provider_id=provider_id,
            model=response.model or model_name,
            latency_ms=int((time.time() - start_time) * 1000),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return response

    def get_usage_stats(self) -> dict[str, ProviderUsage]:
        """Return a snapshot of per-provider usage counters."""
        return {
            provider_id: usage.model_copy()
            for provider_id, usage in self._usage.items()
        }

    def get_rate_limiter(self, provider_id: str) -> TokenBucketRateLimiter | None:
        return self._rate_limiters.get(provider_id)

    async def check_providers(self) -> dict[str, bool]:
        """Check availability of every registered provider."""
        results: dict[str, bool] = {}
        for provider_id in self.registry.list():
            provider = self.registry.get(provider_id)
            results[provider_id] = await provider.is_available()
        return results

    async def close(self) -> None:
        for provider_id in self.registry.list():
            await self.registry.get(provider_id).close()

    async def _complete_with_strategy(
        self,
        strategy: RoutingStrategy,
        candidates: list[ModelProviderConfig],
        messages: Messages,
        params: dict[str, Any] | None,
    ) -> ProviderResponse:
        match strategy:
            case RoutingStrategy.COST_OPTIMIZED:
                ordered = sorted(candidates, key=lambda c: estimate_cost(c.name))
                return await self._failover(ordered, messages, params)
            case RoutingStrategy.LATENCY_OPTIMIZED:
                # TODO: order candidates by tracked historical latency once recorded
                return await self._failover(candidates, messages, params)
            case RoutingStrategy.ROUND_ROBIN:
                return await self._round_robin(candidates, messages, params)
            case _:
                return await self._failover(candidates, messages, params)

    async def _failover(
        self,
        candidates: list[ModelProviderConfig],
        messages: Messages,
        params: dict[str, Any] | None,
    ) -> ProviderResponse:
        last_error: Exception | None = None

        for candidate in candidates:
            try:
                return await self.complete_with_provider(
                    candidate.provider,
                    candidate.name,
                    messages,
                    {**(params or {}), **candidate.params},
                )
            except Exception as e:
                last_error = e
                logger.warning(
                    "provider_failed_trying_next",
                    provider_id=candidate.provider,
                    model=candidate.name,
                    error=str(e),
                )

        raise AllProvidersFailedError(last_error) from last_error

    async def _round_robin(
        self,
        candidates: list[ModelProviderConfig],
        messages: Messages,
        params: dict[str, Any] | None,
    ) -> ProviderResponse:
        total_requests = sum(usage.requests for usage in self._usage.values())
        candidate = candidates[total_requests % len(candidates)]

        return await self.complete_with_provider(
            candidate.provider,
            candidate.name,
            messages,
            {**(params or {}), **candidate.params},
        )

    async def _create_provider(self, definition: ProviderDefinition) -> ModelProvider:
        try:
            api_key = await self._credential_resolver.resolve(definition.credentials)
        except Exception as e:
            raise CredentialResolutionError(definition.id) from e
        if not api_key:
            raise CredentialResolutionError(definition.id)

        if self._audit_logger is not None:
            await self._audit_logger.log_credential_access(definition.id)

        if definition.type != "llm":
            raise GatewayConfigurationError(
                f"Unsupported provider type: {definition.type}"
            )

        name = definition.display_name.lower()
        for key, adapter_cls in PROVIDER_ADAPTERS.items():
            if key in name or key in definition.id:
                return adapter_cls(
                    api_key,
                    endpoint=definition.config.get("endpoint"),
                    timeout_ms=definition.config.get(
                        "timeout", self._settings.provider_timeout_ms
                    ),
                )

        raise GatewayConfigurationError(
            f"Unknown LLM provider: {definition.display_name}"
        )

    def _build_rate_limiter(
        self, definition: ProviderDefinition
    ) -> TokenBucketRateLimiter | None:
        limits = definition.limits
        if limits is None:
            return None
        return TokenBucketRateLimiter(
            limits=limits,
            max_tokens=limits.burst or self._settings.rate_limit_default_capacity,
            provider_id=definition.id,
        )
