"""Model gateway exceptions."""

from __future__ import annotations

from ..exceptions import RuntimeExecutionError


class GatewayError(RuntimeExecutionError):
    """Base exception for all model gateway errors."""


class GatewayConfigurationError(GatewayError):
    """Exception raised when a provider definition cannot be turned into an adapter.

    This exception is raised when:
    - The provider type or name is not supported
    - A provider id is registered twice
    """


class CredentialResolutionError(GatewayConfigurationError):
    """No credential could be resolved for a provider."""

    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"No credentials found for provider {provider_id}")


class ProviderNotFoundError(GatewayError):
    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"Provider not found: {provider_id}")


class ProviderRequestError(GatewayError):
    """Exception raised when a provider backend returns an error response."""

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
    ) -> None:
        """Initialize the provider error.

        Args:
            message: Description of the provider issue
            provider: Name of the provider adapter that failed
            status_code: HTTP status code returned by the backend, if any
        """
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class AllProvidersFailedError(GatewayError):
    """Every candidate of a failover run failed."""

    def __init__(self, last_error: Exception | None) -> None:
        self.last_error = last_error
        detail = str(last_error) if last_error is not None else "no candidates"
        super().__init__(f"All providers failed. Last error: {detail}")
