"""
Abstract base provider client for the multi-cloud spend dashboard.

Defines the identifiers, error taxonomy and client interface that every
cloud provider implementation must follow.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class ProviderName(Enum):
    """Supported cloud providers."""

    GCP = "gcp"
    AZURE = "azure"

    @classmethod
    def parse(cls, value: "str | ProviderName") -> "ProviderName":
        """Parse a provider name, case-insensitively."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower().strip())
        except ValueError:
            raise UnsupportedProviderError(value) from None


class DataType(Enum):
    """Data types the dashboard can request from a provider."""

    COSTS = "costs"
    PROJECTS = "projects"
    RESOURCES = "resources"
    RECOMMENDATIONS = "recommendations"
    UTILIZATION = "utilization"

    @classmethod
    def parse(cls, value: "str | DataType") -> "DataType":
        """Parse a data type name, case-insensitively."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower().strip())
        except ValueError:
            raise UnsupportedDataTypeError(value) from None


class ResourceType(Enum):
    """Normalized resource categories."""

    COMPUTE = "compute"
    STORAGE = "storage"
    DATABASE = "database"
    NETWORK = "network"
    OTHER = "other"


class CloudProviderError(Exception):
    """Base exception for cloud provider errors."""

    pass


class AuthenticationError(CloudProviderError):
    """Authentication-related errors."""

    pass


class AuthNotConfiguredError(AuthenticationError):
    """No API key, token, service account or proxy is configured."""

    def __init__(self, provider: str, message: str | None = None):
        super().__init__(message or f"No credentials or proxy configured for {provider}")
        self.provider = provider


class ConfigurationError(CloudProviderError):
    """Configuration-related errors."""

    pass


class MalformedCredentialError(ConfigurationError):
    """A service account credential blob could not be parsed."""

    pass


class TransportError(CloudProviderError):
    """Network-level failure: DNS, refused connection, timeout."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class APIError(CloudProviderError):
    """API-related errors."""

    def __init__(self, message: str, status_code: int | None = None, provider: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class UpstreamError(APIError):
    """Non-2xx response from a provider API or the local proxy."""

    def __init__(
        self,
        message: str,
        status_code: int,
        body: Any = None,
        provider: str | None = None,
    ):
        super().__init__(message, status_code=status_code, provider=provider)
        self.body = body


class RateLimitError(UpstreamError):
    """Rate limiting errors."""

    def __init__(
        self,
        message: str,
        retry_after: int | None = None,
        body: Any = None,
        provider: str | None = None,
    ):
        super().__init__(message, status_code=429, body=body, provider=provider)
        self.retry_after = retry_after


class UnknownEndpointError(CloudProviderError):
    """A logical API path matched no known API family."""

    def __init__(self, path: str):
        super().__init__(f"Unknown GCP API endpoint: {path}")
        self.path = path


class UnsupportedProviderError(CloudProviderError):
    """The requested provider is not implemented."""

    def __init__(self, provider: Any):
        super().__init__(f"Provider {provider} not supported")
        self.provider = provider


class UnsupportedDataTypeError(CloudProviderError):
    """The requested data type is not implemented."""

    def __init__(self, data_type: Any):
        super().__init__(f"Data type {data_type} not supported")
        self.data_type = data_type


class ProviderClient(ABC):
    """Abstract base class for provider API clients.

    Every operation returns the provider's raw decoded JSON body. Operations
    are read-only and perform a single attempt; failures propagate as
    :class:`CloudProviderError` subclasses.
    """

    def __init__(self, config: dict[str, Any]):
        """
        Initialize the provider client with configuration.

        Args:
            config: Provider-specific configuration dictionary
        """
        self.config = config
        self.provider_name = self._get_provider_name()

    @abstractmethod
    def _get_provider_name(self) -> str:
        """Return the provider name (gcp, azure)."""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Return True when the client has an authentication capability."""
        pass

    def ensure_configured(self):
        """Raise AuthNotConfiguredError unless the client can authenticate."""
        if not self.is_configured():
            raise AuthNotConfiguredError(self.provider_name)

    @property
    def is_sample(self) -> bool:
        """True when the client serves a built-in sample feed instead of a live API."""
        return False

    @property
    def default_project_id(self) -> str | None:
        """Project (or resource group) used when a request names none."""
        return self.config.get("project_id")

    @abstractmethod
    async def get_project(self, project_id: str) -> dict[str, Any]:
        """Get a single project."""
        pass

    @abstractmethod
    async def list_projects(self) -> dict[str, Any]:
        """List the projects visible to the credentials."""
        pass

    @abstractmethod
    async def get_billing_info(self, project_id: str) -> dict[str, Any]:
        """Get the billing configuration of a project."""
        pass

    @abstractmethod
    async def get_billing_accounts(self) -> dict[str, Any]:
        """List billing accounts."""
        pass

    @abstractmethod
    async def get_compute_instances(self, project_id: str, zone: str | None = None) -> dict[str, Any]:
        """
        Get compute instances for a project.

        Args:
            project_id: Project identifier
            zone: Optional zone; all zones are listed when omitted

        Returns:
            Raw instance listing
        """
        pass

    @abstractmethod
    async def get_storage_buckets(self, project_id: str) -> dict[str, Any]:
        """Get storage buckets for a project."""
        pass

    @abstractmethod
    async def get_sql_instances(self, project_id: str) -> dict[str, Any]:
        """Get managed database instances for a project."""
        pass

    @abstractmethod
    async def get_cost_recommendations(self, project_id: str) -> dict[str, Any]:
        """Get cost optimization recommendations for a project."""
        pass

    @abstractmethod
    async def get_resource_utilization(
        self,
        project_id: str,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Get utilization time series for a project's resources.

        Args:
            project_id: Project identifier
            resource_type: Optional resource type filter
            resource_id: Optional single resource filter

        Returns:
            Raw time series payload
        """
        pass

    async def get_cost_summary(self, project_id: str | None = None) -> dict[str, Any] | None:
        """Provider-native cost breakdown, or None when costs are estimated from resources."""
        return None

    async def aclose(self):
        """Release network resources held by the client."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


class ProviderFactory:
    """Factory class for creating provider client instances."""

    _providers = {}

    @classmethod
    def register_provider(cls, name: str, provider_class: type):
        """Register a provider client class with the factory."""
        cls._providers[name.lower()] = provider_class

    @classmethod
    def create_provider(cls, name: str, config: dict[str, Any], **kwargs) -> ProviderClient:
        """
        Create a provider client instance.

        Args:
            name: Provider name (gcp, azure)
            config: Provider configuration
            **kwargs: Extra constructor arguments (auth strategy, transport)

        Returns:
            Provider client instance

        Raises:
            UnsupportedProviderError: If provider not registered
        """
        name = name.lower()
        if name not in cls._providers:
            raise UnsupportedProviderError(name)

        provider_class = cls._providers[name]
        return provider_class(config, **kwargs)

    @classmethod
    def get_available_providers(cls) -> list[str]:
        """Get list of available provider names."""
        return list(cls._providers.keys())
