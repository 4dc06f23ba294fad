"""
Aggregation service for the spend dashboard.

Single entry point for normalized provider data: dispatches a
(provider, data type) request to the provider client, fans out concurrent
sub-fetches where several resource kinds are needed, normalizes the raw
payloads and substitutes the fixed mock dataset when live data cannot be
obtained.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable

import httpx

from ...providers import azure, gcp  # noqa: F401  (registers the provider clients)
from ...providers.base import (
    CloudProviderError,
    ConfigurationError,
    DataType,
    MalformedCredentialError,
    ProviderClient,
    ProviderFactory,
    ProviderName,
    ResourceType,
    TransportError,
)
from ...utils.data_normalizer import (
    UNKNOWN,
    MonitoringUtilization,
    NormalizedCostSummary,
    NormalizedUtilization,
    PlaceholderUtilization,
    ResourceTransformer,
    ServiceCost,
    extract_compute_instances,
)
from ..models import DataSource, ProviderDataResult
from .mock_data import get_mock_payload

logger = logging.getLogger(__name__)

# Billing service each resource type rolls up into
SERVICE_NAMES = {
    ResourceType.COMPUTE.value: "Compute Engine",
    ResourceType.STORAGE.value: "Cloud Storage",
    ResourceType.DATABASE.value: "Cloud SQL",
}

# Errors a handler may hit on malformed upstream payloads
PAYLOAD_ERRORS = (ValueError, TypeError, KeyError, AttributeError)


class MockMode(Enum):
    """How the service treats failed live fetches."""

    FALLBACK = "fallback"
    ALWAYS = "always"
    OFF = "off"


@dataclass
class FetchResult:
    """Outcome of one handler run: a normalized value or the captured error."""

    value: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any) -> "FetchResult":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> "FetchResult":
        return cls(error=error)


def create_client(
    provider: ProviderName,
    provider_config: dict[str, Any],
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProviderClient:
    """
    Create a provider client, leaving it unauthenticated when its credentials are malformed.

    Args:
        provider: Provider to create
        provider_config: The provider's configuration section
        transport: Optional httpx transport for the GCP client

    Returns:
        Provider client instance
    """
    kwargs = {"transport": transport} if provider is ProviderName.GCP else {}
    try:
        return ProviderFactory.create_provider(provider.value, provider_config, **kwargs)
    except MalformedCredentialError as e:
        logger.error(f"❌ {provider.value.upper()}: Ignoring malformed service account key: {e}")
        usable_config = {**provider_config, "service_account_key": None}
        return ProviderFactory.create_provider(provider.value, usable_config, **kwargs)


class CloudDataService:
    """Best-effort aggregation of normalized provider data."""

    def __init__(
        self,
        clients: dict[ProviderName, ProviderClient],
        mock_mode: MockMode = MockMode.FALLBACK,
        request_timeout: float = 30.0,
        transformer: ResourceTransformer | None = None,
    ):
        self.clients = clients
        self.mock_mode = MockMode(mock_mode)
        self.request_timeout = request_timeout
        self.transformer = transformer or ResourceTransformer()

        self._handlers: dict[DataType, Callable[[ProviderClient, dict[str, Any]], Awaitable[Any]]] = {
            DataType.COSTS: self._get_costs,
            DataType.PROJECTS: self._get_projects,
            DataType.RESOURCES: self._get_resources,
            DataType.RECOMMENDATIONS: self._get_recommendations,
            DataType.UTILIZATION: self._get_utilization,
        }

    @classmethod
    def from_config(
        cls,
        config,
        transport: httpx.AsyncBaseTransport | None = None,
        direct: bool = False,
    ) -> "CloudDataService":
        """
        Build the service and its provider clients from configuration.

        Args:
            config: CloudConfig instance
            transport: Optional httpx transport shared by the HTTP clients
            direct: Ignore any configured proxy URL and call the provider APIs directly

        Returns:
            Configured service
        """
        clients = {}
        for provider in ProviderName:
            if not config.is_provider_enabled(provider.value):
                logger.info(f"Provider {provider.value} is disabled")
                continue
            provider_config = config.get_provider_config(provider.value)
            if direct:
                provider_config["proxy_url"] = None
            clients[provider] = create_client(provider, provider_config, transport)

        if config.placeholder_utilization:
            utilization_source = PlaceholderUtilization(config.utilization_seed)
        else:
            utilization_source = UNKNOWN

        return cls(
            clients,
            mock_mode=MockMode(config.mock_mode),
            request_timeout=config.request_timeout,
            transformer=ResourceTransformer(utilization_source),
        )

    async def get_provider_data(
        self,
        provider: str | ProviderName,
        data_type: str | DataType,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Get normalized data for a provider and data type.

        Never raises for supported pairs: live data, or mock/empty data when
        live data is unavailable.

        Raises:
            UnsupportedProviderError: If the provider is unknown
            UnsupportedDataTypeError: If the data type is unknown
        """
        result = await self.fetch_provider_data(provider, data_type, params)
        return result.data

    async def fetch_provider_data(
        self,
        provider: str | ProviderName,
        data_type: str | DataType,
        params: dict[str, Any] | None = None,
    ) -> ProviderDataResult:
        """Like get_provider_data, wrapped in an envelope naming the data source."""
        provider = ProviderName.parse(provider)
        data_type = DataType.parse(data_type)
        params = dict(params or {})

        if self.mock_mode is MockMode.ALWAYS:
            logger.debug(f"Serving mock {data_type.value} for {provider.value} (mock mode always)")
            return self._mock_result(provider, data_type)

        result = await self._run_handler(provider, data_type, params)
        if result.ok:
            source = DataSource.SAMPLE if self.clients[provider].is_sample else DataSource.LIVE
            return ProviderDataResult(provider=provider, data_type=data_type, source=source, data=result.value)

        error = str(result.error) or type(result.error).__name__
        if self.mock_mode is MockMode.OFF:
            logger.warning(f"⚠️ {provider.value} {data_type.value} unavailable: {error}")
            return ProviderDataResult(
                provider=provider,
                data_type=data_type,
                source=DataSource.UNAVAILABLE,
                data=self._empty(provider, data_type),
                error=error,
            )

        logger.warning(f"⚠️ {provider.value} {data_type.value} failed, serving mock data: {error}")
        return self._mock_result(provider, data_type, error=error)

    async def _run_handler(self, provider: ProviderName, data_type: DataType, params: dict[str, Any]) -> FetchResult:
        client = self.clients.get(provider)
        if client is None:
            return FetchResult.failure(ConfigurationError(f"Provider {provider.value} is not enabled"))

        handler = self._handlers[data_type]
        try:
            value = await asyncio.wait_for(handler(client, params), timeout=self.request_timeout)
        except asyncio.TimeoutError:
            return FetchResult.failure(
                TransportError(f"{provider.value} {data_type.value} request timed out after {self.request_timeout}s")
            )
        except CloudProviderError as e:
            return FetchResult.failure(e)
        except PAYLOAD_ERRORS as e:
            logger.error(f"Malformed {provider.value} {data_type.value} payload: {e}")
            return FetchResult.failure(e)
        return FetchResult.success(value)

    def _project_id(self, client: ProviderClient, params: dict[str, Any]) -> str | None:
        return params.get("project_id") or client.default_project_id

    def _transform(self, provider: ProviderName, data_type: DataType, raw: Any) -> Any:
        """Apply the transformer to a raw payload of the given data type."""
        name = provider.value
        if data_type is DataType.COSTS:
            return self.transformer.cost_summary(raw, name)
        if data_type is DataType.PROJECTS:
            return self.transformer.projects(raw, name)
        if data_type is DataType.RESOURCES:
            return self.transformer.resources(raw, name)
        if data_type is DataType.RECOMMENDATIONS:
            return self.transformer.recommendations(raw, name)
        return self.transformer.utilization(raw, name)

    def _mock_result(self, provider: ProviderName, data_type: DataType, error: str | None = None) -> ProviderDataResult:
        data = self._transform(provider, data_type, get_mock_payload(provider, data_type))
        return ProviderDataResult(provider=provider, data_type=data_type, source=DataSource.MOCK, data=data, error=error)

    def _empty(self, provider: ProviderName, data_type: DataType) -> Any:
        if data_type is DataType.COSTS:
            return NormalizedCostSummary(provider=provider)
        if data_type is DataType.UTILIZATION:
            return NormalizedUtilization(provider=provider)
        return []

    async def _get_costs(self, client: ProviderClient, params: dict[str, Any]) -> NormalizedCostSummary:
        project_id = self._project_id(client, params)
        raw = await client.get_cost_summary(project_id)
        if raw is not None:
            return self.transformer.cost_summary(raw, client.provider_name)

        # No billing export: the billing check gates, resource estimates give the breakdown
        billing = await client.get_billing_info(project_id)
        resources = await self._collect_resources(client, params)

        totals = {name: 0.0 for name in SERVICE_NAMES.values()}
        for resource in resources:
            service = SERVICE_NAMES.get(resource.type)
            if service:
                totals[service] += resource.cost

        total_cost = round(sum(totals.values()), 2)
        today = date.today()
        return NormalizedCostSummary(
            provider=client.provider_name,
            total_cost=total_cost,
            time_range={"start": today.replace(day=1).isoformat(), "end": today.isoformat(), "estimated": True},
            services=[ServiceCost(name=name, cost=round(cost, 2)) for name, cost in totals.items()],
            projects=[
                {
                    "id": project_id,
                    "billingAccount": billing.get("billingAccountName"),
                    "billingEnabled": bool(billing.get("billingEnabled")),
                    "cost": total_cost,
                }
            ],
        )

    async def _get_projects(self, client: ProviderClient, params: dict[str, Any]):
        raw = await client.list_projects()
        return self.transformer.projects(raw, client.provider_name)

    async def _get_resources(self, client: ProviderClient, params: dict[str, Any]):
        return await self._collect_resources(client, params)

    async def _collect_resources(self, client: ProviderClient, params: dict[str, Any]):
        """
        Fetch compute, storage and database listings concurrently.

        A failed branch contributes an empty set; only when every requested
        branch fails is the first error raised. Monitoring data, when it can
        be fetched, supplies measured utilization.
        """
        client.ensure_configured()
        project_id = self._project_id(client, params)
        resource_type = params.get("resource_type")

        fetchers = {
            ResourceType.COMPUTE.value: lambda: client.get_compute_instances(project_id, params.get("zone")),
            ResourceType.STORAGE.value: lambda: client.get_storage_buckets(project_id),
            ResourceType.DATABASE.value: lambda: client.get_sql_instances(project_id),
        }
        if resource_type:
            if resource_type not in fetchers:
                logger.debug(f"No listing for resource type {resource_type}")
                return []
            fetchers = {resource_type: fetchers[resource_type]}

        names = list(fetchers)
        *branch_results, monitoring = await asyncio.gather(
            *(fetchers[name]() for name in names),
            client.get_resource_utilization(project_id, resource_type, params.get("resource_id")),
            return_exceptions=True,
        )

        raw = {}
        errors = []
        for name, result in zip(names, branch_results):
            if isinstance(result, CloudProviderError):
                logger.warning(f"⚠️ {client.provider_name}: {name} listing failed, using empty set: {result}")
                errors.append(result)
                raw[name] = []
            elif isinstance(result, BaseException):
                raise result
            elif name == ResourceType.COMPUTE.value:
                raw[name] = extract_compute_instances(result)
            else:
                raw[name] = (result or {}).get("items") or []

        if len(errors) == len(names):
            raise errors[0]

        transformer = self.transformer
        if isinstance(monitoring, CloudProviderError):
            logger.debug(f"{client.provider_name}: monitoring unavailable: {monitoring}")
        elif isinstance(monitoring, BaseException):
            raise monitoring
        elif (monitoring or {}).get("timeSeries"):
            transformer = self.transformer.with_utilization(
                MonitoringUtilization.from_time_series(monitoring, fallback=self.transformer.utilization_source)
            )

        return transformer.resources(raw, client.provider_name)

    async def _get_recommendations(self, client: ProviderClient, params: dict[str, Any]):
        raw = await client.get_cost_recommendations(self._project_id(client, params))
        return self.transformer.recommendations(raw, client.provider_name)

    async def _get_utilization(self, client: ProviderClient, params: dict[str, Any]):
        raw = await client.get_resource_utilization(
            self._project_id(client, params),
            params.get("resource_type"),
            params.get("resource_id"),
        )
        return self.transformer.utilization(raw, client.provider_name)

    async def aclose(self):
        """Close every provider client."""
        for client in self.clients.values():
            await client.aclose()
