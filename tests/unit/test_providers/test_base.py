"""
Tests for base provider functionality.

Tests the identifiers, error taxonomy, the ProviderClient base class and
the provider factory.
"""

import pytest

from cloudspend.providers import azure, gcp  # noqa: F401
from cloudspend.providers.base import (
    APIError,
    AuthenticationError,
    AuthNotConfiguredError,
    CloudProviderError,
    ConfigurationError,
    DataType,
    MalformedCredentialError,
    ProviderClient,
    ProviderFactory,
    ProviderName,
    RateLimitError,
    UnsupportedDataTypeError,
    UnsupportedProviderError,
    UpstreamError,
)


class MockProviderClient(ProviderClient):
    """Minimal ProviderClient for testing the base class."""

    def __init__(self, config=None, configured=True):
        super().__init__(config or {})
        self.configured = configured

    def _get_provider_name(self) -> str:
        return "gcp"

    def is_configured(self) -> bool:
        return self.configured

    async def get_project(self, project_id):
        return {"projectId": project_id}

    async def list_projects(self):
        return {"projects": []}

    async def get_billing_info(self, project_id):
        return {}

    async def get_billing_accounts(self):
        return {}

    async def get_compute_instances(self, project_id, zone=None):
        return {"items": []}

    async def get_storage_buckets(self, project_id):
        return {"items": []}

    async def get_sql_instances(self, project_id):
        return {"items": []}

    async def get_cost_recommendations(self, project_id):
        return {"recommendations": []}

    async def get_resource_utilization(self, project_id, resource_type=None, resource_id=None):
        return {"timeSeries": []}


class TestIdentifiers:
    """Test cases for ProviderName and DataType parsing."""

    @pytest.mark.parametrize("value", ["gcp", "GCP", " Gcp "])
    def test_provider_name_parse(self, value):
        assert ProviderName.parse(value) is ProviderName.GCP

    def test_provider_name_parse_passthrough(self):
        assert ProviderName.parse(ProviderName.AZURE) is ProviderName.AZURE

    def test_unknown_provider_raises(self):
        with pytest.raises(UnsupportedProviderError) as exc_info:
            ProviderName.parse("aws")
        assert exc_info.value.provider == "aws"
        assert "aws" in str(exc_info.value)

    @pytest.mark.parametrize("value", ["costs", "projects", "resources", "recommendations", "utilization"])
    def test_data_type_parse(self, value):
        assert DataType.parse(value).value == value

    def test_unknown_data_type_raises(self):
        with pytest.raises(UnsupportedDataTypeError) as exc_info:
            DataType.parse("invoices")
        assert exc_info.value.data_type == "invoices"


class TestErrorTaxonomy:
    """Test the provider error hierarchy."""

    def test_hierarchy(self):
        assert issubclass(AuthNotConfiguredError, AuthenticationError)
        assert issubclass(MalformedCredentialError, ConfigurationError)
        assert issubclass(UpstreamError, APIError)
        assert issubclass(RateLimitError, UpstreamError)
        for error in (AuthenticationError, ConfigurationError, APIError, UnsupportedProviderError):
            assert issubclass(error, CloudProviderError)

    def test_upstream_error_carries_status_and_body(self):
        error = UpstreamError("denied", status_code=403, body={"error": {"message": "no"}}, provider="gcp")
        assert error.status_code == 403
        assert error.body == {"error": {"message": "no"}}
        assert error.provider == "gcp"

    def test_rate_limit_error(self):
        error = RateLimitError("slow down", retry_after=30)
        assert error.status_code == 429
        assert error.retry_after == 30

    def test_auth_not_configured_message(self):
        error = AuthNotConfiguredError("gcp")
        assert error.provider == "gcp"
        assert "gcp" in str(error)


class TestProviderClient:
    """Test cases for ProviderClient base class."""

    def test_initialization(self):
        client = MockProviderClient({"project_id": "p1"})
        assert client.provider_name == "gcp"
        assert client.default_project_id == "p1"
        assert client.is_sample is False

    def test_ensure_configured_raises(self):
        client = MockProviderClient(configured=False)
        with pytest.raises(AuthNotConfiguredError):
            client.ensure_configured()

    def test_ensure_configured_passes(self):
        MockProviderClient().ensure_configured()

    @pytest.mark.asyncio
    async def test_default_cost_summary_is_none(self):
        assert await MockProviderClient().get_cost_summary("p1") is None

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        async with MockProviderClient() as client:
            assert client.provider_name == "gcp"


class TestProviderFactory:
    """Test cases for ProviderFactory."""

    def test_registered_providers(self):
        available = ProviderFactory.get_available_providers()
        assert "gcp" in available
        assert "azure" in available

    def test_create_provider(self):
        client = ProviderFactory.create_provider("AZURE", {})
        assert isinstance(client, azure.AzureClient)

    def test_create_unknown_provider(self):
        with pytest.raises(UnsupportedProviderError):
            ProviderFactory.create_provider("aws", {})
