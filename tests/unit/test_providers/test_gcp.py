"""
Tests for the GCP provider client.

Covers endpoint family resolution, authentication preconditions, direct and
proxy request construction, and error propagation without retries.
"""

import httpx
import pytest

from cloudspend.providers.base import (
    AuthNotConfiguredError,
    ConfigurationError,
    RateLimitError,
    TransportError,
    UnknownEndpointError,
    UpstreamError,
)
from cloudspend.providers.gcp import GCPClient, resolve_endpoint


class TestResolveEndpoint:
    """Test the ordered endpoint rule table."""

    @pytest.mark.parametrize(
        "path,family,url",
        [
            ("billingAccounts", "billing", "https://cloudbilling.googleapis.com/v1/billingAccounts"),
            ("projects/p1/billingInfo", "billing", "https://cloudbilling.googleapis.com/v1/projects/p1/billingInfo"),
            (
                "projects/p1/locations/global/recommenders/r/recommendations",
                "recommender",
                "https://recommender.googleapis.com/v1/projects/p1/locations/global/recommenders/r/recommendations",
            ),
            ("projects/p1/timeSeries", "monitoring", "https://monitoring.googleapis.com/v3/projects/p1/timeSeries"),
            (
                "projects/p1/aggregated/instances",
                "compute",
                "https://compute.googleapis.com/compute/v1/projects/p1/aggregated/instances",
            ),
            (
                "projects/p1/zones/us-central1-a/instances",
                "compute",
                "https://compute.googleapis.com/compute/v1/projects/p1/zones/us-central1-a/instances",
            ),
            ("projects/p1/zones", "compute", "https://compute.googleapis.com/compute/v1/projects/p1/zones"),
            ("b", "storage", "https://storage.googleapis.com/storage/v1/b"),
            ("b?project=p1", "storage", "https://storage.googleapis.com/storage/v1/b"),
            ("projects/p1/instances", "sql", "https://sqladmin.googleapis.com/v1/projects/p1/instances"),
            ("projects/p1", "resource_manager", "https://cloudresourcemanager.googleapis.com/v1/projects/p1"),
            ("projects", "resource_manager", "https://cloudresourcemanager.googleapis.com/v1/projects"),
        ],
    )
    def test_known_families(self, path, family, url):
        assert resolve_endpoint(path) == (family, url)

    def test_project_named_like_a_family_keyword(self):
        """A project id such as "zones" must not be mistaken for a compute path."""
        assert resolve_endpoint("projects/zones")[0] == "resource_manager"
        assert resolve_endpoint("projects/zones/instances")[0] == "sql"

    @pytest.mark.parametrize("path", ["", "foo/bar", "projects/p1/unknownThing", "buckets"])
    def test_unknown_endpoint(self, path):
        with pytest.raises(UnknownEndpointError):
            resolve_endpoint(path)


@pytest.mark.gcp
class TestGCPClient:
    """Test cases for GCPClient requests."""

    def make_client(self, fake_google, **config):
        return GCPClient(config, transport=fake_google.transport)

    @pytest.mark.asyncio
    async def test_not_configured_fails_before_any_request(self, fake_google):
        client = self.make_client(fake_google, project_id="test-project")
        assert not client.is_configured()

        with pytest.raises(AuthNotConfiguredError):
            await client.get_project("test-project")
        assert fake_google.requests == []

    @pytest.mark.asyncio
    async def test_api_key_sent_as_query_parameter(self, fake_google, gcp_config):
        fake_google.add("/v1/projects/test-project", {"projectId": "test-project"})
        client = GCPClient(gcp_config, transport=fake_google.transport)

        result = await client.get_project("test-project")

        assert result == {"projectId": "test-project"}
        request = fake_google.requests[0]
        assert request.url.host == "cloudresourcemanager.googleapis.com"
        assert request.url.params["key"] == "test-key"
        assert client.auth_method == "api_key"
        assert client.mode == "direct"

    @pytest.mark.asyncio
    async def test_access_token_sent_as_bearer(self, fake_google):
        fake_google.add("/billingAccounts", {"billingAccounts": []})
        client = self.make_client(fake_google, access_token="ya29.token")

        await client.get_billing_accounts()

        request = fake_google.requests[0]
        assert request.headers["Authorization"] == "Bearer ya29.token"
        assert "key" not in request.url.params

    @pytest.mark.asyncio
    async def test_proxy_mode(self, fake_google):
        fake_google.add("/api/gcp/projects/test-project/aggregated/instances", {"items": {}})
        client = self.make_client(fake_google, proxy_url="http://localhost:3001/", project_id="test-project")

        await client.get_compute_instances("test-project")

        request = fake_google.requests[0]
        assert str(request.url) == "http://localhost:3001/api/gcp/projects/test-project/aggregated/instances"
        assert client.mode == "proxy"
        assert client.auth_method == "proxy"
        assert client.auth is None

    @pytest.mark.asyncio
    async def test_zonal_compute_path(self, fake_google, gcp_config):
        fake_google.add("/zones/us-central1-a/instances", {"items": []})
        client = GCPClient(gcp_config, transport=fake_google.transport)

        await client.get_compute_instances("test-project", zone="us-central1-a")

        assert fake_google.paths() == ["/compute/v1/projects/test-project/zones/us-central1-a/instances"]

    @pytest.mark.asyncio
    async def test_storage_buckets_scoped_by_project(self, fake_google, gcp_config):
        fake_google.add("/storage/v1/b", {"items": []})
        client = GCPClient(gcp_config, transport=fake_google.transport)

        await client.get_storage_buckets("test-project")

        assert fake_google.requests[0].url.params["project"] == "test-project"

    @pytest.mark.asyncio
    async def test_default_project(self, fake_google, gcp_config):
        fake_google.add("/projects/test-project/instances", {"items": []})
        client = GCPClient(gcp_config, transport=fake_google.transport)

        await client.get_sql_instances(None)

        assert fake_google.paths() == ["/v1/projects/test-project/instances"]

    @pytest.mark.asyncio
    async def test_missing_project_id(self, fake_google):
        client = self.make_client(fake_google, api_key="k")
        with pytest.raises(ConfigurationError):
            await client.get_sql_instances(None)

    @pytest.mark.asyncio
    async def test_upstream_error_propagates_without_retry(self, fake_google, gcp_config):
        body = {"error": {"code": 403, "message": "Billing API has not been used"}}
        fake_google.add("/billingInfo", body, status=403)
        client = GCPClient(gcp_config, transport=fake_google.transport)

        with pytest.raises(UpstreamError) as exc_info:
            await client.get_billing_info("test-project")

        assert exc_info.value.status_code == 403
        assert exc_info.value.body == body
        assert len(fake_google.requests) == 1

    @pytest.mark.asyncio
    async def test_rate_limit(self, gcp_config):
        def handler(request):
            return httpx.Response(429, headers={"Retry-After": "12"}, json={"error": {"code": 429}})

        client = GCPClient(gcp_config, transport=httpx.MockTransport(handler))
        with pytest.raises(RateLimitError) as exc_info:
            await client.list_projects()
        assert exc_info.value.retry_after == 12

    @pytest.mark.asyncio
    async def test_transport_error(self, gcp_config):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = GCPClient(gcp_config, transport=httpx.MockTransport(handler))
        with pytest.raises(TransportError):
            await client.list_projects()

    @pytest.mark.asyncio
    async def test_recommendations_path(self, fake_google, gcp_config):
        fake_google.add("/recommendations", {"recommendations": []})
        client = GCPClient(gcp_config, transport=fake_google.transport)

        await client.get_cost_recommendations("test-project")

        request = fake_google.requests[0]
        assert request.url.host == "recommender.googleapis.com"
        assert request.url.path.endswith(
            "/projects/test-project/locations/global/recommenders/"
            "google.compute.instance.MachineTypeRecommender/recommendations"
        )

    @pytest.mark.asyncio
    async def test_utilization_query(self, fake_google, gcp_config):
        fake_google.add("/timeSeries", {"timeSeries": []})
        client = GCPClient(gcp_config, transport=fake_google.transport)

        await client.get_resource_utilization("test-project", resource_id="42")

        params = fake_google.requests[0].url.params
        assert 'metric.type="compute.googleapis.com/instance/cpu/utilization"' in params["filter"]
        assert 'resource.labels.instance_id="42"' in params["filter"]
        assert params["interval.startTime"] < params["interval.endTime"]

    @pytest.mark.asyncio
    async def test_cloud_sql_utilization_query(self, fake_google, gcp_config):
        fake_google.add("/timeSeries", {"timeSeries": []})
        client = GCPClient(gcp_config, transport=fake_google.transport)

        await client.get_resource_utilization("test-project", "database", "test-project:orders-db")

        metric_filter = fake_google.requests[0].url.params["filter"]
        assert 'metric.type="cloudsql.googleapis.com/database/cpu/utilization"' in metric_filter
        assert 'resource.labels.database_id="test-project:orders-db"' in metric_filter
        assert "instance_id" not in metric_filter

    @pytest.mark.asyncio
    async def test_no_utilization_metric_for_storage(self, fake_google, gcp_config):
        client = GCPClient(gcp_config, transport=fake_google.transport)

        result = await client.get_resource_utilization("test-project", "storage")

        assert result == {"timeSeries": []}
        assert fake_google.requests == []

    @pytest.mark.asyncio
    async def test_access_reports_each_api(self, fake_google, gcp_config):
        fake_google.add("/v1/projects/test-project", {"projectId": "test-project"})
        fake_google.add("/billingAccounts", {"error": {"message": "denied"}}, status=403)
        fake_google.add("/projects/test-project/zones", {"items": []})
        client = GCPClient(gcp_config, transport=fake_google.transport)

        results = await client.test_access()

        assert results["project"] == {"success": True}
        assert results["compute"] == {"success": True}
        assert results["billing"]["success"] is False
        assert "403" in results["billing"]["error"]
