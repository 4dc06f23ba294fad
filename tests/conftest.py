"""
Pytest configuration and shared fixtures for cloudspend tests.

This module provides canned Google Cloud API payloads and a fake upstream
(an httpx mock transport) used across the unit and integration tests.
"""

import os
from collections.abc import Generator
from typing import Any

import httpx
import pytest

from cloudspend.config.settings import CloudConfig


class FakeGoogleAPI:
    """Routes upstream requests to canned responses by URL path suffix.

    Every request is recorded so tests can assert on what was sent and how
    many attempts were made.
    """

    def __init__(self):
        self.routes: dict[str, tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, path_suffix: str, body: Any = None, status: int = 200):
        self.routes[path_suffix] = (status, body)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        for suffix, (status, body) in self.routes.items():
            if path.endswith(suffix):
                return httpx.Response(status, json=body)
        return httpx.Response(
            404, json={"error": {"code": 404, "message": f"Unknown path {path}"}}
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture
def fake_google() -> FakeGoogleAPI:
    """Empty fake upstream; every path answers 404 until routes are added."""
    return FakeGoogleAPI()


@pytest.fixture
def gcp_config() -> dict[str, Any]:
    """Direct-mode GCP configuration with an API key."""
    return {"enabled": True, "project_id": "test-project", "api_key": "test-key", "timeout": 5}


@pytest.fixture
def sample_instance() -> dict[str, Any]:
    """A Compute Engine instance as returned by instances.list."""
    return {
        "id": "1234567890",
        "name": "web-1",
        "status": "RUNNING",
        "zone": "https://www.googleapis.com/compute/v1/projects/test-project/zones/us-central1-a",
        "machineType": (
            "https://www.googleapis.com/compute/v1/projects/test-project"
            "/zones/us-central1-a/machineTypes/n1-standard-2"
        ),
        "tags": {"items": ["http-server", "http-server"]},
        "labels": {"env": "prod"},
        "disks": [
            {
                "boot": True,
                "deviceName": "persistent-disk-0",
                "diskSizeGb": "10",
                "source": (
                    "https://www.googleapis.com/compute/v1/projects/test-project"
                    "/zones/us-central1-a/disks/web-1"
                ),
            },
            {"boot": False, "deviceName": "data", "diskSizeGb": "100"},
        ],
    }


@pytest.fixture
def aggregated_instances(sample_instance) -> dict[str, Any]:
    """instances.aggregatedList payload with one populated zone."""
    return {
        "kind": "compute#instanceAggregatedList",
        "items": {
            "zones/us-central1-a": {"instances": [sample_instance]},
            "zones/europe-west1-b": {
                "warning": {"code": "NO_RESULTS_ON_PAGE", "message": "There are no results"}
            },
        },
    }


@pytest.fixture
def sample_buckets() -> dict[str, Any]:
    return {
        "kind": "storage#buckets",
        "items": [
            {
                "id": "assets-bucket",
                "name": "assets-bucket",
                "location": "US",
                "storageClass": "STANDARD",
                "labels": {"team": "web"},
            }
        ],
    }


@pytest.fixture
def sample_sql_instances() -> dict[str, Any]:
    return {
        "items": [
            {
                "name": "orders-db",
                "connectionName": "test-project:us-central1:orders-db",
                "databaseVersion": "POSTGRES_15",
                "region": "us-central1",
                "state": "RUNNABLE",
                "settings": {"tier": "db-n1-standard-1", "userLabels": {"env": "prod"}},
            }
        ]
    }


@pytest.fixture
def sample_recommendations() -> dict[str, Any]:
    """Recommender API payload for the machine type recommender."""
    return {
        "recommendations": [
            {
                "name": (
                    "projects/test-project/locations/us-central1-a/recommenders/"
                    "google.compute.instance.MachineTypeRecommender/recommendations/abc123"
                ),
                "description": "Save cost by changing machine type from n1-standard-4 to n1-standard-2.",
                "recommenderSubtype": "CHANGE_MACHINE_TYPE",
                "priority": "P2",
                "primaryImpact": {
                    "category": "COST",
                    "costProjection": {
                        "cost": {"currencyCode": "USD", "units": "-34", "nanos": -500000000},
                        "duration": "2592000s",
                    },
                },
                "content": {
                    "operationGroups": [
                        {
                            "operations": [
                                {
                                    "action": "replace",
                                    "resource": "//compute.googleapis.com/projects/test-project/zones/us-central1-a/instances/web-1",
                                }
                            ]
                        }
                    ]
                },
            }
        ]
    }


@pytest.fixture
def sample_time_series() -> dict[str, Any]:
    """Monitoring timeSeries payload: web-1 averaging 15% CPU."""
    return {
        "timeSeries": [
            {
                "metric": {"type": "compute.googleapis.com/instance/cpu/utilization"},
                "resource": {
                    "type": "gce_instance",
                    "labels": {"instance_id": "1234567890", "zone": "us-central1-a"},
                },
                "points": [
                    {"value": {"doubleValue": 0.1}},
                    {"value": {"doubleValue": 0.2}},
                ],
            }
        ]
    }


@pytest.fixture
def live_google(
    fake_google,
    aggregated_instances,
    sample_buckets,
    sample_sql_instances,
    sample_recommendations,
    sample_time_series,
) -> FakeGoogleAPI:
    """Fake upstream answering every endpoint the data service uses."""
    return (
        fake_google.add("/projects/test-project/billingInfo", {
            "name": "projects/test-project/billingInfo",
            "projectId": "test-project",
            "billingAccountName": "billingAccounts/000000-AAAAAA-111111",
            "billingEnabled": True,
        })
        .add("/projects/test-project/aggregated/instances", aggregated_instances)
        .add("/storage/v1/b", sample_buckets)
        .add("/projects/test-project/instances", sample_sql_instances)
        .add("/recommendations", sample_recommendations)
        .add("/projects/test-project/timeSeries", sample_time_series)
        .add("/v1/projects", {"projects": [
            {"projectId": "test-project", "name": "Test Project", "lifecycleState": "ACTIVE"}
        ]})
    )


@pytest.fixture
def make_config():
    """Build a CloudConfig from a GCP section plus optional data settings."""

    def _make(gcp: dict[str, Any] | None = None, **data: Any) -> CloudConfig:
        settings = {
            "clouds": {"gcp": gcp if gcp is not None else {"enabled": True}, "azure": {"enabled": True}},
            "data": {"mock_mode": "fallback", "request_timeout": 5, "placeholder_utilization": False},
        }
        settings["data"].update(data)
        return CloudConfig.from_dict(settings)

    return _make


# Environment fixture
@pytest.fixture
def clean_env() -> Generator[dict[str, str], None, None]:
    """Provide a clean environment for testing."""
    original_env = os.environ.copy()
    # Clear environment variables that might affect tests
    env_vars_to_clear = [
        "GCP_PROJECT_ID",
        "GCP_API_KEY",
        "GCP_SERVICE_ACCOUNT_KEY",
    ]
    env_vars_to_clear += [name for name in os.environ if name.startswith("CLOUDSPEND_")]

    for var in env_vars_to_clear:
        os.environ.pop(var, None)

    yield os.environ

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)
