"""
Google Cloud Platform (GCP) provider client implementation.

Issues read-only REST requests against the Google Cloud billing, resource
manager, compute, storage, SQL admin, recommender and monitoring APIs,
either directly or through the local proxy.
"""

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from .base import (
    CloudProviderError,
    ConfigurationError,
    ProviderClient,
    ProviderFactory,
    UnknownEndpointError,
)
from ..utils.auth import AuthStrategy, build_auth_strategy
from ..utils.http_client import HTTPClient

logger = logging.getLogger(__name__)

# Base URLs of the Google API families reachable through the proxy
GCP_APIS = {
    "billing": "https://cloudbilling.googleapis.com/v1",
    "resource_manager": "https://cloudresourcemanager.googleapis.com/v1",
    "compute": "https://compute.googleapis.com/compute/v1",
    "storage": "https://storage.googleapis.com/storage/v1",
    "sql": "https://sqladmin.googleapis.com/v1",
    "recommender": "https://recommender.googleapis.com/v1",
    "monitoring": "https://monitoring.googleapis.com/v3",
}

MACHINE_TYPE_RECOMMENDER = "google.compute.instance.MachineTypeRecommender"

CPU_UTILIZATION_METRICS = {
    "compute": "compute.googleapis.com/instance/cpu/utilization",
    "database": "cloudsql.googleapis.com/database/cpu/utilization",
}

# Monitored-resource label identifying one resource; Cloud SQL uses "project:instance"
MONITORING_ID_LABELS = {
    "compute": "instance_id",
    "database": "database_id",
}

_PROJECT_ONLY = re.compile(r"^projects(/[^/]+)?$")
_SQL_INSTANCES = re.compile(r"^projects/[^/]+/instances(/.*)?$")


def _scoped(path: str) -> List[str]:
    """Path segments below ``projects/{id}``."""
    segments = path.split("/")
    return segments[2:] if segments[0] == "projects" else []


# Ordered: the first matching rule wins
ENDPOINT_RULES: List[Tuple[str, Callable[[str], bool]]] = [
    ("billing", lambda p: p.split("/")[0] == "billingAccounts" or _scoped(p)[:1] == ["billingInfo"]),
    ("recommender", lambda p: "recommenders" in _scoped(p)),
    ("monitoring", lambda p: "timeSeries" in _scoped(p)),
    ("compute", lambda p: _scoped(p)[:1] in (["zones"], ["aggregated"], ["regions"])),
    ("storage", lambda p: p == "b" or p.startswith("b/")),
    ("sql", lambda p: bool(_SQL_INSTANCES.match(p))),
    ("resource_manager", lambda p: bool(_PROJECT_ONLY.match(p))),
]


def resolve_endpoint(path: str) -> Tuple[str, str]:
    """
    Classify a logical API path into a Google API family.

    Args:
        path: Logical path such as ``projects/my-project/aggregated/instances``

    Returns:
        Tuple of (family name, absolute upstream URL)

    Raises:
        UnknownEndpointError: If no family matches the path
    """
    clean_path = path.split("?", 1)[0].strip("/")
    for family, matches in ENDPOINT_RULES:
        if clean_path and matches(clean_path):
            return family, f"{GCP_APIS[family]}/{clean_path}"
    raise UnknownEndpointError(path)


class GCPClient(ProviderClient):
    """GCP REST client, direct or through the local proxy."""

    def __init__(
        self,
        config: Dict[str, Any],
        auth: Optional[AuthStrategy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(config)
        self.proxy_url = (config.get("proxy_url") or "").rstrip("/") or None
        self.billing_account_id = config.get("billing_account_id")
        self.timeout = float(config.get("timeout", 30))

        # The proxy holds the credentials; direct mode needs a strategy of its own
        if self.proxy_url:
            self.auth = None
        else:
            self.auth = auth if auth is not None else build_auth_strategy(config)

        self.http = HTTPClient(timeout=self.timeout, transport=transport, provider="gcp")

    def _get_provider_name(self) -> str:
        return "gcp"

    @property
    def mode(self) -> str:
        return "proxy" if self.proxy_url else "direct"

    @property
    def auth_method(self) -> Optional[str]:
        if self.proxy_url:
            return "proxy"
        return self.auth.method if self.auth else None

    def is_configured(self) -> bool:
        return bool(self.proxy_url or self.auth)

    def _require_project(self, project_id: Optional[str]) -> str:
        project_id = project_id or self.default_project_id
        if not project_id:
            raise ConfigurationError("Project ID required for GCP request")
        return project_id

    async def fetch(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET a logical API path and return the decoded JSON body.

        Args:
            path: Logical path relative to its API family base URL
            params: Optional query parameters

        Returns:
            Raw upstream JSON
        """
        self.ensure_configured()
        params = dict(params or {})

        if self.proxy_url:
            url = f"{self.proxy_url}/api/gcp/{path.lstrip('/')}"
            logger.debug(f"🌐 GCP: Requesting through proxy: {url}")
            return await self.http.get(url, params=params)

        _, url = resolve_endpoint(path)
        params.update(self.auth.auth_params())
        headers = await self.auth.auth_headers()
        logger.debug(f"🌐 GCP: Requesting {url}")
        return await self.http.get(url, params=params, headers=headers)

    async def get_project(self, project_id: str) -> Dict[str, Any]:
        project_id = self._require_project(project_id)
        return await self.fetch(f"projects/{project_id}")

    async def list_projects(self) -> Dict[str, Any]:
        return await self.fetch("projects")

    async def get_billing_info(self, project_id: str) -> Dict[str, Any]:
        project_id = self._require_project(project_id)
        return await self.fetch(f"projects/{project_id}/billingInfo")

    async def get_billing_accounts(self) -> Dict[str, Any]:
        return await self.fetch("billingAccounts")

    async def get_compute_instances(self, project_id: str, zone: Optional[str] = None) -> Dict[str, Any]:
        project_id = self._require_project(project_id)
        if zone:
            return await self.fetch(f"projects/{project_id}/zones/{zone}/instances")
        return await self.fetch(f"projects/{project_id}/aggregated/instances")

    async def get_storage_buckets(self, project_id: str) -> Dict[str, Any]:
        project_id = self._require_project(project_id)
        return await self.fetch("b", params={"project": project_id})

    async def get_sql_instances(self, project_id: str) -> Dict[str, Any]:
        project_id = self._require_project(project_id)
        return await self.fetch(f"projects/{project_id}/instances")

    async def get_cost_recommendations(
        self,
        project_id: str,
        recommender: str = MACHINE_TYPE_RECOMMENDER,
        location: str = "global",
    ) -> Dict[str, Any]:
        project_id = self._require_project(project_id)
        return await self.fetch(
            f"projects/{project_id}/locations/{location}/recommenders/{recommender}/recommendations"
        )

    async def get_resource_utilization(
        self,
        project_id: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        window_minutes: int = 60,
    ) -> Dict[str, Any]:
        """Get CPU utilization time series from Cloud Monitoring."""
        project_id = self._require_project(project_id)
        resource_type = resource_type or "compute"
        if resource_type not in CPU_UTILIZATION_METRICS:
            logger.debug(f"GCP: No utilization metric for {resource_type}, skipping Monitoring")
            return {"timeSeries": []}

        metric_filter = f'metric.type="{CPU_UTILIZATION_METRICS[resource_type]}"'
        if resource_id:
            label = MONITORING_ID_LABELS[resource_type]
            metric_filter += f' AND resource.labels.{label}="{resource_id}"'

        end = datetime.now(timezone.utc)
        start = end - timedelta(minutes=window_minutes)
        params = {
            "filter": metric_filter,
            "interval.startTime": start.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "interval.endTime": end.strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        return await self.fetch(f"projects/{project_id}/timeSeries", params=params)

    async def test_access(self, project_id: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
        """Check project, billing and compute access concurrently."""
        project_id = project_id or self.default_project_id or ""
        checks = {
            "project": self.fetch(f"projects/{project_id}"),
            "billing": self.fetch("billingAccounts"),
            "compute": self.fetch(f"projects/{project_id}/zones"),
        }

        async def _check(name, call):
            try:
                await call
                logger.info(f"✅ GCP: {name} access OK")
                return name, {"success": True}
            except CloudProviderError as e:
                logger.warning(f"❌ GCP: {name} access failed: {e}")
                return name, {"success": False, "error": str(e)}

        results = await asyncio.gather(*(_check(name, call) for name, call in checks.items()))
        return dict(results)

    async def aclose(self):
        await self.http.aclose()


ProviderFactory.register_provider("gcp", GCPClient)
