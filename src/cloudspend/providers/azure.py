"""
Azure provider client implementation.

Azure is served from a built-in sample feed shaped like the raw payloads the
dashboard normalizes. No Azure API is contacted.
"""

import copy
import logging
from typing import Any

from .base import ProviderClient, ProviderFactory

logger = logging.getLogger(__name__)

AZURE_SAMPLE_COSTS = {
    "totalCost": 13500,
    "currency": "USD",
    "services": [
        {"name": "Virtual Machines", "cost": 7500},
        {"name": "Storage Accounts", "cost": 2500},
        {"name": "SQL Database", "cost": 2000},
        {"name": "App Service", "cost": 1500},
    ],
}

AZURE_SAMPLE_RESOURCE_GROUPS = [
    {"id": "prod-rg", "name": "Production Resource Group"},
    {"id": "dev-rg", "name": "Development Resource Group"},
    {"id": "staging-rg", "name": "Staging Resource Group"},
]

AZURE_SAMPLE_RECOMMENDATIONS = [
    {
        "name": "reserved-instances",
        "category": "cost_optimization",
        "priority": "HIGH",
        "description": "Purchase reserved instances for steady-state virtual machines",
        "costImpact": {"amount": 2100},
    }
]

AZURE_SAMPLE_UTILIZATION = {
    "timeSeries": [],
    "summary": {"cpu": 65, "memory": 70, "storage": 45},
}


class AzureClient(ProviderClient):
    """Azure client backed by the sample feed."""

    def _get_provider_name(self) -> str:
        return "azure"

    def is_configured(self) -> bool:
        return True

    @property
    def is_sample(self) -> bool:
        return True

    @property
    def default_project_id(self) -> str | None:
        return self.config.get("resource_group") or AZURE_SAMPLE_RESOURCE_GROUPS[0]["id"]

    async def get_cost_summary(self, project_id: str | None = None) -> dict[str, Any] | None:
        """Get the subscription cost breakdown."""
        return copy.deepcopy(AZURE_SAMPLE_COSTS)

    async def get_project(self, project_id: str) -> dict[str, Any]:
        for group in AZURE_SAMPLE_RESOURCE_GROUPS:
            if group["id"] == project_id:
                return dict(group)
        return {"id": project_id, "name": project_id}

    async def list_projects(self) -> dict[str, Any]:
        return {"projects": copy.deepcopy(AZURE_SAMPLE_RESOURCE_GROUPS)}

    async def get_billing_info(self, project_id: str) -> dict[str, Any]:
        return {"name": project_id, "billingEnabled": True}

    async def get_billing_accounts(self) -> dict[str, Any]:
        return {"billingAccounts": []}

    async def get_compute_instances(self, project_id: str, zone: str | None = None) -> dict[str, Any]:
        return {"items": []}

    async def get_storage_buckets(self, project_id: str) -> dict[str, Any]:
        return {"items": []}

    async def get_sql_instances(self, project_id: str) -> dict[str, Any]:
        return {"items": []}

    async def get_cost_recommendations(self, project_id: str) -> dict[str, Any]:
        return {"recommendations": copy.deepcopy(AZURE_SAMPLE_RECOMMENDATIONS)}

    async def get_resource_utilization(
        self,
        project_id: str,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> dict[str, Any]:
        return copy.deepcopy(AZURE_SAMPLE_UTILIZATION)


ProviderFactory.register_provider("azure", AzureClient)
