"""
Fixed mock datasets served when live provider data is unavailable.

Tables are raw, provider-shaped payloads keyed by (provider, data type); they
pass through the same transformer as live data.
"""

import copy
from typing import Any

from ...providers.azure import (
    AZURE_SAMPLE_COSTS,
    AZURE_SAMPLE_RECOMMENDATIONS,
    AZURE_SAMPLE_RESOURCE_GROUPS,
    AZURE_SAMPLE_UTILIZATION,
)
from ...providers.base import DataType, ProviderName

GCP_MOCK_COSTS = {
    "totalCost": 58000,
    "currency": "USD",
    "services": [
        {"name": "Compute Engine", "cost": 35000},
        {"name": "Cloud Storage", "cost": 10000},
        {"name": "Cloud SQL", "cost": 7000},
        {"name": "Cloud Functions", "cost": 6000},
    ],
}

GCP_MOCK_PROJECTS = [
    {"projectId": "prod-project", "name": "Production Project"},
    {"projectId": "dev-project", "name": "Development Project"},
    {"projectId": "staging-project", "name": "Staging Project"},
]

GCP_MOCK_RECOMMENDATIONS = [
    {
        "name": "resize-instances",
        "category": "cost_optimization",
        "priority": "HIGH",
        "description": "Resize underutilized Compute Engine instances",
        "costImpact": {"amount": 3200},
    }
]

GCP_MOCK_UTILIZATION = {
    "timeSeries": [],
    "summary": {"cpu": 55, "memory": 60, "storage": 40},
}

EMPTY_RESOURCES = {"compute": [], "storage": [], "database": []}

MOCK_TABLES: dict[ProviderName, dict[DataType, Any]] = {
    ProviderName.GCP: {
        DataType.COSTS: GCP_MOCK_COSTS,
        DataType.PROJECTS: {"projects": GCP_MOCK_PROJECTS},
        DataType.RESOURCES: EMPTY_RESOURCES,
        DataType.RECOMMENDATIONS: {"recommendations": GCP_MOCK_RECOMMENDATIONS},
        DataType.UTILIZATION: GCP_MOCK_UTILIZATION,
    },
    ProviderName.AZURE: {
        DataType.COSTS: AZURE_SAMPLE_COSTS,
        DataType.PROJECTS: {"projects": AZURE_SAMPLE_RESOURCE_GROUPS},
        DataType.RESOURCES: EMPTY_RESOURCES,
        DataType.RECOMMENDATIONS: {"recommendations": AZURE_SAMPLE_RECOMMENDATIONS},
        DataType.UTILIZATION: AZURE_SAMPLE_UTILIZATION,
    },
}


def get_mock_payload(provider: ProviderName, data_type: DataType) -> Any:
    """Return a fresh copy of the mock payload for a provider and data type."""
    return copy.deepcopy(MOCK_TABLES[provider][data_type])
