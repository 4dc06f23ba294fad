"""
Data normalization utilities for the multi-cloud spend dashboard.

Provides unified data structures and pure transformation functions that turn
raw provider payloads (compute instances, buckets, SQL instances, recommender
output, monitoring time series) into the common resource/cost/recommendation
model consumed by the dashboard.
"""

import logging
import random
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..providers.base import ProviderName, ResourceType

logger = logging.getLogger(__name__)

HOURS_PER_MONTH = 24 * 30
DEFAULT_HOURLY_RATE = 0.1

# On-demand hourly prices (USD) for common machine types
MACHINE_TYPE_HOURLY_RATES = {
    "n1-standard-1": 0.0475,
    "n1-standard-2": 0.0950,
    "n1-standard-4": 0.1900,
    "n1-standard-8": 0.3800,
    "n1-standard-16": 0.7600,
    "n1-highmem-2": 0.1184,
    "n1-highmem-4": 0.2368,
    "n1-highmem-8": 0.4736,
    "n1-highmem-16": 0.9472,
}

SQL_TIER_HOURLY_RATES = {
    "db-f1-micro": 0.0105,
    "db-g1-small": 0.0350,
    "db-n1-standard-1": 0.0965,
    "db-n1-standard-2": 0.1930,
    "db-n1-standard-4": 0.3860,
    "db-n1-standard-8": 0.7720,
    "db-n1-highmem-2": 0.2510,
    "db-n1-highmem-4": 0.5020,
}

# USD per GB-month
STORAGE_CLASS_GB_MONTH_RATES = {
    "STANDARD": 0.020,
    "MULTI_REGIONAL": 0.026,
    "REGIONAL": 0.020,
    "NEARLINE": 0.010,
    "COLDLINE": 0.004,
    "ARCHIVE": 0.0012,
}
ASSUMED_BUCKET_SIZE_GB = 100
PERSISTENT_DISK_GB_MONTH_RATE = 0.04

LOW_UTILIZATION_THRESHOLD = 30
HIGH_UTILIZATION_THRESHOLD = 70
DOWNSIZE_SAVINGS_RATIO = 0.3

PRIORITY_MAP = {
    "HIGH": "high",
    "CRITICAL": "high",
    "MEDIUM": "medium",
    "LOW": "low",
}
DEFAULT_PRIORITY = "medium"

LOW_UTILIZATION_ADVICE = {
    ResourceType.COMPUTE.value: "Consider downsizing to a smaller machine type",
    ResourceType.STORAGE.value: "Consider moving rarely accessed data to a colder storage class",
    ResourceType.DATABASE.value: "Consider a smaller database tier",
}


class EfficiencyScore(Enum):
    """Efficiency category derived from utilization."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Priority(Enum):
    """Normalized recommendation priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NormalizedModel(BaseModel):
    """Base for normalized records: enum values stored, camelCase on the wire."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(by_alias=True, mode="json")


class ResourceRecommendation(NormalizedModel):
    """Optimization hint attached to a single resource."""

    description: str
    potential_savings: float = Field(0.0, ge=0, alias="potentialSavings")


class NormalizedResource(NormalizedModel):
    """A cloud resource in the provider-independent shape."""

    id: str
    name: str
    type: ResourceType
    provider: ProviderName
    status: str | None = None
    region: str | None = None
    description: str | None = None
    cost: float = Field(0.0, ge=0, description="Estimated monthly cost in USD")
    cost_change: float = Field(0.0, alias="costChange", description="Percentage delta")
    utilization: float | None = Field(None, ge=0, le=100)
    efficiency_score: EfficiencyScore | None = Field(None, alias="efficiencyScore")
    tags: list[str] = Field(default_factory=list)
    recommendations: list[ResourceRecommendation] = Field(default_factory=list)
    children: list["NormalizedResource"] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        """Drop blanks and duplicates, keeping first occurrence order."""
        seen = []
        for tag in v:
            clean = str(tag).strip()
            if clean and clean not in seen:
                seen.append(clean)
        return seen

    @model_validator(mode="after")
    def derive_efficiency_score(self):
        """Keep the efficiency score consistent with utilization."""
        if self.utilization is not None:
            self.efficiency_score = efficiency_score(self.utilization).value
        return self


class ServiceCost(NormalizedModel):
    name: str
    cost: float = 0.0


class NormalizedCostSummary(NormalizedModel):
    """Cost breakdown for one provider."""

    provider: ProviderName
    total_cost: float = Field(0.0, ge=0, alias="totalCost")
    currency: str = "USD"
    time_range: dict[str, Any] = Field(default_factory=dict, alias="timeRange")
    services: list[ServiceCost] = Field(default_factory=list)
    projects: list[dict[str, Any]] = Field(default_factory=list)
    trends: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Validate and normalize currency code."""
        if not v or not v.strip():
            raise ValueError("Currency must be specified")
        return v.upper().strip()

    @property
    def service_breakdown(self) -> dict[str, float]:
        """Get cost breakdown by service name."""
        breakdown = {}
        for service in self.services:
            breakdown[service.name] = breakdown.get(service.name, 0.0) + service.cost
        return breakdown


class NormalizedProject(NormalizedModel):
    id: str
    name: str
    provider: ProviderName
    status: str = "ACTIVE"
    cost: float = 0.0


class NormalizedRecommendation(NormalizedModel):
    """Provider recommendation in the dashboard shape."""

    id: str
    provider: ProviderName
    type: str = "optimization"
    priority: Priority = Field(Priority.MEDIUM, validate_default=True)
    potential_savings: str = "$0"
    description: str | None = None
    affected_resources: list[str] = Field(default_factory=list)


class NormalizedUtilization(NormalizedModel):
    provider: ProviderName
    metrics: list[dict[str, Any]] = Field(default_factory=list)
    summary: dict[str, float] = Field(default_factory=dict)


def _last_segment(value: Any) -> str:
    """Reduce a resource URL like ``.../zones/us-central1-a`` to its last segment."""
    if not value:
        return ""
    return str(value).rstrip("/").rsplit("/", 1)[-1]


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def calculate_instance_cost(machine_type: str | None) -> float:
    """
    Estimate the monthly cost of a compute instance.

    Args:
        machine_type: Machine type name or its full resource URL

    Returns:
        Hourly rate x 24 x 30, rounded to cents; unknown types use the default rate
    """
    hourly_rate = MACHINE_TYPE_HOURLY_RATES.get(_last_segment(machine_type), DEFAULT_HOURLY_RATE)
    return round(hourly_rate * HOURS_PER_MONTH, 2)


def calculate_sql_cost(tier: str | None) -> float:
    """Estimate the monthly cost of a Cloud SQL instance from its tier."""
    hourly_rate = SQL_TIER_HOURLY_RATES.get(tier or "", DEFAULT_HOURLY_RATE)
    return round(hourly_rate * HOURS_PER_MONTH, 2)


def calculate_bucket_cost(storage_class: str | None, size_gb: float | None = None) -> float:
    """Estimate the monthly cost of a bucket from its storage class."""
    rate = STORAGE_CLASS_GB_MONTH_RATES.get(
        (storage_class or "STANDARD").upper(), STORAGE_CLASS_GB_MONTH_RATES["STANDARD"]
    )
    size = size_gb if size_gb is not None else ASSUMED_BUCKET_SIZE_GB
    return round(size * rate, 2)


def efficiency_score(utilization: float) -> EfficiencyScore:
    """Map utilization (0-100) to Low (<30), Medium (<70) or High."""
    if utilization < LOW_UTILIZATION_THRESHOLD:
        return EfficiencyScore.LOW
    if utilization < HIGH_UTILIZATION_THRESHOLD:
        return EfficiencyScore.MEDIUM
    return EfficiencyScore.HIGH


def map_priority(priority: Any) -> str:
    """Map a raw provider severity onto low/medium/high; unknown values are medium."""
    if not priority:
        return DEFAULT_PRIORITY
    return PRIORITY_MAP.get(str(priority).upper().strip(), DEFAULT_PRIORITY)


def _impact_amount(cost_impact: Any) -> float:
    """Extract a numeric amount from the shapes providers use for cost impact."""
    if cost_impact is None or isinstance(cost_impact, bool):
        return 0.0
    if isinstance(cost_impact, (int, float, str)):
        return _to_float(cost_impact)
    if isinstance(cost_impact, dict):
        if "amount" in cost_impact:
            return _impact_amount(cost_impact["amount"])
        # google.type.Money
        if "units" in cost_impact or "nanos" in cost_impact:
            return _to_float(cost_impact.get("units")) + _to_float(cost_impact.get("nanos")) / 1e9
    return 0.0


def format_savings(cost_impact: Any) -> str:
    """Format a cost impact as a dollar string, ``$0`` when absent or zero."""
    amount = abs(_impact_amount(cost_impact))
    if not amount:
        return "$0"
    if amount.is_integer():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}".rstrip("0").rstrip(".")


class UtilizationSource(ABC):
    """Supplies utilization percentages for raw resources."""

    @abstractmethod
    def utilization_for(self, resource_type: str, raw: dict[str, Any]) -> float | None:
        """Return utilization in 0-100, or None when unknown."""
        pass


class UnknownUtilization(UtilizationSource):
    """No monitoring data: utilization stays unknown."""

    def utilization_for(self, resource_type: str, raw: dict[str, Any]) -> float | None:
        return None


UNKNOWN = UnknownUtilization()


class PlaceholderUtilization(UtilizationSource):
    """Synthetic utilization for demos; values are random, not measured.

    Each resource gets a value derived from the seed and its identity, so
    repeated requests see the same utilization. Without a seed one is drawn
    per instance.
    """

    def __init__(self, seed: int | None = None):
        self.seed = seed if seed is not None else random.randrange(2**32)

    def utilization_for(self, resource_type: str, raw: dict[str, Any]) -> float | None:
        identity = raw.get("id") or raw.get("connectionName") or raw.get("name") or ""
        generator = random.Random(f"{self.seed}:{resource_type}:{identity}")
        return round(generator.uniform(0, 100), 2)


class MonitoringUtilization(UtilizationSource):
    """Utilization measured by Cloud Monitoring, keyed by instance id."""

    def __init__(self, series: dict[str, float], fallback: UtilizationSource | None = None):
        self.series = series
        self.fallback = fallback or UNKNOWN

    @classmethod
    def from_time_series(
        cls, payload: dict[str, Any] | None, fallback: UtilizationSource | None = None
    ) -> "MonitoringUtilization":
        """
        Build from a Monitoring ``timeSeries`` payload.

        CPU utilization points are fractions (0-1); each instance gets the
        mean of its points as a percentage.
        """
        series = {}
        for time_series in (payload or {}).get("timeSeries", []) or []:
            labels = (time_series.get("resource") or {}).get("labels") or {}
            instance_id = labels.get("instance_id") or labels.get("database_id")
            values = [
                _to_float((point.get("value") or {}).get("doubleValue"))
                for point in time_series.get("points", []) or []
            ]
            if instance_id and values:
                mean = sum(values) / len(values) * 100
                series[str(instance_id)] = round(min(max(mean, 0.0), 100.0), 2)
        return cls(series, fallback)

    @staticmethod
    def _series_keys(resource_type: str, raw: dict[str, Any]) -> list[Any]:
        if resource_type == ResourceType.DATABASE.value:
            # Cloud SQL series are labelled database_id="project:instance"
            project = raw.get("project") or (raw.get("connectionName") or "").split(":", 1)[0]
            if project and raw.get("name"):
                return [f"{project}:{raw['name']}", raw.get("name")]
        return [raw.get("id"), raw.get("name")]

    def utilization_for(self, resource_type: str, raw: dict[str, Any]) -> float | None:
        for key in self._series_keys(resource_type, raw):
            if key is not None and str(key) in self.series:
                return self.series[str(key)]
        return self.fallback.utilization_for(resource_type, raw)


def extract_compute_instances(payload: Any) -> list[dict[str, Any]]:
    """Flatten zonal or aggregated instance listings into a list of instances."""
    if isinstance(payload, list):
        return payload
    items = (payload or {}).get("items") or []
    if isinstance(items, dict):
        instances = []
        for scope in items.values():
            if isinstance(scope, dict):
                instances.extend(scope.get("instances") or [])
        return instances
    return list(items)


def _label_tags(labels: dict[str, Any] | None) -> list[str]:
    return [f"{key}:{value}" for key, value in (labels or {}).items()]


class ResourceTransformer:
    """Turns raw provider entities into normalized records. Performs no I/O."""

    def __init__(self, utilization_source: UtilizationSource | None = None):
        self.utilization_source = utilization_source or UNKNOWN

    def with_utilization(self, utilization_source: UtilizationSource) -> "ResourceTransformer":
        """Return a transformer that reads utilization from another source."""
        return ResourceTransformer(utilization_source)

    def _recommendations(
        self, resource_type: ResourceType, cost: float, utilization: float | None
    ) -> list[ResourceRecommendation]:
        if utilization is None or utilization >= LOW_UTILIZATION_THRESHOLD:
            return []
        return [
            ResourceRecommendation(
                description=LOW_UTILIZATION_ADVICE.get(resource_type.value, "Consider downsizing"),
                potential_savings=cost * DOWNSIZE_SAVINGS_RATIO,
            )
        ]

    def compute_instance(self, raw: dict[str, Any], provider: str = "gcp") -> NormalizedResource:
        """Normalize a Compute Engine instance."""
        resource_id = str(raw.get("id") or raw.get("name") or "")
        machine_type = _last_segment(raw.get("machineType"))
        cost = calculate_instance_cost(machine_type)
        utilization = self.utilization_source.utilization_for(ResourceType.COMPUTE.value, raw)

        tags = list((raw.get("tags") or {}).get("items") or []) + _label_tags(raw.get("labels"))
        children = [
            self._boot_disk(disk, resource_id, provider)
            for disk in raw.get("disks") or []
            if disk.get("boot")
        ]

        return NormalizedResource(
            id=resource_id,
            name=raw.get("name") or resource_id,
            type=ResourceType.COMPUTE,
            provider=provider,
            status=raw.get("status"),
            region=_last_segment(raw.get("zone")) or None,
            description=f"{machine_type} instance" if machine_type else None,
            cost=cost,
            utilization=utilization,
            tags=tags,
            recommendations=self._recommendations(ResourceType.COMPUTE, cost, utilization),
            children=children,
        )

    def _boot_disk(self, disk: dict[str, Any], instance_id: str, provider: str) -> NormalizedResource:
        size_gb = _to_float(disk.get("diskSizeGb"))
        name = _last_segment(disk.get("source")) or disk.get("deviceName") or "boot-disk"
        return NormalizedResource(
            id=f"{instance_id}/{disk.get('deviceName') or name}",
            name=name,
            type=ResourceType.STORAGE,
            provider=provider,
            description=f"{size_gb:g} GB boot disk",
            cost=round(size_gb * PERSISTENT_DISK_GB_MONTH_RATE, 2),
        )

    def storage_bucket(self, raw: dict[str, Any], provider: str = "gcp") -> NormalizedResource:
        """Normalize a Cloud Storage bucket."""
        name = raw.get("name") or str(raw.get("id") or "")
        storage_class = (raw.get("storageClass") or "STANDARD").upper()
        size_gb = _to_float(raw["sizeGb"]) if raw.get("sizeGb") is not None else None
        cost = calculate_bucket_cost(storage_class, size_gb)
        utilization = self.utilization_source.utilization_for(ResourceType.STORAGE.value, raw)

        return NormalizedResource(
            id=str(raw.get("id") or name),
            name=name,
            type=ResourceType.STORAGE,
            provider=provider,
            region=raw.get("location"),
            description=f"{storage_class} bucket",
            cost=cost,
            utilization=utilization,
            tags=_label_tags(raw.get("labels")),
            recommendations=self._recommendations(ResourceType.STORAGE, cost, utilization),
        )

    def sql_instance(self, raw: dict[str, Any], provider: str = "gcp") -> NormalizedResource:
        """Normalize a Cloud SQL instance."""
        settings = raw.get("settings") or {}
        tier = settings.get("tier")
        name = raw.get("name") or ""
        cost = calculate_sql_cost(tier)
        utilization = self.utilization_source.utilization_for(ResourceType.DATABASE.value, raw)

        description = " ".join(part for part in (raw.get("databaseVersion"), tier) if part)
        return NormalizedResource(
            id=raw.get("connectionName") or name,
            name=name,
            type=ResourceType.DATABASE,
            provider=provider,
            status=raw.get("state"),
            region=raw.get("region"),
            description=description or None,
            cost=cost,
            utilization=utilization,
            tags=_label_tags(settings.get("userLabels")),
            recommendations=self._recommendations(ResourceType.DATABASE, cost, utilization),
        )

    def resources(self, raw: dict[str, Any], provider: str) -> list[NormalizedResource]:
        """Normalize ``{"compute": [...], "storage": [...], "database": [...]}``."""
        resources = []
        resources.extend(self.compute_instance(item, provider) for item in raw.get("compute", []))
        resources.extend(self.storage_bucket(item, provider) for item in raw.get("storage", []))
        resources.extend(self.sql_instance(item, provider) for item in raw.get("database", []))
        return resources

    def recommendation(self, raw: dict[str, Any], provider: str = "gcp") -> NormalizedRecommendation:
        """Normalize a recommender entry (Recommender API or dashboard shape)."""
        cost_impact = raw.get("costImpact")
        if cost_impact is None:
            cost_impact = ((raw.get("primaryImpact") or {}).get("costProjection") or {}).get("cost")

        subtype = raw.get("recommenderSubtype")
        affected = list(raw.get("affected_resources") or [])
        for group in (raw.get("content") or {}).get("operationGroups") or []:
            for operation in group.get("operations") or []:
                resource = operation.get("resource")
                if resource and resource not in affected:
                    affected.append(resource)

        return NormalizedRecommendation(
            id=raw.get("name") or str(raw.get("id") or ""),
            provider=provider,
            type=raw.get("category") or (subtype.lower() if subtype else "optimization"),
            priority=map_priority(raw.get("priority")),
            potential_savings=format_savings(cost_impact),
            description=raw.get("description"),
            affected_resources=affected,
        )

    def recommendations(self, payload: Any, provider: str) -> list[NormalizedRecommendation]:
        items = payload if isinstance(payload, list) else (payload or {}).get("recommendations") or []
        return [self.recommendation(item, provider) for item in items]

    def project(self, raw: dict[str, Any], provider: str = "gcp") -> NormalizedProject:
        project_id = str(raw.get("projectId") or raw.get("id") or "")
        return NormalizedProject(
            id=project_id,
            name=raw.get("name") or raw.get("displayName") or project_id,
            provider=provider,
            status=raw.get("lifecycleState") or "ACTIVE",
            cost=_to_float(raw.get("cost")),
        )

    def projects(self, payload: Any, provider: str) -> list[NormalizedProject]:
        items = payload if isinstance(payload, list) else (payload or {}).get("projects") or []
        return [self.project(item, provider) for item in items]

    def cost_summary(self, raw: dict[str, Any], provider: str) -> NormalizedCostSummary:
        """Normalize ``{totalCost, services, projects, ...}`` cost data."""
        return NormalizedCostSummary(
            provider=provider,
            total_cost=_to_float(raw.get("totalCost")),
            currency=raw.get("currency") or "USD",
            time_range=raw.get("timeRange") or {},
            services=[
                ServiceCost(name=service.get("name") or "Unknown", cost=_to_float(service.get("cost")))
                for service in raw.get("services") or []
            ],
            projects=raw.get("projects") or [],
            trends=raw.get("trends") or [],
        )

    def utilization(self, raw: dict[str, Any], provider: str) -> NormalizedUtilization:
        """Normalize a monitoring payload; summarizes CPU when no summary is given."""
        metrics = raw.get("timeSeries") or []
        summary = dict(raw.get("summary") or {})
        if not summary and metrics:
            series = MonitoringUtilization.from_time_series(raw).series
            if series:
                summary["cpu"] = round(sum(series.values()) / len(series), 2)
        return NormalizedUtilization(provider=provider, metrics=metrics, summary=summary)
