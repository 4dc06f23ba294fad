"""
API data models for the spend dashboard.

Contains Pydantic models used across the API layer.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..providers.base import DataType, ProviderName


class DataSource(Enum):
    """Where the data in a response came from."""

    LIVE = "live"
    SAMPLE = "sample"
    MOCK = "mock"
    UNAVAILABLE = "unavailable"


def to_jsonable(data: Any) -> Any:
    """Serialize normalized records (or lists of them) for the wire."""
    if isinstance(data, BaseModel):
        return data.to_dict() if hasattr(data, "to_dict") else data.model_dump(mode="json")
    if isinstance(data, list):
        return [to_jsonable(item) for item in data]
    return data


class ProviderDataResult(BaseModel):
    """Normalized data for one provider and data type, tagged with its source."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    provider: ProviderName
    data_type: DataType = Field(..., alias="dataType")
    source: DataSource
    data: Any = None
    error: str | None = None

    @property
    def is_live(self) -> bool:
        return self.source in (DataSource.LIVE.value, DataSource.SAMPLE.value)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "provider": self.provider,
            "dataType": self.data_type,
            "source": self.source,
            "data": to_jsonable(self.data),
            "error": self.error,
        }


class HealthCheck(BaseModel):
    status: str
    timestamp: datetime
    version: str
    auth_method: str | None = None


class ProxyErrorResponse(BaseModel):
    error: str
    details: str | None = None
    hint: str | None = None
