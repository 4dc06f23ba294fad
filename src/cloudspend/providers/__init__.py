"""Cloud provider clients for GCP and Azure.

Concrete clients register themselves with ProviderFactory when their module
is imported (``from cloudspend.providers import azure, gcp``).
"""

from .base import (
    CloudProviderError,
    DataType,
    ProviderClient,
    ProviderFactory,
    ProviderName,
    ResourceType,
)
