"""Data services backing the API."""

from .cloud_data_service import CloudDataService, FetchResult, MockMode

__all__ = ["CloudDataService", "FetchResult", "MockMode"]
