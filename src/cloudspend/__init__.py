"""
Multi-Cloud Spend Dashboard Backend

Provider clients, normalization and aggregation for the GCP/Azure spending
dashboard, plus the local proxy that fronts the Google Cloud REST APIs.
"""

__version__ = "1.0.0"
__author__ = "Cloudspend Team"
