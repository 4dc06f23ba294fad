"""API layer: aggregation service and the local proxy."""
