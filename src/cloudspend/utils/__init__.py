"""Shared utilities: HTTP transport, authentication and data normalization."""
