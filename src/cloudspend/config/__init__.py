"""Configuration loading for cloudspend."""

from .settings import CloudConfig, load_config

__all__ = ["CloudConfig", "load_config"]
