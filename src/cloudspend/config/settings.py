"""
Configuration management for the multi-cloud spend dashboard.

Uses dynaconf for flexible configuration with YAML files and environment overrides.
"""

import logging
import os
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf, Validator
from dynaconf.validator import ValidationError

logger = logging.getLogger(__name__)

# Get the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

DEFAULT_SETTINGS_FILES = [
    str(CONFIG_DIR / "config.yaml"),  # Base configuration
    str(CONFIG_DIR / "config.local.yaml"),  # Local overrides (git-ignored)
    str(CONFIG_DIR / ".secrets.yaml"),  # Secrets file (git-ignored)
]

MOCK_MODES = ["fallback", "always", "off"]

VALIDATORS = [
    # Only validate providers that are actually enabled
    Validator("clouds.gcp.project_id", must_exist=True, when=Validator("clouds.gcp.enabled", eq=True)),
    Validator("data.mock_mode", is_in=MOCK_MODES),
    Validator("data.request_timeout", gt=0),
    Validator("http.timeout", gt=0),
    Validator("proxy.port", gte=1024, lte=65535),
]

# Variable names used by earlier deployments of the dashboard
LEGACY_GCP_ENV = {
    "project_id": "GCP_PROJECT_ID",
    "api_key": "GCP_API_KEY",
    "service_account_key": "GCP_SERVICE_ACCOUNT_KEY",
}

SECRET_KEYS = ("api_key", "service_account_key", "access_token")


def build_settings(settings_files: list[str] | None = None) -> Dynaconf:
    """
    Build a dynaconf settings object.

    Args:
        settings_files: YAML files to load, later files overriding earlier ones

    Returns:
        Settings with ``CLOUDSPEND_`` environment overrides applied
        (nested via ``__``, e.g. ``CLOUDSPEND_CLOUDS__GCP__API_KEY``)
    """
    return Dynaconf(
        envvar_prefix="CLOUDSPEND",
        settings_files=settings_files if settings_files is not None else DEFAULT_SETTINGS_FILES,
        environments=False,
        load_dotenv=True,
        merge_enabled=True,
        nested_separator="__",
    )


def _lower_keys(section: Any) -> dict[str, Any]:
    """Copy a settings section into a plain dict with lowercase keys."""
    if not section:
        return {}
    return {str(key).lower(): value for key, value in dict(section).items()}


class CloudConfig:
    """Configuration wrapper for cloud provider and data settings."""

    def __init__(self, settings: Dynaconf | None = None):
        self.settings = settings if settings is not None else build_settings()
        self.settings.validators.register(*VALIDATORS)
        self._validate_config()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CloudConfig":
        """Build a configuration from an in-memory mapping instead of files."""
        settings = build_settings(settings_files=[])
        settings.update(data)
        return cls(settings)

    def _validate_config(self):
        """Validate the configuration; problems are logged, never fatal."""
        try:
            self.settings.validators.validate()
        except ValidationError as e:
            logger.warning(f"Configuration validation warning: {e}")
            logger.warning("Missing or invalid settings degrade to mock data")

    def _section(self, path: str) -> dict[str, Any]:
        return _lower_keys(self.settings.get(path, {}))

    @property
    def gcp(self) -> dict[str, Any]:
        """GCP configuration settings, with legacy environment fallbacks."""
        gcp = self._section("clouds.gcp")
        for key, env_name in LEGACY_GCP_ENV.items():
            if not gcp.get(key) and os.environ.get(env_name):
                gcp[key] = os.environ[env_name]
        return gcp

    @property
    def azure(self) -> dict[str, Any]:
        """Azure configuration settings."""
        return self._section("clouds.azure")

    @property
    def data(self) -> dict[str, Any]:
        """Data service settings."""
        return self._section("data")

    @property
    def proxy(self) -> dict[str, Any]:
        """Local proxy settings."""
        return self._section("proxy")

    @property
    def enabled_providers(self) -> list[str]:
        """List of enabled cloud providers."""
        enabled = []
        if self.gcp.get("enabled", True):
            enabled.append("gcp")
        if self.azure.get("enabled", True):
            enabled.append("azure")
        return enabled

    @property
    def mock_mode(self) -> str:
        mode = str(self.data.get("mock_mode") or "fallback").lower()
        if mode not in MOCK_MODES:
            logger.warning(f"Unknown mock mode {mode!r}, using fallback")
            return "fallback"
        return mode

    @property
    def request_timeout(self) -> float:
        return float(self.data.get("request_timeout") or 30)

    @property
    def placeholder_utilization(self) -> bool:
        return bool(self.data.get("placeholder_utilization", True))

    @property
    def utilization_seed(self) -> int | None:
        seed = self.data.get("utilization_seed")
        return int(seed) if seed is not None else None

    @property
    def http_timeout(self) -> float:
        return float(self._section("http").get("timeout") or 30)

    @property
    def proxy_host(self) -> str:
        return self.proxy.get("host") or "127.0.0.1"

    @property
    def proxy_port(self) -> int:
        return int(self.proxy.get("port") or 3001)

    def get_provider_config(self, provider: str) -> dict[str, Any]:
        """Get configuration for a specific cloud provider."""
        provider_configs = {
            "azure": self.azure,
            "gcp": self.gcp,
        }
        provider_config = provider_configs.get(provider.lower(), {})
        provider_config.setdefault("timeout", self.http_timeout)
        return provider_config

    def is_provider_enabled(self, provider: str) -> bool:
        """Check if a specific cloud provider is enabled."""
        return provider in self.enabled_providers

    def override_from_cli(self, cli_args: dict[str, Any]):
        """Override configuration with CLI arguments."""
        cli_mapping = {
            "gcp_project": "clouds.gcp.project_id",
            "proxy_url": "clouds.gcp.proxy_url",
            "mock_mode": "data.mock_mode",
            "request_timeout": "data.request_timeout",
            "proxy_host": "proxy.host",
            "proxy_port": "proxy.port",
        }

        for cli_key, config_path in cli_mapping.items():
            if cli_args.get(cli_key) is not None:
                self.settings.set(config_path, cli_args[cli_key])

        # Re-validate after overrides
        self._validate_config()

    def summary(self) -> dict[str, Any]:
        """Describe the effective configuration without revealing secrets."""
        gcp = self.gcp
        gcp_summary = {key: value for key, value in gcp.items() if key not in SECRET_KEYS}
        for key in SECRET_KEYS:
            gcp_summary[f"has_{key}"] = bool(gcp.get(key))

        return {
            "enabled_providers": self.enabled_providers,
            "gcp": gcp_summary,
            "azure": self.azure,
            "data": {
                "mock_mode": self.mock_mode,
                "request_timeout": self.request_timeout,
                "placeholder_utilization": self.placeholder_utilization,
                "utilization_seed": self.utilization_seed,
            },
            "http": {"timeout": self.http_timeout},
            "proxy": {"host": self.proxy_host, "port": self.proxy_port},
        }


def load_config(config_file: str | None = None) -> CloudConfig:
    """
    Load configuration from the default files plus an optional extra file.

    Args:
        config_file: Additional YAML file overriding the defaults

    Returns:
        A new configuration wrapper
    """
    settings_files = list(DEFAULT_SETTINGS_FILES)
    if config_file:
        settings_files.append(str(Path(config_file)))
    return CloudConfig(build_settings(settings_files))
