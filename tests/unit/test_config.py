"""Tests for the dynaconf-backed configuration wrapper."""

import pytest

from cloudspend.config.settings import CloudConfig


@pytest.mark.usefixtures("clean_env")
class TestCloudConfig:
    """Test cases for CloudConfig."""

    def test_from_dict(self, make_config):
        config = make_config({"enabled": True, "project_id": "p1", "api_key": "k"}, mock_mode="off")

        assert config.gcp["project_id"] == "p1"
        assert config.mock_mode == "off"
        assert config.request_timeout == 5
        assert config.placeholder_utilization is False
        assert config.enabled_providers == ["gcp", "azure"]

    def test_defaults(self):
        config = CloudConfig.from_dict({})

        assert config.mock_mode == "fallback"
        assert config.request_timeout == 30
        assert config.http_timeout == 30
        assert config.placeholder_utilization is True
        assert config.utilization_seed is None
        assert config.proxy_host == "127.0.0.1"
        assert config.proxy_port == 3001
        assert config.enabled_providers == ["gcp", "azure"]

    def test_invalid_mock_mode_falls_back(self, make_config):
        assert make_config(mock_mode="sometimes").mock_mode == "fallback"

    def test_disabled_provider(self, make_config):
        config = make_config({"enabled": False})
        assert config.enabled_providers == ["azure"]
        assert not config.is_provider_enabled("gcp")

    def test_legacy_environment_fallback(self, make_config, monkeypatch):
        monkeypatch.setenv("GCP_PROJECT_ID", "legacy-project")
        monkeypatch.setenv("GCP_API_KEY", "legacy-key")

        gcp = make_config({"enabled": True}).gcp

        assert gcp["project_id"] == "legacy-project"
        assert gcp["api_key"] == "legacy-key"

    def test_explicit_setting_beats_legacy_environment(self, make_config, monkeypatch):
        monkeypatch.setenv("GCP_PROJECT_ID", "legacy-project")
        assert make_config({"project_id": "configured"}).gcp["project_id"] == "configured"

    def test_provider_config_gets_http_timeout(self):
        config = CloudConfig.from_dict({"clouds": {"gcp": {"project_id": "p"}}, "http": {"timeout": 12}})
        assert config.get_provider_config("gcp")["timeout"] == 12
        assert config.get_provider_config("GCP")["project_id"] == "p"

    def test_summary_hides_secrets(self, make_config):
        config = make_config(
            {"project_id": "p1", "api_key": "secret-key", "service_account_key": "{...}", "access_token": "tok"}
        )

        summary = config.summary()

        assert summary["gcp"]["project_id"] == "p1"
        assert summary["gcp"]["has_api_key"] is True
        assert summary["gcp"]["has_access_token"] is True
        assert "secret-key" not in str(summary)
        assert "tok" not in summary["gcp"].values()
        assert "service_account_key" not in summary["gcp"]

    def test_override_from_cli(self, make_config):
        config = make_config({"project_id": "p1"})
        config.override_from_cli({"gcp_project": "p2", "mock_mode": "always", "proxy_port": None})

        assert config.gcp["project_id"] == "p2"
        assert config.mock_mode == "always"
        assert config.proxy_port == 3001

    def test_validation_problems_are_not_fatal(self, caplog):
        config = CloudConfig.from_dict({"clouds": {"gcp": {"enabled": True}}, "proxy": {"port": 80}})
        assert config.proxy_port == 80
        assert "Configuration validation warning" in caplog.text
