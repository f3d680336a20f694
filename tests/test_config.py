"""
Tests for configuration models and YAML loading.
"""

import pytest
import yaml
from pydantic import ValidationError as PydanticValidationError

from apisix_bridge.config import (
    CapabilityPolicy,
    ClientSettings,
    GatewayConfig,
    LoggingConfig,
    load_config_from_yaml,
    save_config_to_yaml,
)


class TestGatewayConfig:
    def test_defaults(self):
        config = GatewayConfig(admin_url="http://127.0.0.1:9180")

        assert config.control_url == "http://127.0.0.1:9090"
        assert config.admin_prefix == "/apisix/admin"
        assert config.timeout == 30.0
        assert config.api_key is None
        assert config.declared_version is None

    def test_trailing_slash_is_stripped(self):
        config = GatewayConfig(admin_url="https://gw.example.com:9180/")

        assert config.admin_url == "https://gw.example.com:9180"

    def test_url_scheme_is_required(self):
        with pytest.raises(PydanticValidationError, match="http:// or https://"):
            GatewayConfig(admin_url="127.0.0.1:9180")

    @pytest.mark.parametrize(
        "prefix,expected",
        [("apisix/admin/", "/apisix/admin"), ("/custom", "/custom"), ("/", "")],
    )
    def test_prefix_is_normalized(self, prefix, expected):
        config = GatewayConfig(admin_url="http://gw:9180", admin_prefix=prefix)

        assert config.admin_prefix == expected

    def test_blank_api_key_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            GatewayConfig(admin_url="http://gw:9180", api_key="  ")

    def test_timeout_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            GatewayConfig(admin_url="http://gw:9180", timeout=0)


class TestLoggingConfig:
    def test_level_is_upper_cased(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_unknown_level(self):
        with pytest.raises(PydanticValidationError, match="Log level"):
            LoggingConfig(level="verbose")

    def test_unknown_format(self):
        with pytest.raises(PydanticValidationError, match="Log format"):
            LoggingConfig(format="xml")


def test_capability_policy_defaults():
    policy = CapabilityPolicy()

    assert policy.assume_secrets is True
    assert policy.assume_stream_routes is True
    assert policy.probe_optional_features is True


class TestClientSettings:
    def test_nested_environment_variables(self, monkeypatch):
        monkeypatch.setenv("APISIX_BRIDGE_GATEWAY__ADMIN_URL", "http://env-gw:9180")
        monkeypatch.setenv("APISIX_BRIDGE_GATEWAY__API_KEY", "env-key")
        monkeypatch.setenv("APISIX_BRIDGE_PERFORMANCE__RATE_LIMIT", "25")

        settings = ClientSettings()

        assert settings.gateway.admin_url == "http://env-gw:9180"
        assert settings.gateway.api_key == "env-key"
        assert settings.performance.rate_limit == 25


class TestYamlFiles:
    def test_load_expands_environment_variables(self, tmp_path, monkeypatch):
        monkeypatch.setenv("APISIX_ADMIN_KEY", "from-env")
        path = tmp_path / "config.yaml"
        path.write_text(
            "gateway:\n"
            "  admin_url: http://gw:9180\n"
            "  api_key: ${APISIX_ADMIN_KEY}\n"
            "logging:\n"
            "  level: info\n"
        )

        settings = load_config_from_yaml(path)

        assert settings.gateway.api_key == "from-env"
        assert settings.logging.level == "INFO"

    def test_missing_variable(self, tmp_path, monkeypatch):
        monkeypatch.delenv("APISIX_BRIDGE_TEST_UNSET", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(
            "gateway:\n  admin_url: http://gw:9180\n  api_key: ${APISIX_BRIDGE_TEST_UNSET}\n"
        )

        with pytest.raises(ValueError, match="APISIX_BRIDGE_TEST_UNSET"):
            load_config_from_yaml(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_from_yaml(tmp_path / "absent.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        with pytest.raises(ValueError, match="Empty configuration"):
            load_config_from_yaml(path)

    def test_save_redacts_api_key(self, tmp_path):
        settings = ClientSettings(
            gateway=GatewayConfig(admin_url="http://gw:9180", api_key="plain-secret")
        )
        path = tmp_path / "out" / "config.yaml"

        save_config_to_yaml(settings, path)

        saved = yaml.safe_load(path.read_text())
        assert saved["gateway"]["api_key"] == "${APISIX_ADMIN_KEY}"
        assert saved["gateway"]["admin_url"] == "http://gw:9180"
        assert "plain-secret" not in path.read_text()
