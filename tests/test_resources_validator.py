"""
Tests for the entity registry and pre-flight payload validation.
"""

import pytest

from apisix_bridge.core.compatibility import capabilities_for_version
from apisix_bridge.resources import get_endpoint, get_info, resource_for_endpoint
from apisix_bridge.validation.payload_validator import PayloadValidator


class TestRegistry:
    def test_scoped_endpoints(self):
        assert get_endpoint("credentials", consumer="jack") == "consumers/jack/credentials"
        assert get_endpoint("secrets", manager="aws") == "secrets/aws"
        assert get_endpoint("routes") == "routes"

    def test_scoped_endpoint_needs_scope(self):
        with pytest.raises(KeyError):
            get_endpoint("credentials")

    @pytest.mark.parametrize(
        "endpoint,name",
        [
            ("routes", "routes"),
            ("/stream_routes/", "stream_routes"),
            ("consumers/jack/credentials", "credentials"),
            ("secrets/vault", "secrets"),
        ],
    )
    def test_resource_for_endpoint(self, endpoint, name):
        assert resource_for_endpoint(endpoint).name == name

    def test_unknown_endpoint(self):
        assert resource_for_endpoint("consumers/jack/keys") is None

    def test_capability_gates(self):
        assert get_info("credentials").requires_capability == "supports_credentials"
        assert get_info("routes").requires_capability is None

    def test_ssl_clone_profile(self):
        profile = get_info("ssls").clone_profile

        assert "key" in profile.sensitive_fields
        assert {"id", "validity_end"} <= profile.stripped_fields


class TestPayloadValidator:
    @pytest.fixture
    def validator(self):
        return PayloadValidator()

    def test_valid_route(self, validator):
        assert validator.validate_payload("routes", {"uris": ["/a"]}) == (True, [])

    def test_missing_alternatives(self, validator):
        valid, errors = validator.validate_payload("routes", {"upstream_id": "1"})

        assert valid is False
        assert errors == ["Missing required field: 'uri' or 'uris'"]

    def test_blank_values_count_as_missing(self, validator):
        _, errors = validator.validate_payload("ssls", {"cert": "", "key": "k"})

        assert errors == ["Missing required field: 'cert'"]

    def test_partial_skips_required_fields(self, validator):
        assert validator.validate_payload("routes", {"status": 0}, partial=True) == (True, [])

    def test_field_types(self, validator):
        _, errors = validator.validate_payload(
            "routes", {"uri": "/a", "plugins": [], "methods": "GET"}
        )

        assert "Field 'plugins' expected object, got list" in errors
        assert "Field 'methods' expected array, got str" in errors

    def test_non_object_payload(self, validator):
        assert validator.validate_payload("routes", ["uri"]) == (
            False,
            ["Payload must be an object, got list"],
        )

    def test_scoped_endpoint_uses_entity_rules(self, validator):
        _, errors = validator.validate_payload("consumers/jack/credentials", {})

        assert errors == ["Missing required field: 'plugins'"]

    def test_unknown_resource_only_checks_types(self, validator):
        assert validator.validate_payload("widgets", {"anything": 1}) == (True, [])

    def test_plugins_checked_against_release(self):
        validator = PayloadValidator(capabilities=capabilities_for_version("2.15.0"))

        _, errors = validator.validate_payload(
            "routes", {"uri": "/a", "plugins": {"csrf": {}, "cors": {}}}
        )

        assert errors == ["Plugin 'csrf' is not supported in release 2.x"]

    def test_plugins_unchecked_without_capabilities(self, validator):
        assert validator.validate_payload("routes", {"uri": "/a", "plugins": {"csrf": {}}})[0]

    def test_validate_batch(self, validator):
        report = validator.validate_batch(
            "upstreams",
            [{"nodes": {"a:80": 1}}, {"id": "u2", "type": "chash"}, {"service_name": "svc"}],
        )

        assert report["valid_count"] == 2
        assert report["invalid_count"] == 1
        assert report["total_checked"] == 3
        assert report["errors"] == [
            {
                "index": 1,
                "id": "u2",
                "errors": ["Missing required field: 'nodes' or 'service_name'"],
            }
        ]
