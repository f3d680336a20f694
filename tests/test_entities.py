"""
Tests for the entity wrappers.

Tests cover:
    - Generic CRUD delegation and force delete
    - Route lookups and status toggling
    - Capability gating of credentials, secrets and stream routes
    - Credential and secret pre-flight validation
    - Certificate expiry helpers
    - Consumer auth shortcuts and upstream node helpers
"""

import time
import typing
from typing import Any

import pytest

from apisix_bridge.client.exceptions import (
    AuthenticationError,
    StateError,
    UnsupportedFeatureError,
    ValidationError,
)
from apisix_bridge.entities.base import EntityResource
from apisix_bridge.entities.ssl import SECONDS_PER_DAY, expiration_of
from tests.fakes import FakeGateway

KEY_AUTH = {"plugins": {"key-auth": {"key": "jack-secret"}}}


class TestAnnotations:
    def test_builtin_list_annotations_resolve(self):
        """Annotations after the list() method still mean the builtin list."""
        assert typing.get_type_hints(EntityResource.import_data)["data"] == str | list[Any]
        assert typing.get_type_hints(EntityResource.find_by)["return"] == list[dict[str, Any]]
        assert typing.get_type_hints(EntityResource.list)["return"] == list[dict[str, Any]]


class TestGenericOperations:
    @pytest.mark.asyncio
    async def test_create_get_update_delete(self, client, gateway):
        created = await client.upstreams.create(
            {"type": "roundrobin", "nodes": {"10.0.0.1:80": 1}}, entity_id="u1"
        )
        fetched = await client.upstreams.get("u1")
        updated = await client.upstreams.update(
            "u1", {"type": "chash", "nodes": {"10.0.0.1:80": 1}}
        )
        deleted = await client.upstreams.delete("u1")

        assert created["id"] == fetched["id"] == "u1"
        assert updated["type"] == "chash"
        assert deleted is True
        assert gateway.store["upstreams"] == {}

    @pytest.mark.asyncio
    async def test_force_delete_sends_query_flag(self, client, gateway):
        gateway.seed("upstreams", {"id": "u1", "nodes": {}})

        await client.upstreams.delete("u1", force=True)

        assert gateway.calls("DELETE", "upstreams/u1")[0].url.params["force"] == "true"

    @pytest.mark.asyncio
    async def test_exists(self, client, gateway):
        gateway.seed("services", {"id": "s1", "name": "billing"})

        assert await client.services.exists("s1") is True
        assert await client.services.exists("s2") is False

    @pytest.mark.asyncio
    async def test_exists_propagates_other_errors(self, connect):
        client = connect(FakeGateway(api_key="another-key"))

        with pytest.raises(AuthenticationError):
            await client.services.exists("s1")

    @pytest.mark.asyncio
    async def test_empty_id_is_rejected_locally(self, client, gateway):
        with pytest.raises(ValidationError):
            await client.services.get("")

        assert gateway.requests == []

    @pytest.mark.asyncio
    async def test_patch(self, client, gateway):
        gateway.seed("consumers", {"id": "jack", "username": "jack", "desc": "old"})

        patched = await client.consumers.patch("jack", {"desc": "new"})

        assert patched["desc"] == "new"
        assert patched["username"] == "jack"
        assert gateway.writes()[0].method == "PATCH"

    @pytest.mark.asyncio
    async def test_legacy_entities_have_ids(self, legacy_client, legacy_gateway):
        legacy_gateway.seed("global_rules", {"id": "g1", "plugins": {"prometheus": {}}})

        rules = await legacy_client.global_rules.list()
        rule = await legacy_client.global_rules.get("g1")

        assert rules == [rule]
        assert rule["id"] == "g1"

    @pytest.mark.asyncio
    async def test_plugin_metadata_is_keyed_by_plugin(self, client, gateway):
        await client.plugin_metadata.create({"log_format": {"host": "$host"}}, "http-logger")

        assert gateway.calls("PUT", "plugin_metadata/http-logger")


class TestRoutes:
    @pytest.fixture
    def routes(self, gateway):
        gateway.seed(
            "routes",
            {"id": "1", "uri": "/api/orders", "methods": ["GET"], "host": "shop.example.com"},
            {
                "id": "2",
                "uris": ["/api/users", "/api/admins"],
                "methods": ["POST"],
                "hosts": ["admin.example.com"],
            },
            {"id": "3", "uri": "/health"},
        )
        return gateway

    @pytest.mark.asyncio
    async def test_find_by_uri(self, client, routes):
        found = await client.routes.find_by_uri("/api/")

        assert [r["id"] for r in found] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_find_by_method_is_case_insensitive(self, client, routes):
        found = await client.routes.find_by_method("post")

        assert [r["id"] for r in found] == ["2"]

    @pytest.mark.asyncio
    async def test_find_by_host(self, client, routes):
        assert [r["id"] for r in await client.routes.find_by_host("shop.example.com")] == ["1"]
        assert [r["id"] for r in await client.routes.find_by_host("admin.example.com")] == ["2"]

    @pytest.mark.asyncio
    async def test_enable_and_disable(self, client, routes):
        await client.routes.disable("1")
        assert routes.store["routes"]["1"]["status"] == 0

        await client.routes.enable("1")
        assert routes.store["routes"]["1"]["status"] == 1
        assert [r.method for r in routes.writes()] == ["PATCH", "PATCH"]


class TestCredentials:
    @pytest.mark.asyncio
    async def test_unsupported_on_legacy_gateway(self, legacy_client, legacy_gateway):
        with pytest.raises(UnsupportedFeatureError) as exc_info:
            await legacy_client.credentials("jack").list()

        assert exc_info.value.feature == "credentials"
        assert exc_info.value.major_version == "2"
        assert legacy_gateway.calls(path="consumers/jack/credentials") == []

    @pytest.mark.asyncio
    async def test_create_and_list(self, client, gateway):
        gateway.seed("consumers", {"id": "jack", "username": "jack"})
        credentials = client.credentials("jack")

        created = await credentials.create(KEY_AUTH, "cred-1")
        listed = await credentials.list()

        assert created["id"] == "cred-1"
        assert gateway.calls("PUT", "consumers/jack/credentials/cred-1")
        assert [c["id"] for c in listed] == ["cred-1"]
        assert await credentials.find_by_plugin("key-auth") == listed

    @pytest.mark.parametrize(
        "body,message",
        [
            ({}, "non-empty 'plugins'"),
            ({"plugins": {}}, "non-empty 'plugins'"),
            ({"plugins": {"limit-count": {"count": 1}}}, "authentication plugin"),
        ],
    )
    @pytest.mark.asyncio
    async def test_preflight_rejects_bad_bodies(self, client, gateway, body, message):
        with pytest.raises(ValidationError) as exc_info:
            await client.credentials("jack").create(body, "cred-1")

        assert message in exc_info.value.errors[0]
        assert gateway.writes() == []

    def test_consumer_id_is_required(self, client):
        with pytest.raises(ValidationError):
            client.credentials("")


class TestConsumerAuthShortcuts:
    @pytest.mark.parametrize(
        "call,plugin,config",
        [
            (lambda c: c.add_key_auth("jack", "k-1", "cred"), "key-auth", {"key": "k-1"}),
            (
                lambda c: c.add_basic_auth("jack", "jack", "s3cret", "cred"),
                "basic-auth",
                {"username": "jack", "password": "s3cret"},
            ),
            (
                lambda c: c.add_jwt_auth("jack", "jwt-key", "jwt-secret", "cred"),
                "jwt-auth",
                {"key": "jwt-key", "secret": "jwt-secret"},
            ),
            (
                lambda c: c.add_hmac_auth("jack", "ak", "sk", "cred"),
                "hmac-auth",
                {"key_id": "ak", "secret_key": "sk"},
            ),
        ],
    )
    @pytest.mark.asyncio
    async def test_shortcut_creates_credential(self, client, gateway, call, plugin, config):
        gateway.seed("consumers", {"id": "jack", "username": "jack"})

        created = await call(client.consumers)

        assert created["id"] == "cred"
        body = gateway.body_of(gateway.calls("PUT", "consumers/jack/credentials/cred")[0])
        assert body == {"plugins": {plugin: config}}

    @pytest.mark.asyncio
    async def test_generated_credential_id(self, client, gateway):
        gateway.seed("consumers", {"id": "jack", "username": "jack"})

        created = await client.consumers.add_jwt_auth("jack", "jwt-key")

        assert created["id"].startswith("jwt-auth-")
        assert created["plugins"] == {"jwt-auth": {"key": "jwt-key"}}

    @pytest.mark.asyncio
    async def test_needs_the_credentials_api(self, legacy_client, legacy_gateway):
        with pytest.raises(UnsupportedFeatureError):
            await legacy_client.consumers.add_key_auth("jack", "k-1")

        assert legacy_gateway.writes() == []


class TestUpstreamNodes:
    @pytest.fixture
    def seeded(self, gateway):
        gateway.seed(
            "upstreams",
            {"id": "map", "type": "roundrobin", "nodes": {"10.0.0.1:80": 1}},
            {
                "id": "array",
                "type": "roundrobin",
                "nodes": [{"host": "10.0.0.1", "port": 80, "weight": 1}],
            },
        )
        return gateway

    @pytest.mark.asyncio
    async def test_add_node_keeps_object_format(self, client, seeded):
        updated = await client.upstreams.add_node("map", "10.0.0.2", 8080, weight=5)

        assert updated["nodes"] == {"10.0.0.1:80": 1, "10.0.0.2:8080": 5}
        assert updated["type"] == "roundrobin"
        body = seeded.body_of(seeded.calls("PUT", "upstreams/map")[0])
        assert "create_time" not in body and "id" not in body

    @pytest.mark.asyncio
    async def test_add_node_keeps_array_format(self, client, seeded):
        updated = await client.upstreams.add_node("array", "10.0.0.2", 8080)

        assert updated["nodes"] == [
            {"host": "10.0.0.1", "port": 80, "weight": 1},
            {"host": "10.0.0.2", "port": 8080, "weight": 1},
        ]

    @pytest.mark.asyncio
    async def test_remove_node(self, client, seeded):
        from_map = await client.upstreams.remove_node("map", "10.0.0.1", 80)
        from_array = await client.upstreams.remove_node("array", "10.0.0.1", 80)

        assert from_map["nodes"] == {}
        assert from_array["nodes"] == []

    @pytest.mark.asyncio
    async def test_removing_an_absent_node_writes_nothing(self, client, seeded):
        unchanged = await client.upstreams.remove_node("map", "10.9.9.9", 80)

        assert unchanged["nodes"] == {"10.0.0.1:80": 1}
        assert seeded.writes() == []

    @pytest.mark.asyncio
    async def test_update_node_weight(self, client, seeded):
        from_map = await client.upstreams.update_node_weight("map", "10.0.0.1", 80, 10)
        from_array = await client.upstreams.update_node_weight("array", "10.0.0.1", 80, 10)

        assert from_map["nodes"] == {"10.0.0.1:80": 10}
        assert from_array["nodes"] == [{"host": "10.0.0.1", "port": 80, "weight": 10}]

    @pytest.mark.asyncio
    async def test_update_weight_of_unknown_node(self, client, seeded):
        with pytest.raises(StateError, match="no node 10.9.9.9:80"):
            await client.upstreams.update_node_weight("map", "10.9.9.9", 80, 10)

        assert seeded.writes() == []


class TestStreamRoutes:
    @pytest.mark.asyncio
    async def test_unsupported_when_stream_mode_is_off(self, connect):
        client = connect(FakeGateway(stream_routes=False))

        with pytest.raises(UnsupportedFeatureError):
            await client.stream_routes.create({"server_port": 9100, "upstream_id": "u1"})

    @pytest.mark.asyncio
    async def test_patch_merges_and_puts(self, client, gateway):
        gateway.seed("stream_routes", {"id": "s1", "server_port": 9100, "upstream_id": "u1"})

        patched = await client.stream_routes.patch("s1", {"server_port": 9200})

        assert patched["server_port"] == 9200
        assert patched["upstream_id"] == "u1"
        assert gateway.calls("PATCH") == []
        assert "create_time" not in gateway.body_of(gateway.calls("PUT", "stream_routes/s1")[0])

    @pytest.mark.asyncio
    async def test_lookups(self, client, gateway):
        gateway.seed(
            "stream_routes",
            {"id": "s1", "server_port": 9100, "server_addr": "127.0.0.1"},
            {"id": "s2", "server_port": 9200, "remote_addr": "10.0.0.0/8"},
        )

        assert [r["id"] for r in await client.stream_routes.find_by_server_port(9200)] == ["s2"]
        by_addr = await client.stream_routes.find_by_server_address("127.0.0.1")
        by_remote = await client.stream_routes.find_by_remote_address("10.0.0.0/8")
        assert [r["id"] for r in by_addr] == ["s1"]
        assert [r["id"] for r in by_remote] == ["s2"]


class TestSecrets:
    VAULT = {"uri": "https://vault.example.com", "prefix": "kv/apisix", "token": "s.abc"}

    @pytest.mark.asyncio
    async def test_create_vault_secret(self, client, gateway):
        await client.secrets.create_vault_secret(self.VAULT, "team-a")

        assert gateway.store["secrets/vault"]["team-a"]["prefix"] == "kv/apisix"

    @pytest.mark.parametrize(
        "config,fragment",
        [
            ({"uri": "https://vault", "prefix": "kv"}, "missing: token"),
            ({"uri": "vault.local", "prefix": "kv", "token": "t"}, "http:// or https://"),
        ],
    )
    @pytest.mark.asyncio
    async def test_vault_preflight(self, client, gateway, config, fragment):
        with pytest.raises(ValidationError) as exc_info:
            await client.secrets.create_vault_secret(config, "team-a")

        assert any(fragment in error for error in exc_info.value.errors)
        assert gateway.requests == []

    @pytest.mark.asyncio
    async def test_aws_preflight(self, client, gateway):
        with pytest.raises(ValidationError):
            await client.secrets.create_aws_secret({"access_key_id": "AKIA"}, "aws-1")

        assert gateway.requests == []

    @pytest.mark.asyncio
    async def test_gcp_accepts_auth_file(self, client, gateway):
        await client.secrets.create_gcp_secret({"auth_file": "/etc/gcp.json"}, "gcp-1")

        assert "gcp-1" in gateway.store["secrets/gcp"]

    @pytest.mark.asyncio
    async def test_gcp_auth_config_needs_fields(self, client):
        with pytest.raises(ValidationError) as exc_info:
            await client.secrets.create_gcp_secret({"auth_config": {"client_email": "a@b"}})

        assert "private_key" in exc_info.value.errors[0]

    @pytest.mark.asyncio
    async def test_unsupported_on_legacy_gateway(self, legacy_client):
        with pytest.raises(UnsupportedFeatureError):
            await legacy_client.secrets.create_vault_secret(self.VAULT, "team-a")

    @pytest.mark.asyncio
    async def test_list_all_secrets(self, client, gateway):
        gateway.seed("secrets/aws", {"id": "aws-1", "access_key_id": "AKIA"})

        secrets = await client.secrets.list_all_secrets()

        assert secrets["vault"] == []
        assert [s["id"] for s in secrets["aws"]] == ["aws-1"]

    def test_unknown_manager(self, client):
        with pytest.raises(ValidationError):
            client.secrets.manager("azure")


class TestCertificateExpiry:
    def test_expiration_of(self):
        now = 1_700_000_000

        expired = expiration_of({"validity_end": now - 1}, now=now)
        soon = expiration_of({"validity_end": now + 10 * SECONDS_PER_DAY}, now=now)
        later = expiration_of({"validity_end": now + 90 * SECONDS_PER_DAY}, now=now)
        unknown = expiration_of({}, now=now)

        assert expired.is_expired and expired.days_remaining == 0
        assert soon.will_expire_soon and soon.days_remaining == 10
        assert not later.is_expired and not later.will_expire_soon
        assert unknown.days_remaining is None

    @pytest.mark.asyncio
    async def test_get_expiring_certificates(self, client, gateway):
        now = int(time.time())
        gateway.seed(
            "ssls",
            {"id": "a", "snis": ["a.example.com"], "validity_end": now + 5 * SECONDS_PER_DAY},
            {"id": "b", "snis": ["b.example.com"], "validity_end": now + 365 * SECONDS_PER_DAY},
        )

        expiring = await client.ssl.get_expiring_certificates(days_to_expire=30)

        assert [cert["id"] for cert in expiring] == ["a"]
        assert expiring[0]["expiration"]["will_expire_soon"] is True

    @pytest.mark.asyncio
    async def test_find_by_sni(self, client, gateway):
        gateway.seed("ssls", {"id": "a", "snis": ["a.example.com"]}, {"id": "b", "sni": "b.io"})

        assert [c["id"] for c in await client.ssl.find_by_sni("b.io")] == ["b"]
