"""Entity wrappers for services, upstreams, consumers and plugin holders.

Helpers that edit part of an entity read it, change the body and PUT it
back whole, so the result does not depend on how a release merges PATCH
bodies.
"""

import uuid
from typing import Any

from apisix_bridge.client.exceptions import StateError
from apisix_bridge.core.normalizer import Entity
from apisix_bridge.entities.base import EntityResource, editable_body
from apisix_bridge.entities.credentials import Credentials


def _plugins_of(body: dict[str, Any]) -> dict[str, Any]:
    plugins = body.get("plugins")
    return dict(plugins) if isinstance(plugins, dict) else {}


class PluginHostResource(EntityResource):
    """An entity whose payload is mainly a ``plugins`` object."""

    def _configured(self, body: dict[str, Any], entity_id: str, plugin_name: str) -> dict[str, Any]:
        plugins = _plugins_of(body)
        if not isinstance(plugins.get(plugin_name), dict):
            raise StateError(
                f"Plugin '{plugin_name}' is not configured on {self.endpoint}/{entity_id}"
            )
        return plugins

    async def add_plugin(self, entity_id: str, plugin_name: str, config: dict[str, Any]) -> Entity:
        """Set a plugin's configuration, replacing any existing one."""

        def change(body: dict[str, Any]) -> None:
            body["plugins"] = {**_plugins_of(body), plugin_name: config}

        return await self._rewrite(entity_id, change)

    async def update_plugin(
        self, entity_id: str, plugin_name: str, config: dict[str, Any]
    ) -> Entity:
        """Merge ``config`` into a plugin that is already configured.

        Raises:
            StateError: If the entity does not configure the plugin
        """

        def change(body: dict[str, Any]) -> None:
            plugins = self._configured(body, entity_id, plugin_name)
            plugins[plugin_name] = {**plugins[plugin_name], **config}
            body["plugins"] = plugins

        return await self._rewrite(entity_id, change)

    async def remove_plugin(self, entity_id: str, plugin_name: str) -> Entity:
        """Drop a plugin; an entity without it is returned unchanged."""
        current = await self.get(entity_id)
        plugins = _plugins_of(current)
        if plugin_name not in plugins:
            return current
        del plugins[plugin_name]
        return await self.update(entity_id, {**editable_body(current), "plugins": plugins})

    async def toggle_plugin(self, entity_id: str, plugin_name: str, enabled: bool) -> Entity:
        """Switch a configured plugin on or off through ``_meta.disable``.

        Raises:
            StateError: If the entity does not configure the plugin
        """

        def change(body: dict[str, Any]) -> None:
            plugins = self._configured(body, entity_id, plugin_name)
            config = dict(plugins[plugin_name])
            config["_meta"] = {**(config.get("_meta") or {}), "disable": not enabled}
            plugins[plugin_name] = config
            body["plugins"] = plugins

        return await self._rewrite(entity_id, change)


class Services(EntityResource):
    resource_type = "services"


def _same_node(node: Any, host: str, port: int) -> bool:
    return isinstance(node, dict) and node.get("host") == host and node.get("port") == port


class Upstreams(EntityResource):
    """Upstreams, with node helpers.

    ``nodes`` is either an object mapping ``host:port`` to a weight or an
    array of ``{host, port, weight}`` objects. The helpers keep whichever
    format the upstream already uses.
    """

    resource_type = "upstreams"

    async def add_node(self, upstream_id: str, host: str, port: int, weight: int = 1) -> Entity:
        """Add a node, or reset its weight when it is already present."""

        def change(body: dict[str, Any]) -> None:
            nodes = body.get("nodes")
            if isinstance(nodes, list):
                kept = [node for node in nodes if not _same_node(node, host, port)]
                body["nodes"] = [*kept, {"host": host, "port": port, "weight": weight}]
            else:
                body["nodes"] = {**(nodes or {}), f"{host}:{port}": weight}

        return await self._rewrite(upstream_id, change)

    async def remove_node(self, upstream_id: str, host: str, port: int) -> Entity:
        """Remove a node; an upstream without it is returned unchanged."""
        current = await self.get(upstream_id)
        nodes = current.get("nodes")
        if isinstance(nodes, list):
            remaining: Any = [node for node in nodes if not _same_node(node, host, port)]
            found = len(remaining) < len(nodes)
        else:
            remaining = dict(nodes or {})
            found = remaining.pop(f"{host}:{port}", None) is not None
        if not found:
            return current
        return await self.update(upstream_id, {**editable_body(current), "nodes": remaining})

    async def update_node_weight(
        self, upstream_id: str, host: str, port: int, weight: int
    ) -> Entity:
        """Change the weight of an existing node.

        Raises:
            StateError: If the upstream has no such node
        """
        address = f"{host}:{port}"

        def change(body: dict[str, Any]) -> None:
            nodes = body.get("nodes")
            if isinstance(nodes, list):
                matches = [node for node in nodes if _same_node(node, host, port)]
                for node in matches:
                    node["weight"] = weight
            else:
                matches = [address] if address in (nodes or {}) else []
                if matches:
                    body["nodes"] = {**nodes, address: weight}
            if not matches:
                raise StateError(f"Upstream {upstream_id} has no node {address}")

        return await self._rewrite(upstream_id, change)


class Consumers(EntityResource):
    """Consumers, with shortcuts for attaching auth credentials.

    The shortcuts go through the credentials API, so they need a gateway
    that has it.
    """

    resource_type = "consumers"

    def credentials(self, username: str) -> Credentials:
        return Credentials(self.context, username)

    async def _add_credential(
        self,
        username: str,
        plugin_name: str,
        config: dict[str, Any],
        credential_id: str | None,
    ) -> Entity:
        credential_id = credential_id or f"{plugin_name}-{uuid.uuid4().hex[:12]}"
        return await self.credentials(username).create(
            {"plugins": {plugin_name: config}}, credential_id
        )

    async def add_key_auth(
        self, username: str, key: str, credential_id: str | None = None
    ) -> Entity:
        return await self._add_credential(username, "key-auth", {"key": key}, credential_id)

    async def add_basic_auth(
        self,
        username: str,
        auth_username: str,
        password: str,
        credential_id: str | None = None,
    ) -> Entity:
        config = {"username": auth_username, "password": password}
        return await self._add_credential(username, "basic-auth", config, credential_id)

    async def add_jwt_auth(
        self,
        username: str,
        key: str,
        secret: str | None = None,
        credential_id: str | None = None,
    ) -> Entity:
        config = {"key": key}
        if secret:
            config["secret"] = secret
        return await self._add_credential(username, "jwt-auth", config, credential_id)

    async def add_hmac_auth(
        self,
        username: str,
        key_id: str,
        secret_key: str,
        credential_id: str | None = None,
    ) -> Entity:
        config = {"key_id": key_id, "secret_key": secret_key}
        return await self._add_credential(username, "hmac-auth", config, credential_id)


class ConsumerGroups(PluginHostResource):
    resource_type = "consumer_groups"


class GlobalRules(PluginHostResource):
    resource_type = "global_rules"


class PluginConfigs(PluginHostResource):
    resource_type = "plugin_configs"


class Protos(EntityResource):
    resource_type = "protos"


class PluginMetadata(EntityResource):
    """Plugin metadata, keyed by plugin name."""

    resource_type = "plugin_metadata"
