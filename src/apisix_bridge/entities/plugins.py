"""Gateway-wide plugin operations.

Plugins are not an entity collection: the catalogue and the schemas are
read-only Admin API views. Plugin metadata and global enablement are
stored in ``plugin_metadata`` and ``global_rules`` entities and are
reached through those wrappers.
"""

from __future__ import annotations

from typing import Any

from apisix_bridge.client.exceptions import APIError, NotFoundError
from apisix_bridge.core.compatibility import ValidationResult
from apisix_bridge.core.context import GatewayContext
from apisix_bridge.core.normalizer import Entity
from apisix_bridge.entities.common import GlobalRules, PluginMetadata
from apisix_bridge.utils.logging import get_logger

logger = get_logger(__name__)

# Global rule that carries plugins switched on gateway-wide
DEFAULT_GLOBAL_RULE_ID = "global-plugins"


class Plugins:
    """Plugin catalogue, schemas, metadata and global state."""

    def __init__(
        self,
        context: GatewayContext,
        metadata: PluginMetadata | None = None,
        global_rules: GlobalRules | None = None,
    ):
        """Initialize the wrapper.

        Args:
            context: Gateway context
            metadata: Plugin metadata wrapper to share with the facade
            global_rules: Global rule wrapper to share with the facade
        """
        self.context = context
        self.metadata = metadata or PluginMetadata(context)
        self.global_rules = global_rules or GlobalRules(context)

    async def list(self, subsystem: str | None = None) -> list[str]:
        """Names of the plugins the gateway has loaded.

        Args:
            subsystem: ``http`` or ``stream``; the gateway defaults to ``http``
        """
        params = {"subsystem": subsystem} if subsystem else None
        raw = await self.context.admin.get("plugins/list", params=params)
        # Some releases answer with an object keyed by plugin name
        names = raw.keys() if isinstance(raw, dict) else raw or []
        return [str(name) for name in names]

    async def is_available(self, plugin_name: str) -> bool:
        return plugin_name in await self.list()

    async def get_schema(self, plugin_name: str, schema_type: str | None = None) -> dict[str, Any]:
        """JSON schema of a plugin's configuration.

        Args:
            plugin_name: Plugin name
            schema_type: ``consumer`` or ``metadata`` for those schemas
                instead of the route-level one
        """
        params = {"schema_type": schema_type} if schema_type else None
        return await self.context.admin.get(f"plugins/{plugin_name}", params=params)

    async def validate_config(self, plugin_name: str, config: Any) -> ValidationResult:
        """Check a configuration against the gateway's schema for the plugin.

        A plugin the gateway does not know is reported as an error.
        """
        try:
            schema = await self.get_schema(plugin_name)
        except APIError as e:
            return ValidationResult(
                valid=False,
                errors=[f"Schema for plugin '{plugin_name}' is unavailable: {e.message}"],
            )
        valid, errors = self.context.validator.validate_plugin_config(plugin_name, config, schema)
        return ValidationResult(valid=valid, errors=errors)

    async def get_metadata(self, plugin_name: str) -> Entity:
        return await self.metadata.get(plugin_name)

    async def update_metadata(self, plugin_name: str, metadata: dict[str, Any]) -> Entity:
        return await self.metadata.update(plugin_name, metadata)

    async def delete_metadata(self, plugin_name: str) -> bool:
        """Delete a plugin's metadata; False when it had none."""
        try:
            return await self.metadata.delete(plugin_name)
        except NotFoundError:
            return False

    async def list_metadata(self) -> list[Entity]:
        return await self.metadata.list()

    async def set_global_state(
        self,
        plugin_name: str,
        enabled: bool,
        config: dict[str, Any] | None = None,
        rule_id: str = DEFAULT_GLOBAL_RULE_ID,
    ) -> Entity:
        """Switch a plugin on or off for every request.

        Enabling puts the plugin into the global rule ``rule_id``, creating
        the rule when needed. A plugin already in the rule is re-enabled
        with its current configuration unless ``config`` is given.
        Disabling keeps the configuration and sets ``_meta.disable``.

        Returns:
            The global rule after the change

        Raises:
            NotFoundError: If disabling and the rule does not exist
            StateError: If disabling a plugin the rule does not configure
        """
        if not enabled:
            rule = await self.global_rules.toggle_plugin(rule_id, plugin_name, False)
        else:
            try:
                current = await self.global_rules.get(rule_id)
            except NotFoundError:
                current = None

            if current is None:
                rule = await self.global_rules.create(
                    {"plugins": {plugin_name: config or {}}}, rule_id
                )
            elif config is None and plugin_name in (current.get("plugins") or {}):
                rule = await self.global_rules.toggle_plugin(rule_id, plugin_name, True)
            else:
                rule = await self.global_rules.add_plugin(rule_id, plugin_name, config or {})

        logger.info(
            "plugin_global_state_changed",
            plugin=plugin_name,
            enabled=enabled,
            rule_id=rule_id,
        )
        return rule

    async def enable(
        self,
        plugin_name: str,
        config: dict[str, Any] | None = None,
        rule_id: str = DEFAULT_GLOBAL_RULE_ID,
    ) -> Entity:
        return await self.set_global_state(plugin_name, True, config=config, rule_id=rule_id)

    async def disable(self, plugin_name: str, rule_id: str = DEFAULT_GLOBAL_RULE_ID) -> Entity:
        return await self.set_global_state(plugin_name, False, rule_id=rule_id)
