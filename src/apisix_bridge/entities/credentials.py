"""Consumer credential wrapper (nested under one consumer)."""

from typing import Any

from apisix_bridge.client.exceptions import ValidationError
from apisix_bridge.core.clone import PayloadCheck
from apisix_bridge.core.compatibility import AUTH_PLUGINS
from apisix_bridge.core.context import GatewayContext
from apisix_bridge.core.normalizer import Entity
from apisix_bridge.entities.base import EntityResource
from apisix_bridge.resources import get_endpoint


def check_credential_body(body: dict[str, Any]) -> list[str]:
    """A credential must configure at least one authentication plugin."""
    plugins = body.get("plugins")
    if not isinstance(plugins, dict) or not plugins:
        return ["Credential must define a non-empty 'plugins' object"]
    if not AUTH_PLUGINS.intersection(plugins):
        return [
            "Credential must configure an authentication plugin "
            f"({', '.join(sorted(AUTH_PLUGINS))})"
        ]
    return []


class Credentials(EntityResource):
    """Credentials of one consumer; needs a gateway with the credentials API."""

    resource_type = "credentials"

    def __init__(self, context: GatewayContext, consumer_id: str):
        """Initialize the wrapper.

        Args:
            context: Gateway context
            consumer_id: Username of the owning consumer
        """
        if not consumer_id:
            raise ValidationError("A consumer id is required for credentials")
        super().__init__(context, get_endpoint("credentials", consumer=consumer_id))
        self.consumer_id = consumer_id

    @staticmethod
    def _preflight(data: dict[str, Any]) -> None:
        errors = check_credential_body(data)
        if errors:
            raise ValidationError("Invalid credential", errors)

    async def create(self, data: dict[str, Any], entity_id: str | None = None) -> Entity:
        self._preflight(data)
        return await super().create(data, entity_id)

    async def update(self, entity_id: str, data: dict[str, Any]) -> Entity:
        self._preflight(data)
        return await super().update(entity_id, data)

    async def find_by_plugin(self, plugin_name: str) -> list[Entity]:
        return await self.find_by(lambda cred: plugin_name in (cred.get("plugins") or {}))

    def clone_check(self) -> PayloadCheck | None:
        return check_credential_body
