"""Stream (L4) route wrapper."""

from typing import Any

from apisix_bridge.core.normalizer import Entity
from apisix_bridge.entities.base import EntityResource


class StreamRoutes(EntityResource):
    """Stream routes; unavailable when the gateway runs without stream mode."""

    resource_type = "stream_routes"

    async def patch(self, entity_id: str, data: dict[str, Any]) -> Entity:
        """Stream routes have no PATCH; merge over the current entity and PUT."""
        return await self._rewrite(entity_id, lambda body: body.update(data))

    async def find_by_server_port(self, server_port: int) -> list[Entity]:
        return await self.find_by(lambda route: route.get("server_port") == server_port)

    async def find_by_server_address(self, server_addr: str) -> list[Entity]:
        return await self.find_by(lambda route: route.get("server_addr") == server_addr)

    async def find_by_remote_address(self, remote_addr: str) -> list[Entity]:
        return await self.find_by(lambda route: route.get("remote_addr") == remote_addr)
