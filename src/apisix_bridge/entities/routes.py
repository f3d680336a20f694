"""HTTP route wrapper."""

from apisix_bridge.core.normalizer import Entity
from apisix_bridge.entities.base import EntityResource

ROUTE_ENABLED = 1
ROUTE_DISABLED = 0


class Routes(EntityResource):
    """Routes, with client-side lookups and status toggling."""

    resource_type = "routes"

    async def find_by_uri(self, uri_pattern: str) -> list[Entity]:
        """Routes whose ``uri`` or any of ``uris`` contains ``uri_pattern``."""
        return await self.find_by(
            lambda route: uri_pattern in (route.get("uri") or "")
            or any(uri_pattern in uri for uri in route.get("uris") or [])
        )

    async def find_by_method(self, method: str) -> list[Entity]:
        method = method.upper()
        return await self.find_by(lambda route: method in (route.get("methods") or []))

    async def find_by_host(self, host: str) -> list[Entity]:
        return await self.find_by(
            lambda route: route.get("host") == host or host in (route.get("hosts") or [])
        )

    async def enable(self, route_id: str) -> Entity:
        return await self.patch(route_id, {"status": ROUTE_ENABLED})

    async def disable(self, route_id: str) -> Entity:
        return await self.patch(route_id, {"status": ROUTE_DISABLED})
