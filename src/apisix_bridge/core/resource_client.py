"""Generic CRUD primitives over one Admin API collection.

Every entity wrapper routes through this class; it knows endpoints and ids,
never entity schemas.
"""

from typing import Any

from apisix_bridge.client.admin_client import AdminAPIClient
from apisix_bridge.client.exceptions import NotFoundError, ValidationError
from apisix_bridge.core.normalizer import Entity, ResponseNormalizer
from apisix_bridge.utils.logging import get_logger

logger = get_logger(__name__)


def _require_id(entity_id: str | None, operation: str) -> str:
    if entity_id is None or str(entity_id).strip() == "":
        raise ValidationError(f"An id is required for {operation}")
    return str(entity_id)


def entity_path(endpoint: str, entity_id: str) -> str:
    """Join a collection endpoint and an entity id."""
    return f"{endpoint.rstrip('/')}/{entity_id}"


class ResourceClient:
    """List/get/create/update/patch/delete/exists for any endpoint."""

    def __init__(self, admin: AdminAPIClient, normalizer: ResponseNormalizer | None = None):
        """Initialize resource client.

        Args:
            admin: Admin API transport
            normalizer: Envelope normalizer applied to every response
        """
        self.admin = admin
        self.normalizer = normalizer or ResponseNormalizer()

    async def list_raw(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Fetch a collection and return the undecoded envelope."""
        return await self.admin.get(endpoint, params=params or None)

    async def list(self, endpoint: str, params: dict[str, Any] | None = None) -> list[Entity]:
        """Fetch a collection as normalized entities."""
        raw = await self.list_raw(endpoint, params)
        return self.normalizer.extract_list(raw)

    async def get(self, endpoint: str, entity_id: str) -> Entity:
        """Fetch one entity.

        Raises:
            NotFoundError: If the entity does not exist
        """
        entity_id = _require_id(entity_id, "get")
        raw = await self.admin.get(entity_path(endpoint, entity_id))
        return self.normalizer.extract_value(raw)

    async def create(
        self, endpoint: str, data: dict[str, Any], entity_id: str | None = None
    ) -> Entity:
        """Create an entity.

        With an id the entity is written with PUT to that id; without one the
        gateway assigns the id (POST).
        """
        if entity_id:
            raw = await self.admin.put(entity_path(endpoint, entity_id), json_data=data)
        else:
            raw = await self.admin.post(endpoint, json_data=data)
        entity = self.normalizer.extract_value(raw)
        logger.debug("entity_created", endpoint=endpoint, entity_id=entity.get("id", entity_id))
        return entity

    async def update(self, endpoint: str, entity_id: str, data: dict[str, Any]) -> Entity:
        """Overwrite an entity with PUT."""
        entity_id = _require_id(entity_id, "update")
        raw = await self.admin.put(entity_path(endpoint, entity_id), json_data=data)
        logger.debug("entity_updated", endpoint=endpoint, entity_id=entity_id)
        return self.normalizer.extract_value(raw)

    async def patch(self, endpoint: str, entity_id: str, data: dict[str, Any]) -> Entity:
        """Partially update an entity with PATCH."""
        entity_id = _require_id(entity_id, "patch")
        raw = await self.admin.patch(entity_path(endpoint, entity_id), json_data=data)
        logger.debug("entity_patched", endpoint=endpoint, entity_id=entity_id)
        return self.normalizer.extract_value(raw)

    async def delete(self, endpoint: str, entity_id: str, force: bool = False) -> Any:
        """Delete an entity.

        Args:
            endpoint: Collection endpoint
            entity_id: Entity id
            force: Delete even if other entities still reference it

        Returns:
            Raw gateway response
        """
        entity_id = _require_id(entity_id, "delete")
        params = {"force": "true"} if force else None
        response = await self.admin.delete(entity_path(endpoint, entity_id), params=params)
        logger.debug("entity_deleted", endpoint=endpoint, entity_id=entity_id, force=force)
        return response

    async def exists(self, endpoint: str, entity_id: str) -> bool:
        """Check whether an entity exists.

        Only a 404 counts as absent; every other failure propagates.
        """
        try:
            await self.get(endpoint, entity_id)
        except NotFoundError:
            return False
        return True
