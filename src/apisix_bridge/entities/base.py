"""Base class for entity wrappers.

A wrapper knows its endpoint and whether a capability gates it; every
operation is delegated to the core collaborators held by the context.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from apisix_bridge.client.exceptions import UnsupportedFeatureError
from apisix_bridge.core.batch import BatchResult, OperationInput
from apisix_bridge.core.clone import PayloadCheck
from apisix_bridge.core.context import GatewayContext
from apisix_bridge.core.normalizer import Entity
from apisix_bridge.core.pagination import PaginatedResult
from apisix_bridge.core.transfer import ExportFormat, ImportResult, ImportStrategy
from apisix_bridge.resources import IDENTITY_FIELDS, ResourceTypeInfo, get_info


def editable_body(entity: Entity) -> dict[str, Any]:
    """Copy of an entity without the fields the server assigns."""
    return {k: v for k, v in entity.items() if k not in IDENTITY_FIELDS}


class EntityResource:
    """CRUD and bulk operations for one entity collection.

    Subclasses set ``resource_type`` to a registry key.
    """

    resource_type: str = ""

    def __init__(self, context: GatewayContext, endpoint: str | None = None):
        """Initialize the wrapper.

        Args:
            context: Gateway context holding the core collaborators
            endpoint: Concrete endpoint; defaults to the registry endpoint
        """
        self.context = context
        self.info: ResourceTypeInfo = get_info(self.resource_type)
        self.endpoint = endpoint or self.info.endpoint

    async def ensure_supported(self) -> None:
        """Raise if the gateway lacks the capability this entity needs.

        Raises:
            UnsupportedFeatureError: If the capability is absent
        """
        flag = self.info.requires_capability
        if flag is None:
            return
        capabilities = await self.context.resolver.get_capabilities()
        if not getattr(capabilities, flag):
            raise UnsupportedFeatureError(self.info.name, capabilities.major_version)

    async def list(
        self,
        page: int | None = None,
        page_size: int | None = None,
        **filters: Any,
    ) -> list[Entity]:
        """List entities; pagination is forwarded only where supported."""
        await self.ensure_supported()
        return await self.context.pagination.list(
            self.endpoint, page=page, page_size=page_size, **filters
        )

    async def list_paginated(
        self,
        page: int = 1,
        page_size: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> PaginatedResult:
        await self.ensure_supported()
        return await self.context.pagination.list_paginated(
            self.endpoint, page=page, page_size=page_size, filters=filters
        )

    async def get(self, entity_id: str) -> Entity:
        await self.ensure_supported()
        return await self.context.resources.get(self.endpoint, entity_id)

    async def create(self, data: dict[str, Any], entity_id: str | None = None) -> Entity:
        await self.ensure_supported()
        return await self.context.resources.create(self.endpoint, data, entity_id)

    async def update(self, entity_id: str, data: dict[str, Any]) -> Entity:
        await self.ensure_supported()
        return await self.context.resources.update(self.endpoint, entity_id, data)

    async def patch(self, entity_id: str, data: dict[str, Any]) -> Entity:
        await self.ensure_supported()
        return await self.context.resources.patch(self.endpoint, entity_id, data)

    async def _rewrite(self, entity_id: str, change: Callable[[dict[str, Any]], None]) -> Entity:
        """Read an entity, let ``change`` edit its body in place, then PUT it back."""
        body = editable_body(await self.get(entity_id))
        change(body)
        return await self.update(entity_id, body)

    async def delete(self, entity_id: str, force: bool = False) -> bool:
        """Delete an entity; ``force`` deletes it even while still referenced."""
        await self.ensure_supported()
        await self.context.resources.delete(self.endpoint, entity_id, force=force)
        return True

    async def exists(self, entity_id: str) -> bool:
        await self.ensure_supported()
        return await self.context.resources.exists(self.endpoint, entity_id)

    async def batch(
        self,
        operations: Sequence[OperationInput],
        continue_on_error: bool = True,
        validate_before_execution: bool = False,
    ) -> BatchResult:
        await self.ensure_supported()
        return await self.context.batch.execute(
            self.endpoint,
            operations,
            continue_on_error=continue_on_error,
            validate_before_execution=validate_before_execution,
        )

    async def export_data(
        self,
        fmt: ExportFormat | str = ExportFormat.JSON,
        include: list[str] | None = None,
        exclude: list[str] | None = None,
        pretty: bool = False,
    ) -> str:
        await self.ensure_supported()
        return await self.context.transfer.export_data(
            self.endpoint, fmt=fmt, include=include, exclude=exclude, pretty=pretty
        )

    async def import_data(
        self,
        data: str | list[Any],
        strategy: ImportStrategy | str = ImportStrategy.MERGE,
        validate: bool = False,
        dry_run: bool = False,
        fmt: ExportFormat | str | None = None,
    ) -> ImportResult:
        await self.ensure_supported()
        return await self.context.transfer.import_data(
            self.endpoint,
            data,
            strategy=strategy,
            validate=validate,
            dry_run=dry_run,
            fmt=fmt,
        )

    async def clone(
        self,
        source_id: str,
        overrides: dict[str, Any] | None = None,
        new_id: str | None = None,
    ) -> Entity:
        """Copy an entity under a new id, applying ``overrides``."""
        await self.ensure_supported()
        return await self.context.cloner.clone(
            self.endpoint,
            source_id,
            overrides=overrides,
            new_id=new_id,
            profile=self.info.clone_profile,
            check=self.clone_check(),
        )

    def clone_check(self) -> PayloadCheck | None:
        """Extra check applied to a composed clone body, if any."""
        return None

    async def find_by(self, predicate: Callable[[Entity], bool]) -> list[Entity]:
        """Filter the full collection client-side."""
        return [entity for entity in await self.list() if predicate(entity)]
