"""Pagination that behaves the same on every gateway release.

Gateways with server-side pagination get ``page``/``page_size`` forwarded
verbatim. Older gateways reject those parameters, so they are dropped and
pages are cut from the full collection on the client.
"""

from dataclasses import dataclass, field
from typing import Any

from apisix_bridge.client.exceptions import ValidationError
from apisix_bridge.core.capabilities import CapabilityResolver
from apisix_bridge.core.normalizer import Entity
from apisix_bridge.core.resource_client import ResourceClient
from apisix_bridge.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PaginatedResult:
    """One page of a collection.

    ``total`` and ``has_more`` are whatever the server reported when it
    paginates; when pagination is emulated ``total`` is the full collection
    size and ``has_more`` is always False.
    """

    items: list[Entity] = field(default_factory=list)
    total: int | None = None
    has_more: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"items": self.items, "total": self.total, "has_more": self.has_more}


def _check_page(name: str, value: int | None) -> None:
    if value is not None and value < 1:
        raise ValidationError(f"{name} must be a positive integer, got {value}")


class PaginationAdapter:
    """Wraps list calls with capability-aware pagination."""

    def __init__(self, resources: ResourceClient, resolver: CapabilityResolver):
        self.resources = resources
        self.resolver = resolver

    async def list(
        self,
        endpoint: str,
        page: int | None = None,
        page_size: int | None = None,
        **filters: Any,
    ) -> list[Entity]:
        """List a collection, forwarding pagination only where supported.

        Args:
            endpoint: Collection endpoint
            page: 1-based page number
            page_size: Items per page
            **filters: Extra query parameters (e.g. ``name``, ``label``, ``uri``)

        Returns:
            Normalized entities
        """
        _check_page("page", page)
        _check_page("page_size", page_size)
        params = {k: v for k, v in filters.items() if v is not None}

        if page is not None or page_size is not None:
            capabilities = await self.resolver.get_capabilities()
            if capabilities.supports_pagination:
                if page is not None:
                    params["page"] = page
                if page_size is not None:
                    params["page_size"] = page_size
            else:
                logger.debug("pagination_params_dropped", endpoint=endpoint)

        return await self.resources.list(endpoint, params)

    async def list_paginated(
        self,
        endpoint: str,
        page: int = 1,
        page_size: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> PaginatedResult:
        """Fetch one page with a uniform result shape on every release.

        Args:
            endpoint: Collection endpoint
            page: 1-based page number
            page_size: Items per page
            filters: Extra query parameters

        Returns:
            PaginatedResult
        """
        _check_page("page", page)
        _check_page("page_size", page_size)
        params = {k: v for k, v in (filters or {}).items() if v is not None}
        capabilities = await self.resolver.get_capabilities()

        if capabilities.supports_pagination:
            raw = await self.resources.list_raw(
                endpoint, {**params, "page": page, "page_size": page_size}
            )
            items = self.resources.normalizer.extract_list(raw)
            total, has_more = self.resources.normalizer.extract_pagination_info(raw)
            return PaginatedResult(items=items, total=total, has_more=has_more)

        everything = await self.resources.list(endpoint, params)
        start = (page - 1) * page_size
        logger.debug(
            "pagination_emulated",
            endpoint=endpoint,
            page=page,
            page_size=page_size,
            total=len(everything),
        )
        return PaginatedResult(
            items=everything[start : start + page_size],
            total=len(everything),
            has_more=False,
        )
