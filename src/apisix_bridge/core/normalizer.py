"""Response envelope normalization.

Gateway releases wrap entities in one of two envelopes:

* legacy: ``{"node": {"key": "/apisix/routes/1", "value": {...}}}`` and
  ``{"node": {"nodes": [{"key": ..., "value": ...}, ...]}}``
* wrapped: ``{"key": ..., "value": {...}}`` and
  ``{"list": [...], "total": N, "has_more": bool}``

The envelope is recognised here and never leaks further: everything
returned from this module is a plain entity dict carrying an ``id``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from apisix_bridge.utils.logging import get_logger

logger = get_logger(__name__)

Entity = dict[str, Any]


class ResponseFormat(Enum):
    """Envelope family used by a gateway release."""

    LEGACY = "legacy"
    WRAPPED = "wrapped"


@dataclass
class Envelope:
    """A response with its envelope recognised.

    Attributes:
        format: Envelope family, or None for a bare entity/array
        items: Unwrapped ``(key, value)`` pairs
        total: Server-reported collection size, if any
        has_more: Server-reported continuation flag, if any
    """

    format: ResponseFormat | None
    items: list[tuple[str | None, Any]] = field(default_factory=list)
    total: int | None = None
    has_more: bool | None = None


def _as_items(nodes: Any) -> list[Any]:
    """Collections serialize as ``{}`` when empty on some releases."""
    if nodes is None:
        return []
    if isinstance(nodes, dict):
        return list(nodes.values())
    if isinstance(nodes, list):
        return nodes
    return []


def _split_item(item: Any) -> tuple[str | None, Any]:
    """Split a list element into ``(key, value)``.

    A ``{"key": str, "value": dict}`` element is a storage wrapper; anything
    else is already an entity.
    """
    if isinstance(item, dict) and isinstance(item.get("value"), dict) and isinstance(
        item.get("key"), str
    ):
        return item["key"], item["value"]
    return None, item


def id_from_key(key: str) -> str | None:
    """Return the last path segment of a storage key (``/apisix/routes/1`` -> ``1``)."""
    segment = key.rstrip("/").rsplit("/", 1)[-1]
    return segment or None


class ResponseNormalizer:
    """Erases the difference between the legacy and wrapped envelopes."""

    def parse(self, raw: Any, collection: bool = False) -> Envelope:
        """Recognise the envelope of a raw response body.

        Args:
            raw: Decoded response body
            collection: Whether the body is a list response

        Returns:
            Envelope with unwrapped items
        """
        if isinstance(raw, list):
            return Envelope(format=None, items=[_split_item(item) for item in raw])

        if not isinstance(raw, dict):
            return Envelope(format=None)

        node = raw.get("node")
        if isinstance(node, dict):
            if collection or "nodes" in node or node.get("dir"):
                items = [_split_item(item) for item in _as_items(node.get("nodes"))]
                return Envelope(format=ResponseFormat.LEGACY, items=items, total=raw.get("total"))
            return Envelope(
                format=ResponseFormat.LEGACY, items=[(node.get("key"), node.get("value"))]
            )

        if collection:
            if "list" in raw or "total" in raw:
                items = [_split_item(item) for item in _as_items(raw.get("list"))]
                return Envelope(
                    format=ResponseFormat.WRAPPED,
                    items=items,
                    total=raw.get("total"),
                    has_more=raw.get("has_more"),
                )
            return Envelope(format=None)

        if "value" in raw:
            return Envelope(
                format=ResponseFormat.WRAPPED, items=[(raw.get("key"), raw.get("value"))]
            )

        # Bare entity
        return Envelope(format=None, items=[(None, raw)] if raw else [])

    def detect_format(self, raw: Any) -> ResponseFormat | None:
        """Return the envelope family of a response, if it has one."""
        return self.parse(raw, collection=isinstance(raw, dict) and "list" in raw).format

    @staticmethod
    def _normalize(key: str | None, value: Any) -> Entity | None:
        if not isinstance(value, dict):
            return None
        if key:
            entity_id = id_from_key(key)
            if entity_id and value.get("id") != entity_id:
                return {**value, "id": entity_id}
        return dict(value)

    def extract_value(self, raw: Any) -> Entity:
        """Extract a single entity from a response.

        Args:
            raw: Decoded response body of a get/create/update call

        Returns:
            Entity dict with ``id`` backfilled from the storage key, or an
            empty dict when the response carries no entity
        """
        envelope = self.parse(raw)
        if not envelope.items:
            return {}
        key, value = envelope.items[0]
        entity = self._normalize(key, value)
        return entity if entity is not None else {}

    def extract_list(self, raw: Any) -> list[Entity]:
        """Extract a list of entities from a response.

        Args:
            raw: Decoded response body of a list call

        Returns:
            List of entity dicts; an empty collection yields ``[]``
        """
        envelope = self.parse(raw, collection=True)
        entities = []
        for key, value in envelope.items:
            entity = self._normalize(key, value)
            if entity is None:
                logger.debug("list_item_skipped", reason="not an object")
                continue
            entities.append(entity)
        return entities

    def extract_pagination_info(self, raw: Any) -> tuple[int | None, bool | None]:
        """Extract the server-reported ``(total, has_more)`` from a list response."""
        envelope = self.parse(raw, collection=True)
        total = envelope.total if isinstance(envelope.total, int) else None
        has_more = envelope.has_more if isinstance(envelope.has_more, bool) else None
        return total, has_more
