"""Entity cloning.

A clone is the source entity minus identity and server-assigned fields,
with caller overrides applied on top, written as a new entity.
"""

from collections.abc import Callable
from typing import Any

from apisix_bridge.client.exceptions import ValidationError
from apisix_bridge.core.normalizer import Entity
from apisix_bridge.core.resource_client import ResourceClient
from apisix_bridge.resources import DEFAULT_CLONE_PROFILE, CloneProfile
from apisix_bridge.utils.logging import get_logger

logger = get_logger(__name__)

PayloadCheck = Callable[[dict[str, Any]], list[str]]


def _is_missing(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


class CloneOperation:
    """Reads an entity and recreates it under a new id."""

    def __init__(self, resources: ResourceClient):
        self.resources = resources

    async def _backfill_sensitive(
        self,
        endpoint: str,
        source_id: str,
        source: Entity,
        fields: list[str],
    ) -> Entity:
        """Recover fields the single GET withheld from the list response."""
        logger.debug(
            "clone_backfill_started",
            endpoint=endpoint,
            source_id=source_id,
            fields=fields,
        )
        for candidate in await self.resources.list(endpoint):
            if str(candidate.get("id")) == str(source_id):
                recovered = {f: candidate[f] for f in fields if not _is_missing(candidate.get(f))}
                return {**source, **recovered}
        return source

    async def clone(
        self,
        endpoint: str,
        source_id: str,
        overrides: dict[str, Any] | None = None,
        new_id: str | None = None,
        profile: CloneProfile = DEFAULT_CLONE_PROFILE,
        check: PayloadCheck | None = None,
    ) -> Entity:
        """Clone an entity.

        Args:
            endpoint: Collection endpoint
            source_id: Id of the entity to copy
            overrides: Fields shallow-merged over the copied body
            new_id: Id for the clone; the gateway assigns one when omitted
            profile: Cloning rules for this entity type
            check: Extra check on the composed body; returned messages
                abort the clone before it is written

        Returns:
            The created entity

        Raises:
            NotFoundError: If the source does not exist
            ValidationError: If a sensitive field cannot be recovered or the
                composed body fails ``check``
        """
        overrides = dict(overrides or {})
        source = await self.resources.get(endpoint, source_id)

        missing = [
            f for f in profile.sensitive_fields if _is_missing(source.get(f)) and f not in overrides
        ]
        if missing:
            source = await self._backfill_sensitive(endpoint, source_id, source, missing)
            still_missing = [f for f in missing if _is_missing(source.get(f))]
            if still_missing:
                raise ValidationError(
                    f"Cannot clone {endpoint}/{source_id}",
                    [
                        f"'{f}' is not returned by the gateway; pass it in overrides"
                        for f in still_missing
                    ],
                )

        body = {k: v for k, v in source.items() if k not in profile.stripped_fields}
        body.update(overrides)

        target_id = new_id or body.pop("id", None)
        body.pop("id", None)

        if check is not None:
            errors = check(body)
            if errors:
                raise ValidationError(f"Invalid clone of {endpoint}/{source_id}", errors)

        created = await self.resources.create(endpoint, body, target_id)
        logger.info(
            "entity_cloned",
            endpoint=endpoint,
            source_id=source_id,
            new_id=created.get("id", target_id),
        )
        return created
