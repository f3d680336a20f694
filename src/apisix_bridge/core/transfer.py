"""Collection import and export.

Export always reads the full collection (never a page) and serializes it
to JSON or YAML. Import parses the same shapes back and reconciles every
record against the gateway with a conflict resolution strategy.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import yaml

from apisix_bridge.client.exceptions import (
    ApisixBridgeError,
    NotFoundError,
    ParseError,
    ValidationError,
)
from apisix_bridge.core.normalizer import Entity
from apisix_bridge.core.resource_client import ResourceClient
from apisix_bridge.utils.logging import get_logger, log_bulk_progress
from apisix_bridge.validation.payload_validator import PayloadValidator

logger = get_logger(__name__)


class ExportFormat(str, Enum):
    """Serialization formats for export and import."""

    JSON = "json"
    YAML = "yaml"


class ImportStrategy(str, Enum):
    """How an import treats a record whose id already exists.

    - REPLACE: overwrite the existing entity
    - MERGE: shallow-merge the record over the existing entity
    - SKIP_EXISTING: leave the existing entity alone
    """

    REPLACE = "replace"
    MERGE = "merge"
    SKIP_EXISTING = "skip_existing"


@dataclass
class RecordError:
    """A record that could not be imported."""

    index: int
    id: str | None
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "id": self.id, "error": self.error}


@dataclass
class ImportResult:
    """Counts of what an import did (or, in a dry run, would do)."""

    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[RecordError] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": [e.to_dict() for e in self.errors],
            "dry_run": self.dry_run,
        }


def _coerce_enum(enum_cls: type[Enum], value: Any, label: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        valid = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Unsupported {label} '{value}', expected one of: {valid}") from None


def project_fields(
    entity: Entity,
    include: list[str] | None = None,
    exclude: list[str] | None = None,
) -> Entity:
    """Keep only ``include`` fields, or drop ``exclude`` fields.

    ``include`` wins when both are given.
    """
    if include:
        return {k: entity[k] for k in include if k in entity}
    if exclude:
        return {k: v for k, v in entity.items() if k not in exclude}
    return entity


def parse_records(data: str, fmt: ExportFormat | str | None = None) -> list[Any]:
    """Parse an import payload into a list of records.

    Args:
        data: Serialized collection
        fmt: Format of ``data``; detected from the first character when None

    Returns:
        Parsed records

    Raises:
        ParseError: If the payload is malformed or not a list
    """
    if fmt is None:
        fmt = ExportFormat.JSON if data.lstrip()[:1] in ("[", "{") else ExportFormat.YAML
    fmt = _coerce_enum(ExportFormat, fmt, "format")

    if fmt is ExportFormat.JSON:
        try:
            records = json.loads(data)
        except json.JSONDecodeError as e:
            raise ParseError(
                "Invalid JSON data provided",
                detail=f"{e.msg} at line {e.lineno} column {e.colno}",
                fmt=fmt.value,
            ) from e
    else:
        try:
            records = yaml.safe_load(data)
        except yaml.YAMLError as e:
            raise ParseError("Invalid YAML data provided", detail=str(e), fmt=fmt.value) from e

    if records is None:
        return []
    if not isinstance(records, list):
        raise ParseError(
            "Import payload must be a list of records",
            detail=f"got {type(records).__name__}",
            fmt=fmt.value,
        )
    return records


class ImportExportEngine:
    """Moves whole collections in and out of the gateway."""

    def __init__(self, resources: ResourceClient, validator: PayloadValidator | None = None):
        """Initialize the engine.

        Args:
            resources: Generic resource client
            validator: Payload validator used when ``validate=True``
        """
        self.resources = resources
        self.validator = validator or PayloadValidator()

    async def export_data(
        self,
        endpoint: str,
        fmt: ExportFormat | str = ExportFormat.JSON,
        include: list[str] | None = None,
        exclude: list[str] | None = None,
        pretty: bool = False,
    ) -> str:
        """Serialize a full collection.

        Args:
            endpoint: Collection endpoint
            fmt: ``json`` or ``yaml``
            include: Only keep these fields
            exclude: Drop these fields (ignored when ``include`` is set)
            pretty: Indent JSON output

        Returns:
            Serialized collection

        Raises:
            ValidationError: If the format is unknown
        """
        fmt = _coerce_enum(ExportFormat, fmt, "export format")
        entities = await self.resources.list(endpoint)
        records = [project_fields(entity, include, exclude) for entity in entities]

        if fmt is ExportFormat.JSON:
            if pretty:
                output = json.dumps(records, indent=2, ensure_ascii=False)
            else:
                output = json.dumps(records, separators=(",", ":"), ensure_ascii=False)
        else:
            output = yaml.safe_dump(
                records,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )

        logger.info("export_completed", endpoint=endpoint, format=fmt.value, count=len(records))
        return output

    async def _resolve(
        self,
        endpoint: str,
        record: dict[str, Any],
        entity_id: str | None,
        strategy: ImportStrategy,
        dry_run: bool,
    ) -> str:
        """Apply one record; returns ``created``, ``updated`` or ``skipped``."""
        if entity_id is None:
            if not dry_run:
                await self.resources.create(endpoint, record)
            return "created"

        if strategy is ImportStrategy.MERGE:
            try:
                existing = await self.resources.get(endpoint, entity_id)
            except NotFoundError:
                existing = None
            if existing is None:
                if not dry_run:
                    await self.resources.create(endpoint, record, entity_id)
                return "created"
            if not dry_run:
                await self.resources.update(endpoint, entity_id, {**existing, **record})
            return "updated"

        exists = await self.resources.exists(endpoint, entity_id)

        if strategy is ImportStrategy.SKIP_EXISTING:
            if exists:
                return "skipped"
            if not dry_run:
                await self.resources.create(endpoint, record, entity_id)
            return "created"

        if not dry_run:
            await self.resources.create(endpoint, record, entity_id)
        return "updated" if exists else "created"

    async def import_data(
        self,
        endpoint: str,
        data: str | list[Any],
        strategy: ImportStrategy | str = ImportStrategy.MERGE,
        validate: bool = False,
        dry_run: bool = False,
        fmt: ExportFormat | str | None = None,
    ) -> ImportResult:
        """Load records into a collection.

        Each record carrying an ``id`` costs one existence check; records
        are processed one at a time and a failing record never stops the
        rest.

        Args:
            endpoint: Collection endpoint
            data: Serialized collection or a list of records
            strategy: Conflict resolution strategy
            validate: Run pre-flight payload validation on each record
            dry_run: Resolve everything but write nothing
            fmt: Format of ``data`` when it is a string

        Returns:
            ImportResult

        Raises:
            ParseError: If ``data`` is a malformed string
            ValidationError: If the strategy is unknown
        """
        strategy = _coerce_enum(ImportStrategy, strategy, "import strategy")
        records = parse_records(data, fmt) if isinstance(data, str) else list(data)

        result = ImportResult(total=len(records), dry_run=dry_run)
        logger.info(
            "import_started",
            endpoint=endpoint,
            total=result.total,
            strategy=strategy.value,
            dry_run=dry_run,
        )

        for index, record in enumerate(records):
            raw_id = record.get("id") if isinstance(record, dict) else None
            entity_id = str(raw_id) if raw_id not in (None, "") else None

            if not isinstance(record, dict):
                result.errors.append(
                    RecordError(
                        index, None, f"Record must be an object, got {type(record).__name__}"
                    )
                )
                continue

            if validate:
                is_valid, problems = self.validator.validate_payload(endpoint, record)
                if not is_valid:
                    result.errors.append(RecordError(index, entity_id, "; ".join(problems)))
                    continue

            try:
                action = await self._resolve(endpoint, record, entity_id, strategy, dry_run)
            except ApisixBridgeError as e:
                logger.warning(
                    "import_record_failed",
                    endpoint=endpoint,
                    index=index,
                    entity_id=entity_id,
                    error=str(e),
                )
                result.errors.append(RecordError(index, entity_id, str(e)))
                continue

            if action == "created":
                result.created += 1
            elif action == "updated":
                result.updated += 1
            else:
                result.skipped += 1
                logger.debug("import_record_skipped", endpoint=endpoint, entity_id=entity_id)

            log_bulk_progress(logger, "import", endpoint, index + 1, result.total)

        logger.info("import_completed", endpoint=endpoint, **result.to_dict())
        return result
