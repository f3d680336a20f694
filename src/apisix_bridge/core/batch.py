"""Sequential batch execution over one entity collection.

Operations run strictly in the order given, one at a time, because later
operations may refer to ids created by earlier ones. The result is a
ledger of what landed and what did not; there is no rollback.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from apisix_bridge.client.exceptions import ApisixBridgeError, ValidationError
from apisix_bridge.core.resource_client import ResourceClient
from apisix_bridge.utils.logging import get_logger, log_bulk_progress
from apisix_bridge.validation.payload_validator import PayloadValidator

logger = get_logger(__name__)


class OperationType(str, Enum):
    """Kinds of batch operation."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class OperationDescriptor:
    """One requested operation.

    ``id`` is required for update and delete, optional for create.
    ``data`` is required for create and update.
    """

    operation: str
    id: str | None = None
    data: dict[str, Any] | None = None
    malformed: str | None = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, raw: Any) -> "OperationDescriptor":
        if not isinstance(raw, dict):
            return cls(
                operation="",
                malformed=f"Operation must be an object, got {type(raw).__name__}",
            )
        entity_id = raw.get("id")
        return cls(
            operation=str(raw.get("operation", "")),
            id=str(entity_id) if entity_id is not None else None,
            data=raw.get("data"),
        )

    def problems(self) -> list[str]:
        """Shape problems that make this operation impossible to send."""
        if self.malformed:
            return [self.malformed]
        valid_operations = [op.value for op in OperationType]
        if self.operation not in valid_operations:
            return [
                f"Unsupported operation '{self.operation}', expected one of: "
                f"{', '.join(valid_operations)}"
            ]
        problems = []
        if self.operation in (OperationType.UPDATE, OperationType.DELETE) and not self.id:
            problems.append(f"ID is required for {self.operation} operation")
        if self.operation in (OperationType.CREATE, OperationType.UPDATE) and not isinstance(
            self.data, dict
        ):
            problems.append(f"Data is required for {self.operation} operation")
        return problems


@dataclass
class OperationResult:
    """Outcome of one attempted operation."""

    success: bool
    id: str | None = None
    data: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.id is not None:
            result["id"] = self.id
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class BatchResult:
    """Ledger of a batch run.

    ``total`` counts every requested operation; ``successful`` and ``failed``
    count attempted ones only, so they fall short of ``total`` when the run
    stopped early.
    """

    total: int = 0
    successful: int = 0
    failed: int = 0
    results: list[OperationResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


OperationInput = OperationDescriptor | dict[str, Any]


class BatchExecutor:
    """Applies ordered create/update/delete operations to one endpoint."""

    def __init__(self, resources: ResourceClient, validator: PayloadValidator | None = None):
        """Initialize batch executor.

        Args:
            resources: Generic resource client
            validator: Payload validator used for pre-flight checks
        """
        self.resources = resources
        self.validator = validator or PayloadValidator()

    def _preflight(self, endpoint: str, operations: list[OperationDescriptor]) -> None:
        errors = []
        for index, op in enumerate(operations):
            problems = op.problems()
            if not problems and op.data is not None and op.operation != OperationType.DELETE:
                _, problems = self.validator.validate_payload(endpoint, op.data)
            errors.extend(f"operation {index}: {problem}" for problem in problems)
        if errors:
            raise ValidationError(f"Batch for '{endpoint}' failed validation", errors)

    async def _apply(self, endpoint: str, op: OperationDescriptor) -> OperationResult:
        problems = op.problems()
        if problems:
            raise ValidationError(problems[0])

        if op.operation == OperationType.CREATE:
            data = await self.resources.create(endpoint, op.data or {}, op.id)
            return OperationResult(success=True, id=op.id or data.get("id"), data=data)
        if op.operation == OperationType.UPDATE:
            data = await self.resources.update(endpoint, op.id or "", op.data or {})
            return OperationResult(success=True, id=op.id, data=data)

        await self.resources.delete(endpoint, op.id or "")
        return OperationResult(success=True, id=op.id, data={"deleted": op.id})

    async def execute(
        self,
        endpoint: str,
        operations: Sequence[OperationInput],
        continue_on_error: bool = True,
        validate_before_execution: bool = False,
    ) -> BatchResult:
        """Run operations in order.

        Args:
            endpoint: Collection endpoint
            operations: Descriptors (or plain dicts of the same shape)
            continue_on_error: Keep going after a failed operation; when
                False the failure is recorded and the rest are not attempted
            validate_before_execution: Check every operation up front and
                raise before any request is sent

        Returns:
            BatchResult with one entry per attempted operation, in input order

        Raises:
            ValidationError: If pre-flight validation fails
        """
        descriptors = [
            op if isinstance(op, OperationDescriptor) else OperationDescriptor.from_dict(op)
            for op in operations
        ]
        if validate_before_execution:
            self._preflight(endpoint, descriptors)

        result = BatchResult(total=len(descriptors))
        logger.info("batch_started", endpoint=endpoint, total=result.total)

        for index, op in enumerate(descriptors):
            try:
                outcome = await self._apply(endpoint, op)
            except ApisixBridgeError as e:
                outcome = OperationResult(success=False, id=op.id, error=str(e))
                logger.warning(
                    "batch_operation_failed",
                    endpoint=endpoint,
                    index=index,
                    operation=op.operation,
                    entity_id=op.id,
                    error=str(e),
                )

            result.results.append(outcome)
            if outcome.success:
                result.successful += 1
            else:
                result.failed += 1
                if not continue_on_error:
                    logger.info(
                        "batch_aborted",
                        endpoint=endpoint,
                        index=index,
                        skipped=result.total - index - 1,
                    )
                    break

            log_bulk_progress(logger, "batch", endpoint, index + 1, result.total)

        logger.info(
            "batch_completed",
            endpoint=endpoint,
            total=result.total,
            successful=result.successful,
            failed=result.failed,
        )
        return result
