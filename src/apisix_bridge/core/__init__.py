"""Compatibility and bulk-operation core.

Envelope normalization, capability detection, generic CRUD, pagination,
batch, import/export and clone, all parameterized by endpoint.
"""

from apisix_bridge.core.batch import (
    BatchExecutor,
    BatchResult,
    OperationDescriptor,
    OperationResult,
    OperationType,
)
from apisix_bridge.core.capabilities import CapabilityResolver
from apisix_bridge.core.clone import CloneOperation
from apisix_bridge.core.compatibility import (
    CapabilitySet,
    CompatibilityChecker,
    MigrationRecommendations,
    ValidationResult,
    capabilities_for_version,
    compare_versions,
    parse_major_version,
)
from apisix_bridge.core.context import GatewayContext
from apisix_bridge.core.normalizer import Entity, ResponseFormat, ResponseNormalizer
from apisix_bridge.core.pagination import PaginatedResult, PaginationAdapter
from apisix_bridge.core.resource_client import ResourceClient
from apisix_bridge.core.transfer import (
    ExportFormat,
    ImportExportEngine,
    ImportResult,
    ImportStrategy,
    RecordError,
)

__all__ = [
    "BatchExecutor",
    "BatchResult",
    "CapabilityResolver",
    "CapabilitySet",
    "CloneOperation",
    "CompatibilityChecker",
    "Entity",
    "ExportFormat",
    "GatewayContext",
    "ImportExportEngine",
    "ImportResult",
    "ImportStrategy",
    "MigrationRecommendations",
    "OperationDescriptor",
    "OperationResult",
    "OperationType",
    "PaginatedResult",
    "PaginationAdapter",
    "RecordError",
    "ResourceClient",
    "ResponseFormat",
    "ResponseNormalizer",
    "ValidationResult",
    "capabilities_for_version",
    "compare_versions",
    "parse_major_version",
]
