"""Per-client wiring of the core collaborators.

A ``GatewayContext`` owns both transports, the capability cache and every
core component built on them. There is no process-wide instance: callers
create one, pass it where it is needed and close it when done.
"""

from dataclasses import dataclass

import httpx

from apisix_bridge.client.admin_client import AdminAPIClient
from apisix_bridge.client.control_client import ControlAPIClient
from apisix_bridge.config import CapabilityPolicy, GatewayConfig, LoggingConfig, PerformanceConfig
from apisix_bridge.core.batch import BatchExecutor
from apisix_bridge.core.capabilities import CapabilityResolver
from apisix_bridge.core.clone import CloneOperation
from apisix_bridge.core.normalizer import ResponseNormalizer
from apisix_bridge.core.pagination import PaginationAdapter
from apisix_bridge.core.resource_client import ResourceClient
from apisix_bridge.core.transfer import ImportExportEngine
from apisix_bridge.utils.logging import get_logger
from apisix_bridge.validation.payload_validator import PayloadValidator

logger = get_logger(__name__)


@dataclass
class GatewayContext:
    """Everything one gateway connection needs."""

    config: GatewayConfig
    admin: AdminAPIClient
    control: ControlAPIClient
    normalizer: ResponseNormalizer
    resolver: CapabilityResolver
    resources: ResourceClient
    pagination: PaginationAdapter
    validator: PayloadValidator
    batch: BatchExecutor
    transfer: ImportExportEngine
    cloner: CloneOperation

    @classmethod
    def create(
        cls,
        config: GatewayConfig,
        performance: PerformanceConfig | None = None,
        policy: CapabilityPolicy | None = None,
        logging_config: LoggingConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "GatewayContext":
        """Build a context from configuration.

        Args:
            config: Gateway connection settings
            performance: Connection pool and rate limit settings
            policy: Capability detection policy
            logging_config: Payload logging settings
            transport: Custom httpx transport shared by both clients (tests)

        Returns:
            GatewayContext
        """
        logging_config = logging_config or LoggingConfig()
        client_kwargs = {
            "performance": performance,
            "log_payloads": logging_config.log_payloads,
            "max_payload_size": logging_config.max_payload_size,
            "transport": transport,
        }
        admin = AdminAPIClient(config, **client_kwargs)
        control = ControlAPIClient(config, **client_kwargs)

        normalizer = ResponseNormalizer()
        resolver = CapabilityResolver(
            admin,
            normalizer=normalizer,
            policy=policy,
            declared_version=config.declared_version,
        )
        resources = ResourceClient(admin, normalizer)
        validator = PayloadValidator(resolver=resolver)

        logger.debug("gateway_context_created", admin_url=config.admin_url)

        return cls(
            config=config,
            admin=admin,
            control=control,
            normalizer=normalizer,
            resolver=resolver,
            resources=resources,
            pagination=PaginationAdapter(resources, resolver),
            validator=validator,
            batch=BatchExecutor(resources, validator),
            transfer=ImportExportEngine(resources, validator),
            cloner=CloneOperation(resources),
        )

    async def close(self) -> None:
        """Close both transports."""
        await self.admin.close()
        await self.control.close()
