"""High-level gateway client.

``GatewayClient`` wires a ``GatewayContext`` from configuration and exposes
one wrapper per entity type plus the Control API client. Scope its
lifetime with ``async with``.

Example:
    >>> async with GatewayClient(GatewayConfig(admin_url="http://127.0.0.1:9180")) as gw:
    ...     routes = await gw.routes.list()
"""

from pathlib import Path
from typing import Any

import httpx

from apisix_bridge.client.control_client import ControlAPIClient
from apisix_bridge.client.exceptions import APIError, NetworkError
from apisix_bridge.config import (
    CapabilityPolicy,
    ClientSettings,
    GatewayConfig,
    LoggingConfig,
    PerformanceConfig,
    load_config_from_yaml,
)
from apisix_bridge.core.compatibility import CapabilitySet, CompatibilityChecker, get_profile
from apisix_bridge.core.context import GatewayContext
from apisix_bridge.entities import (
    ConsumerGroups,
    Consumers,
    Credentials,
    GlobalRules,
    PluginConfigs,
    PluginMetadata,
    Plugins,
    Protos,
    Routes,
    Secrets,
    Services,
    SSLCertificates,
    StreamRoutes,
    Upstreams,
)
from apisix_bridge.utils.logging import get_logger

logger = get_logger(__name__)


class GatewayClient:
    """Client for one gateway (Admin and Control API)."""

    def __init__(
        self,
        config: GatewayConfig,
        performance: PerformanceConfig | None = None,
        policy: CapabilityPolicy | None = None,
        logging_config: LoggingConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize gateway client.

        Args:
            config: Gateway connection settings
            performance: Connection pool and rate limit settings
            policy: Capability detection policy
            logging_config: Payload logging settings
            transport: Custom httpx transport (used by tests)
        """
        self.context = GatewayContext.create(
            config,
            performance=performance,
            policy=policy,
            logging_config=logging_config,
            transport=transport,
        )

        self.routes = Routes(self.context)
        self.services = Services(self.context)
        self.upstreams = Upstreams(self.context)
        self.consumers = Consumers(self.context)
        self.consumer_groups = ConsumerGroups(self.context)
        self.ssl = SSLCertificates(self.context)
        self.global_rules = GlobalRules(self.context)
        self.plugin_configs = PluginConfigs(self.context)
        self.plugin_metadata = PluginMetadata(self.context)
        self.stream_routes = StreamRoutes(self.context)
        self.protos = Protos(self.context)
        self.secrets = Secrets(self.context)
        self.plugins = Plugins(
            self.context, metadata=self.plugin_metadata, global_rules=self.global_rules
        )

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "GatewayClient":
        """Build a client from aggregated settings."""
        return cls(
            settings.gateway,
            performance=settings.performance,
            policy=settings.capabilities,
            logging_config=settings.logging,
            transport=transport,
        )

    @classmethod
    def from_yaml(
        cls,
        config_path: str | Path,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "GatewayClient":
        """Build a client from a YAML configuration file."""
        return cls.from_settings(load_config_from_yaml(config_path), transport=transport)

    @property
    def control(self) -> ControlAPIClient:
        return self.context.control

    def credentials(self, consumer_id: str) -> Credentials:
        """Credentials of one consumer."""
        return self.consumers.credentials(consumer_id)

    async def get_capabilities(self) -> CapabilitySet:
        return await self.context.resolver.get_capabilities()

    def reset_capabilities(self) -> None:
        """Forget detected capabilities; the next call detects again."""
        self.context.resolver.reset()

    async def supports_feature(self, feature: str) -> bool:
        """Check a named feature (pagination, credentials, secrets, stream_routes)."""
        return CompatibilityChecker(await self.get_capabilities()).is_feature_supported(feature)

    async def get_compatibility_checker(self) -> CompatibilityChecker:
        return CompatibilityChecker(await self.get_capabilities())

    async def test_connection(self) -> bool:
        """Check that the Admin API answers and accepts the API key."""
        try:
            await self.context.admin.get("routes")
        except (APIError, NetworkError) as e:
            logger.info("admin_connection_failed", error=str(e))
            return False
        return True

    async def test_control_connection(self) -> bool:
        """Check that the Control API reports a healthy gateway."""
        return await self.control.is_healthy()

    async def get_server_info(self) -> dict[str, Any]:
        """Server information from the Control API."""
        return await self.control.get_server_info()

    async def get_version(self) -> str:
        """Best-known server version.

        The declared version wins, then the Control API's ``server_info``,
        then the release line implied by the detected capabilities.
        """
        if self.context.config.declared_version:
            return self.context.config.declared_version
        try:
            info = await self.get_server_info()
        except (APIError, NetworkError) as e:
            logger.debug("server_info_unavailable", error=str(e))
        else:
            if isinstance(info, dict) and info.get("version"):
                return str(info["version"])
        capabilities = await self.get_capabilities()
        return capabilities.server_version or get_profile(capabilities.major_version).version

    async def get_version_compatibility(self) -> dict[str, Any]:
        """Version and feature summary of the connected gateway."""
        capabilities = await self.get_capabilities()
        return {
            "version": await self.get_version(),
            "major_version": capabilities.major_version,
            "features": {
                "supports_pagination": capabilities.supports_pagination,
                "supports_credentials": capabilities.supports_credentials,
                "supports_secrets": capabilities.supports_secrets,
                "supports_stream_routes": capabilities.supports_stream_routes,
                "response_format": capabilities.response_format.value,
            },
            "supported_plugins": sorted(capabilities.supported_plugins),
            "deprecated_features": list(capabilities.deprecated_features),
        }

    async def get_system_status(self) -> dict[str, Any]:
        """Connectivity of both APIs, the capability set and the runtime overview.

        ``overview`` is the Control API's ``get_system_overview()`` and is
        None when the Control API is not healthy.
        """
        admin_ok = await self.test_connection()
        control_ok = await self.test_control_connection()
        capabilities = await self.get_capabilities()
        overview = await self.control.get_system_overview() if control_ok else None
        status = {
            "admin_api": admin_ok,
            "control_api": control_ok,
            "capabilities": capabilities.to_dict(),
            "overview": overview,
        }
        logger.info("system_status_collected", admin_api=admin_ok, control_api=control_ok)
        return status

    async def close(self) -> None:
        """Close both transports."""
        await self.context.close()

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
