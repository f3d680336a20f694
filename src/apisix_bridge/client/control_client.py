"""Control API client.

The Control API is the gateway's read-only runtime and introspection
surface. It has its own base URL and never receives the admin API key.
"""

import asyncio
from typing import Any

import httpx

from apisix_bridge.client.base_client import BaseAPIClient
from apisix_bridge.client.exceptions import APIError, NetworkError
from apisix_bridge.config import GatewayConfig, PerformanceConfig
from apisix_bridge.utils.logging import get_logger

logger = get_logger(__name__)

CONTROL_PREFIX = "/v1"


class ControlAPIClient(BaseAPIClient):
    """Client for the gateway Control API."""

    def __init__(
        self,
        config: GatewayConfig,
        performance: PerformanceConfig | None = None,
        log_payloads: bool = False,
        max_payload_size: int = 10000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Control API client.

        Args:
            config: Gateway connection configuration
            performance: Optional connection pool settings
            log_payloads: Enable request/response payload logging
            max_payload_size: Maximum payload size to log before truncation
            transport: Custom httpx transport (used by tests)
        """
        performance = performance or PerformanceConfig()
        super().__init__(
            base_url=f"{config.control_url}{CONTROL_PREFIX}",
            api_key=None,
            verify_ssl=config.verify_ssl,
            timeout=config.timeout,
            headers=config.headers,
            rate_limit=performance.rate_limit,
            max_connections=performance.http_max_connections,
            max_keepalive_connections=performance.http_max_keepalive_connections,
            log_payloads=log_payloads,
            max_payload_size=max_payload_size,
            transport=transport,
        )
        logger.debug("control_client_initialized", url=self.base_url)

    async def is_healthy(self) -> bool:
        """Check if the Control API reports a healthy gateway.

        Returns:
            True when the health check answers with status ``ok``
        """
        try:
            response = await self.get("healthcheck")
        except (APIError, NetworkError) as e:
            logger.info("control_healthcheck_failed", error=str(e))
            return False
        if isinstance(response, dict) and "status" in response:
            return response["status"] == "ok"
        # Older gateways answer with the upstream health list only
        return True

    async def get_server_info(self) -> dict[str, Any]:
        """Get server information (hostname, version, uptime, etcd version)."""
        return await self.get("server_info")

    async def get_plugins(self) -> list[dict[str, Any]]:
        """Get information about every plugin loaded in the data plane."""
        return await self.get("plugins")

    async def get_upstream_health(self, upstream_name: str | None = None) -> Any:
        """Get upstream health check status.

        Args:
            upstream_name: Optional upstream (``src_type/src_id``) to restrict the report to
        """
        if upstream_name:
            return await self.get(f"healthcheck/upstreams/{upstream_name}")
        return await self.get("healthcheck")

    async def get_schema(self, resource_type: str | None = None) -> dict[str, Any]:
        """Get the JSON schema of every entity, or of one entity type."""
        if resource_type:
            return await self.get(f"schema/{resource_type}")
        return await self.get("schema")

    async def get_plugin_schema(self, plugin_name: str) -> dict[str, Any]:
        """Get the JSON schema of one plugin."""
        return await self.get(f"schema/plugins/{plugin_name}")

    async def get_runtime_routes(self) -> list[dict[str, Any]]:
        """Get routes as currently loaded by the data plane."""
        return await self.get("routes")

    async def get_runtime_route(self, route_id: str) -> dict[str, Any]:
        """Get one route as currently loaded by the data plane."""
        return await self.get(f"routes/{route_id}")

    async def get_runtime_services(self) -> list[dict[str, Any]]:
        """Get services as currently loaded by the data plane."""
        return await self.get("services")

    async def get_runtime_upstreams(self) -> list[dict[str, Any]]:
        """Get upstreams as currently loaded by the data plane."""
        return await self.get("upstreams")

    async def get_plugin_metadata(self, plugin_name: str | None = None) -> Any:
        """Get plugin metadata for all plugins or one plugin."""
        if plugin_name:
            return await self.get(f"plugin_metadata/{plugin_name}")
        return await self.get("plugin_metadatas")

    async def trigger_gc(self) -> Any:
        """Trigger a full garbage collection in the data plane."""
        return await self.post("gc")

    async def get_system_overview(self) -> dict[str, Any]:
        """Collect a best-effort snapshot of the runtime.

        Sections that fail to load are reported as ``None`` rather than
        failing the whole overview.

        Returns:
            Dictionary with ``server``, ``health``, ``upstream_health`` and ``plugins``
        """

        async def _safe(coro: Any) -> Any:
            try:
                return await coro
            except (APIError, NetworkError) as e:
                logger.info("system_overview_section_failed", error=str(e))
                return None

        server, healthy, upstream_health, plugins = await asyncio.gather(
            _safe(self.get_server_info()),
            self.is_healthy(),
            _safe(self.get_upstream_health()),
            _safe(self.get_plugins()),
        )
        return {
            "server": server,
            "health": healthy,
            "upstream_health": upstream_health,
            "plugins": plugins,
        }
