"""Admin API client.

The Admin API is the configuration surface of the gateway. It is the only
surface that receives the API key.
"""

import httpx

from apisix_bridge.client.base_client import BaseAPIClient
from apisix_bridge.config import GatewayConfig, PerformanceConfig
from apisix_bridge.utils.logging import get_logger

logger = get_logger(__name__)


class AdminAPIClient(BaseAPIClient):
    """Client for the gateway Admin API.

    Endpoints passed to this client are relative to the admin prefix, e.g.
    ``routes`` or ``consumers/jack/credentials``.
    """

    def __init__(
        self,
        config: GatewayConfig,
        performance: PerformanceConfig | None = None,
        log_payloads: bool = False,
        max_payload_size: int = 10000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Admin API client.

        Args:
            config: Gateway connection configuration
            performance: Optional connection pool and rate limit settings
            log_payloads: Enable request/response payload logging
            max_payload_size: Maximum payload size to log before truncation
            transport: Custom httpx transport (used by tests)
        """
        performance = performance or PerformanceConfig()
        super().__init__(
            base_url=f"{config.admin_url}{config.admin_prefix}",
            api_key=config.api_key,
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
        logger.debug("admin_client_initialized", url=self.base_url)
