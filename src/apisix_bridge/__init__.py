"""APISIX Bridge - async client for the Apache APISIX Admin and Control APIs."""

import logging

__version__ = "0.1.0"
__license__ = "Apache-2.0"

# Suppress verbose third-party library logging
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpcore.connection").setLevel(logging.WARNING)
logging.getLogger("httpcore.http11").setLevel(logging.WARNING)

from apisix_bridge.client.exceptions import (  # noqa: E402
    APIError,
    ApisixBridgeError,
    NetworkError,
    NotFoundError,
    ParseError,
    RequestTimeoutError,
    StateError,
    UnsupportedFeatureError,
    ValidationError,
)
from apisix_bridge.config import (  # noqa: E402
    CapabilityPolicy,
    ClientSettings,
    GatewayConfig,
    LoggingConfig,
    PerformanceConfig,
)
from apisix_bridge.core import (  # noqa: E402
    CapabilitySet,
    GatewayContext,
    ImportStrategy,
    ResponseFormat,
)
from apisix_bridge.gateway import GatewayClient  # noqa: E402

__all__ = [
    "APIError",
    "ApisixBridgeError",
    "CapabilityPolicy",
    "CapabilitySet",
    "ClientSettings",
    "GatewayClient",
    "GatewayConfig",
    "GatewayContext",
    "ImportStrategy",
    "LoggingConfig",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "PerformanceConfig",
    "RequestTimeoutError",
    "ResponseFormat",
    "StateError",
    "UnsupportedFeatureError",
    "ValidationError",
    "__version__",
]
