"""Entity wrappers: thin, endpoint-bound delegates to the core."""

from apisix_bridge.entities.base import EntityResource
from apisix_bridge.entities.common import (
    ConsumerGroups,
    Consumers,
    GlobalRules,
    PluginConfigs,
    PluginHostResource,
    PluginMetadata,
    Protos,
    Services,
    Upstreams,
)
from apisix_bridge.entities.credentials import Credentials
from apisix_bridge.entities.plugins import Plugins
from apisix_bridge.entities.routes import Routes
from apisix_bridge.entities.secrets import SecretManager, Secrets
from apisix_bridge.entities.ssl import CertificateExpiration, SSLCertificates
from apisix_bridge.entities.stream_routes import StreamRoutes

__all__ = [
    "CertificateExpiration",
    "ConsumerGroups",
    "Consumers",
    "Credentials",
    "EntityResource",
    "GlobalRules",
    "PluginConfigs",
    "PluginHostResource",
    "PluginMetadata",
    "Plugins",
    "Protos",
    "Routes",
    "SSLCertificates",
    "SecretManager",
    "Secrets",
    "Services",
    "StreamRoutes",
    "Upstreams",
]
