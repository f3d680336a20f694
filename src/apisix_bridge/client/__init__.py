"""HTTP clients for the gateway Admin and Control APIs."""

from apisix_bridge.client.admin_client import AdminAPIClient
from apisix_bridge.client.base_client import BaseAPIClient
from apisix_bridge.client.control_client import ControlAPIClient

__all__ = [
    "AdminAPIClient",
    "BaseAPIClient",
    "ControlAPIClient",
]
