"""Central entity type definitions - single source of truth.

This module is the registry of every Admin API entity the client knows:
its endpoint, the fields a payload must carry, which capability gates it
and how it is cloned. Entity wrappers, the payload validator and the
import/export engine all read from here.
"""

import re
from dataclasses import dataclass

IDENTITY_FIELDS = ("id", "create_time", "update_time")


@dataclass(frozen=True)
class CloneProfile:
    """Per-entity cloning rules.

    Attributes:
        volatile_fields: Server-computed fields dropped in addition to
            ``id``/``create_time``/``update_time``
        sensitive_fields: Fields the single-entity GET may omit; they are
            recovered from the list response
    """

    volatile_fields: tuple[str, ...] = ()
    sensitive_fields: tuple[str, ...] = ()

    @property
    def stripped_fields(self) -> frozenset[str]:
        return frozenset(IDENTITY_FIELDS + self.volatile_fields)


DEFAULT_CLONE_PROFILE = CloneProfile()

# Private keys are withheld from single GETs but present in list responses
SSL_CLONE_PROFILE = CloneProfile(
    volatile_fields=("validity_start", "validity_end"),
    sensitive_fields=("key",),
)


@dataclass(frozen=True)
class ResourceTypeInfo:
    """Metadata for an entity type."""

    name: str
    endpoint: str  # May contain {placeholders} for scoped collections
    # Each group is satisfied by any one of its fields
    required_fields: tuple[tuple[str, ...], ...] = ()
    requires_capability: str | None = None
    clone_profile: CloneProfile = DEFAULT_CLONE_PROFILE


RESOURCE_REGISTRY: dict[str, ResourceTypeInfo] = {
    # Shared building blocks
    "upstreams": ResourceTypeInfo(
        name="upstreams",
        endpoint="upstreams",
        required_fields=(("nodes", "service_name"),),
    ),
    "protos": ResourceTypeInfo(
        name="protos",
        endpoint="protos",
        required_fields=(("content",),),
    ),
    "ssls": ResourceTypeInfo(
        name="ssls",
        endpoint="ssls",
        required_fields=(("cert",), ("key",)),
        clone_profile=SSL_CLONE_PROFILE,
    ),
    "plugin_configs": ResourceTypeInfo(
        name="plugin_configs",
        endpoint="plugin_configs",
        required_fields=(("plugins",),),
    ),
    "services": ResourceTypeInfo(
        name="services",
        endpoint="services",
    ),
    # Identity
    "consumer_groups": ResourceTypeInfo(
        name="consumer_groups",
        endpoint="consumer_groups",
        required_fields=(("plugins",),),
    ),
    "consumers": ResourceTypeInfo(
        name="consumers",
        endpoint="consumers",
        required_fields=(("username",),),
    ),
    "credentials": ResourceTypeInfo(
        name="credentials",
        endpoint="consumers/{consumer}/credentials",
        required_fields=(("plugins",),),
        requires_capability="supports_credentials",
    ),
    # Traffic
    "routes": ResourceTypeInfo(
        name="routes",
        endpoint="routes",
        required_fields=(("uri", "uris"),),
    ),
    "stream_routes": ResourceTypeInfo(
        name="stream_routes",
        endpoint="stream_routes",
        requires_capability="supports_stream_routes",
    ),
    # Gateway-wide settings
    "global_rules": ResourceTypeInfo(
        name="global_rules",
        endpoint="global_rules",
        required_fields=(("plugins",),),
    ),
    "plugin_metadata": ResourceTypeInfo(
        name="plugin_metadata",
        endpoint="plugin_metadata",
    ),
    "secrets": ResourceTypeInfo(
        name="secrets",
        endpoint="secrets/{manager}",
        requires_capability="supports_secrets",
    ),
}

SECRET_MANAGERS = ("vault", "aws", "gcp")


def _endpoint_pattern(template: str) -> re.Pattern[str]:
    parts = re.split(r"(\{[a-z_]+\})", template)
    regex = "".join("[^/]+" if part.startswith("{") else re.escape(part) for part in parts)
    return re.compile(f"^{regex}$")


_ENDPOINT_PATTERNS = {
    name: _endpoint_pattern(info.endpoint) for name, info in RESOURCE_REGISTRY.items()
}


def get_endpoint(resource_type: str, **scope: str) -> str:
    """Get the Admin API endpoint for an entity type.

    Args:
        resource_type: Name of the entity type
        **scope: Values for scoped endpoints (``consumer``, ``manager``)

    Returns:
        Endpoint path relative to the admin prefix

    Raises:
        KeyError: If the type is unknown or a scope value is missing
    """
    return RESOURCE_REGISTRY[resource_type].endpoint.format(**scope)


def get_info(resource_type: str) -> ResourceTypeInfo:
    """Get full metadata for an entity type.

    Raises:
        KeyError: If the type is not in the registry
    """
    return RESOURCE_REGISTRY[resource_type]


def resource_for_endpoint(endpoint: str) -> ResourceTypeInfo | None:
    """Find the entity type served by a concrete endpoint.

    Example:
        >>> resource_for_endpoint("consumers/jack/credentials").name
        'credentials'
    """
    endpoint = endpoint.strip("/")
    for name, pattern in _ENDPOINT_PATTERNS.items():
        if pattern.match(endpoint):
            return RESOURCE_REGISTRY[name]
    return None

