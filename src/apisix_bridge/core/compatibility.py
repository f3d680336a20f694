"""Per-release compatibility profiles.

This module is the static half of capability handling: what each major
gateway release is known to support, version comparison, and checks of a
configuration against a capability set. The dynamic half (probing a live
server) lives in ``apisix_bridge.core.capabilities``.
"""

from dataclasses import dataclass, field
from typing import Any

from apisix_bridge.core.normalizer import ResponseFormat

_PLUGINS_2X = (
    "limit-count",
    "limit-req",
    "limit-conn",
    "key-auth",
    "jwt-auth",
    "basic-auth",
    "authz-keycloak",
    "wolf-rbac",
    "openid-connect",
    "hmac-auth",
    "authz-casbin",
    "authz-casdoor",
    "ip-restriction",
    "ua-restriction",
    "referer-restriction",
    "cors",
    "uri-blocker",
    "request-validation",
    "openapi-validator",
    "chaitin-waf",
    "multi-auth",
    "api-breaker",
    "traffic-split",
    "request-id",
    "proxy-mirror",
    "proxy-cache",
    "proxy-rewrite",
    "workflow",
    "redirect",
    "response-rewrite",
    "fault-injection",
    "mocking",
    "serverless-pre-function",
    "serverless-post-function",
    "batch-requests",
    "real-ip",
    "zipkin",
    "skywalking",
    "opentelemetry",
    "jaeger",
    "prometheus",
    "node-status",
    "datadog",
    "elasticsearch-logger",
    "http-logger",
    "kafka-logger",
    "rocketmq-logger",
    "tcp-logger",
    "udp-logger",
    "file-logger",
    "loggly",
    "splunk-hec-logging",
    "syslog",
    "log-rotate",
    "error-log-logger",
    "sls-logger",
    "google-cloud-logging",
    "tencent-cloud-cls",
    "grpc-transcode",
    "grpc-web",
    "public-api",
    "server-info",
    "dubbo-proxy",
)

_PLUGINS_3X = _PLUGINS_2X + (
    "cas-auth",
    "forward-auth",
    "opa",
    "csrf",
)

AUTH_PLUGINS = frozenset(
    {
        "key-auth",
        "basic-auth",
        "jwt-auth",
        "hmac-auth",
        "ldap-auth",
        "wolf-rbac",
    }
)


@dataclass(frozen=True)
class VersionProfile:
    """What a major release line supports."""

    version: str
    supports_pagination: bool
    supports_credentials: bool
    supports_secrets: bool
    response_format: ResponseFormat
    supported_plugins: frozenset[str]
    deprecated_features: tuple[str, ...] = ()


VERSION_PROFILES: dict[str, VersionProfile] = {
    "2": VersionProfile(
        version="2.15.x",
        supports_pagination=False,
        supports_credentials=False,
        supports_secrets=False,
        response_format=ResponseFormat.LEGACY,
        supported_plugins=frozenset(_PLUGINS_2X),
    ),
    "3": VersionProfile(
        version="3.0.x",
        supports_pagination=True,
        supports_credentials=True,
        supports_secrets=True,
        response_format=ResponseFormat.WRAPPED,
        supported_plugins=frozenset(_PLUGINS_3X),
        deprecated_features=("etcd.health_check_retry",),
    ),
}

LATEST_MAJOR = "3"

# Stream routes predate the 3.x line
STREAM_ROUTES_MIN_VERSION = "2.10.0"


def parse_major_version(version: str) -> str:
    """Return the major component of a version string (``"3.2.1"`` -> ``"3"``)."""
    head = version.strip().lstrip("vV").split(".", 1)[0]
    return head if head.isdigit() else LATEST_MAJOR


def _version_parts(version: str) -> list[int]:
    parts = []
    for part in version.strip().lstrip("vV").split("."):
        digits = "".join(ch for ch in part if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return parts


def compare_versions(version1: str, version2: str) -> int:
    """Compare two dotted versions.

    Returns:
        -1, 0 or 1 as ``version1`` is older than, equal to or newer than ``version2``
    """
    v1 = _version_parts(version1)
    v2 = _version_parts(version2)
    length = max(len(v1), len(v2))
    v1 += [0] * (length - len(v1))
    v2 += [0] * (length - len(v2))
    if v1 < v2:
        return -1
    if v1 > v2:
        return 1
    return 0


def get_profile(major_version: str) -> VersionProfile:
    """Profile for a major version, defaulting to the latest known line."""
    return VERSION_PROFILES.get(major_version, VERSION_PROFILES[LATEST_MAJOR])


@dataclass(frozen=True)
class CapabilitySet:
    """Resolved feature profile of one gateway.

    Attributes:
        major_version: Major release line (``"2"``, ``"3"``)
        response_format: Envelope family the gateway answers with
        supports_pagination: Server-side ``page``/``page_size`` support
        supports_credentials: Consumer credentials sub-API exists
        supports_secrets: Secret manager API exists
        supports_stream_routes: Stream (L4) routes API exists
        supported_plugins: Plugins known to ship with this release line
        deprecated_features: Dotted configuration keys deprecated on this line
        server_version: Full version string when known
        source: How the set was obtained (declared, probed or fallback)
    """

    major_version: str
    response_format: ResponseFormat
    supports_pagination: bool
    supports_credentials: bool
    supports_secrets: bool
    supports_stream_routes: bool
    supported_plugins: frozenset[str] = frozenset()
    deprecated_features: tuple[str, ...] = ()
    server_version: str | None = None
    source: str = "probed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "major_version": self.major_version,
            "response_format": self.response_format.value,
            "supports_pagination": self.supports_pagination,
            "supports_credentials": self.supports_credentials,
            "supports_secrets": self.supports_secrets,
            "supports_stream_routes": self.supports_stream_routes,
            "supported_plugins": sorted(self.supported_plugins),
            "deprecated_features": list(self.deprecated_features),
            "server_version": self.server_version,
            "source": self.source,
        }


def conservative_capabilities() -> CapabilitySet:
    """The capability set used when detection fails: 2.x with every optional API off."""
    profile = VERSION_PROFILES["2"]
    return CapabilitySet(
        major_version="2",
        response_format=ResponseFormat.LEGACY,
        supports_pagination=False,
        supports_credentials=False,
        supports_secrets=False,
        supports_stream_routes=False,
        supported_plugins=profile.supported_plugins,
        source="fallback",
    )


def capabilities_for_version(version: str) -> CapabilitySet:
    """Build the capability set implied by a known server version.

    Args:
        version: Server version string, e.g. ``"3.9.1"`` or ``"2.15.3"``

    Returns:
        CapabilitySet with ``source="declared"``
    """
    is_3x = compare_versions(version, "3.0.0") >= 0
    profile = get_profile("3" if is_3x else "2")
    return CapabilitySet(
        major_version=parse_major_version(version),
        response_format=profile.response_format,
        supports_pagination=profile.supports_pagination,
        supports_credentials=profile.supports_credentials,
        supports_secrets=profile.supports_secrets,
        supports_stream_routes=compare_versions(version, STREAM_ROUTES_MIN_VERSION) >= 0,
        supported_plugins=profile.supported_plugins,
        deprecated_features=profile.deprecated_features,
        server_version=version,
        source="declared",
    )


@dataclass
class ValidationResult:
    """Outcome of checking a configuration against a capability set."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


@dataclass
class MigrationRecommendations:
    """Differences to expect when moving to another release line."""

    new_features: list[str] = field(default_factory=list)
    deprecated_features: list[str] = field(default_factory=list)
    breaking_changes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "new_features": list(self.new_features),
            "deprecated_features": list(self.deprecated_features),
            "breaking_changes": list(self.breaking_changes),
        }


def _has_nested_key(data: dict[str, Any], path: str) -> bool:
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return False
        current = current[key]
    return True


FEATURE_FLAGS = {
    "pagination": "supports_pagination",
    "credentials": "supports_credentials",
    "secrets": "supports_secrets",
    "stream_routes": "supports_stream_routes",
}


class CompatibilityChecker:
    """Answers compatibility questions against a resolved capability set."""

    def __init__(self, capabilities: CapabilitySet):
        """Initialize checker.

        Args:
            capabilities: Resolved capability set
        """
        self.capabilities = capabilities

    def is_feature_supported(self, feature: str) -> bool:
        """Check a named feature (pagination, credentials, secrets, stream_routes)."""
        if feature == "wrapped_response_format":
            return self.capabilities.response_format is ResponseFormat.WRAPPED
        attr = FEATURE_FLAGS.get(feature)
        if attr is None:
            raise ValueError(
                f"Unknown feature '{feature}'. Expected one of: "
                f"{', '.join(sorted(FEATURE_FLAGS))}, wrapped_response_format"
            )
        return bool(getattr(self.capabilities, attr))

    def is_plugin_supported(self, plugin_name: str) -> bool:
        return plugin_name in self.capabilities.supported_plugins

    @property
    def deprecated_features(self) -> tuple[str, ...]:
        return self.capabilities.deprecated_features

    def is_feature_deprecated(self, feature: str) -> bool:
        return feature in self.capabilities.deprecated_features

    def validate_configuration(self, config: dict[str, Any]) -> ValidationResult:
        """Check an entity or configuration document against the gateway.

        Unsupported plugins and use of absent APIs are errors; deprecated
        keys are warnings.

        Args:
            config: Entity body or configuration mapping

        Returns:
            ValidationResult
        """
        errors: list[str] = []
        warnings: list[str] = []
        release = f"{self.capabilities.major_version}.x"

        plugins = config.get("plugins")
        if isinstance(plugins, dict):
            for plugin_name in plugins:
                if not self.is_plugin_supported(plugin_name):
                    errors.append(f"Plugin '{plugin_name}' is not supported in release {release}")

        for feature in self.capabilities.deprecated_features:
            if _has_nested_key(config, feature):
                warnings.append(f"Feature '{feature}' is deprecated in release {release}")

        if not self.capabilities.supports_credentials and config.get("credentials"):
            errors.append("Credentials API is not supported by this gateway")

        if not self.capabilities.supports_secrets and config.get("secrets"):
            errors.append("Secret management is not supported by this gateway")

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def migration_recommendations(self, target_version: str) -> MigrationRecommendations:
        """Describe what changes when moving to ``target_version``.

        Raises:
            ValueError: If the target release line is unknown
        """
        target_major = parse_major_version(target_version)
        target = VERSION_PROFILES.get(target_major)
        if target is None:
            raise ValueError(f"Unsupported target version: {target_version}")

        current = self.capabilities
        result = MigrationRecommendations(deprecated_features=list(target.deprecated_features))

        if target.supports_credentials and not current.supports_credentials:
            result.new_features.append("Consumer Credentials API")
        if target.supports_secrets and not current.supports_secrets:
            result.new_features.append("Secret Management")
        if target.supports_pagination and not current.supports_pagination:
            result.new_features.append("Server-side pagination")
        if (
            target.response_format is ResponseFormat.WRAPPED
            and current.response_format is not ResponseFormat.WRAPPED
        ):
            result.new_features.append("New Admin API Response Format")
            result.breaking_changes.append("Admin API response format changed")

        for plugin in sorted(target.supported_plugins - current.supported_plugins):
            result.new_features.append(f"{plugin} plugin")

        return result
