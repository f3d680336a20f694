"""Pre-flight payload validation.

Payloads are checked against the entity registry (required fields, basic
field types) and, when a capability set is known, against the plugins the
gateway ships. Checks run before any network call so a guaranteed-invalid
request never leaves the process.
"""

from typing import TYPE_CHECKING, Any

from apisix_bridge.resources import RESOURCE_REGISTRY, ResourceTypeInfo, resource_for_endpoint
from apisix_bridge.utils.logging import get_logger

if TYPE_CHECKING:
    from apisix_bridge.core.capabilities import CapabilityResolver
    from apisix_bridge.core.compatibility import CapabilitySet

logger = get_logger(__name__)

# Fields whose value must be a JSON object when present
OBJECT_FIELDS = ("plugins", "labels", "upstream", "vars_map")
# Fields whose value must be a JSON array when present
ARRAY_FIELDS = ("uris", "methods", "hosts", "snis", "remote_addrs")

JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _matches_json_type(value: Any, declared: str | list[str]) -> bool:
    for name in [declared] if isinstance(declared, str) else declared:
        if name == "null" and value is None:
            return True
        # bool is an int subclass but never a JSON number
        if isinstance(value, bool) and name in ("integer", "number"):
            continue
        if isinstance(value, JSON_TYPES.get(name, (object,))):
            return True
    return False


class PayloadValidator:
    """Validates entity payloads before they are sent."""

    def __init__(
        self,
        capabilities: "CapabilitySet | None" = None,
        resolver: "CapabilityResolver | None" = None,
    ):
        """Initialize payload validator.

        Args:
            capabilities: Resolved gateway capabilities; enables plugin checks
            resolver: Capability resolver whose cached set is used when
                ``capabilities`` is not given. Validation never triggers
                detection itself.
        """
        self._capabilities = capabilities
        self.resolver = resolver

    @property
    def capabilities(self) -> "CapabilitySet | None":
        if self._capabilities is not None:
            return self._capabilities
        return self.resolver.cached if self.resolver is not None else None

    @staticmethod
    def _lookup(resource: str) -> ResourceTypeInfo | None:
        return RESOURCE_REGISTRY.get(resource) or resource_for_endpoint(resource)

    def validate_payload(
        self,
        resource: str,
        payload: Any,
        partial: bool = False,
    ) -> tuple[bool, list[str]]:
        """Validate an entity payload.

        Args:
            resource: Entity type name (``routes``) or endpoint
                (``consumers/jack/credentials``)
            payload: Entity body
            partial: Skip required-field checks (PATCH bodies)

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        if not isinstance(payload, dict):
            return False, [f"Payload must be an object, got {type(payload).__name__}"]

        errors = []
        info = self._lookup(resource)

        if info is None:
            logger.debug("validation_unknown_resource", resource=resource)
        elif not partial:
            for group in info.required_fields:
                if all(_is_blank(payload.get(name)) for name in group):
                    alternatives = " or ".join(f"'{name}'" for name in group)
                    errors.append(f"Missing required field: {alternatives}")

        for name in OBJECT_FIELDS:
            value = payload.get(name)
            if value is not None and not isinstance(value, dict):
                errors.append(f"Field '{name}' expected object, got {type(value).__name__}")

        for name in ARRAY_FIELDS:
            value = payload.get(name)
            if value is not None and not isinstance(value, list):
                errors.append(f"Field '{name}' expected array, got {type(value).__name__}")

        plugins = payload.get("plugins")
        capabilities = self.capabilities
        if capabilities is not None and isinstance(plugins, dict):
            release = f"{capabilities.major_version}.x"
            for plugin_name in plugins:
                if plugin_name not in capabilities.supported_plugins:
                    errors.append(f"Plugin '{plugin_name}' is not supported in release {release}")

        is_valid = len(errors) == 0

        if not is_valid:
            logger.warning(
                "payload_validation_failed",
                resource=resource,
                entity_id=payload.get("id"),
                error_count=len(errors),
                errors=errors,
            )

        return is_valid, errors

    def validate_plugin_config(
        self, plugin_name: str, config: Any, schema: dict[str, Any]
    ) -> tuple[bool, list[str]]:
        """Check a plugin configuration against the top level of its JSON schema.

        Only ``required`` and the declared ``type`` of each property are
        checked; the gateway applies the full schema when the plugin is saved.

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        if not isinstance(config, dict):
            return False, [
                f"Configuration of plugin '{plugin_name}' must be an object, "
                f"got {type(config).__name__}"
            ]

        errors = [
            f"Missing required field: '{name}'"
            for name in schema.get("required") or []
            if name not in config
        ]
        properties = schema.get("properties") or {}
        for name, value in config.items():
            spec = properties.get(name)
            declared = spec.get("type") if isinstance(spec, dict) else None
            if declared and not _matches_json_type(value, declared):
                expected = declared if isinstance(declared, str) else " or ".join(declared)
                errors.append(f"Field '{name}' expected {expected}, got {type(value).__name__}")

        if errors:
            logger.warning(
                "plugin_config_validation_failed",
                plugin=plugin_name,
                error_count=len(errors),
                errors=errors,
            )
        return not errors, errors

    def validate_batch(self, resource: str, payloads: list[Any]) -> dict[str, Any]:
        """Validate many payloads.

        Args:
            resource: Entity type name or endpoint
            payloads: Entity bodies

        Returns:
            Dictionary with ``valid_count``, ``invalid_count``, ``total_checked``
            and per-payload ``errors`` (``index``, ``id``, ``errors``)
        """
        valid_count = 0
        invalid_count = 0
        all_errors = []

        for index, payload in enumerate(payloads):
            is_valid, errors = self.validate_payload(resource, payload)
            if is_valid:
                valid_count += 1
            else:
                invalid_count += 1
                entity_id = payload.get("id") if isinstance(payload, dict) else None
                all_errors.append({"index": index, "id": entity_id, "errors": errors})

        logger.info(
            "batch_validation_complete",
            resource=resource,
            valid=valid_count,
            invalid=invalid_count,
        )

        return {
            "valid_count": valid_count,
            "invalid_count": invalid_count,
            "total_checked": len(payloads),
            "errors": all_errors,
        }
