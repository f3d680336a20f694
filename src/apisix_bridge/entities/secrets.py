"""Secret manager wrappers.

Secrets are scoped by manager (``vault``, ``aws``, ``gcp``). The typed
create helpers check required connection fields before any request.
"""

from typing import Any

from apisix_bridge.client.exceptions import ValidationError
from apisix_bridge.core.context import GatewayContext
from apisix_bridge.core.normalizer import Entity
from apisix_bridge.entities.base import EntityResource
from apisix_bridge.resources import SECRET_MANAGERS, get_endpoint
from apisix_bridge.utils.logging import get_logger

logger = get_logger(__name__)


def _missing(config: dict[str, Any], *names: str) -> list[str]:
    return [name for name in names if not config.get(name)]


def validate_vault_config(config: dict[str, Any]) -> list[str]:
    errors = []
    missing = _missing(config, "uri", "prefix", "token")
    if missing:
        errors.append(
            f"Vault secrets require uri, prefix and token (missing: {', '.join(missing)})"
        )
    uri = config.get("uri")
    if uri and not str(uri).startswith(("http://", "https://")):
        errors.append("Vault URI must start with http:// or https://")
    return errors


def validate_aws_config(config: dict[str, Any]) -> list[str]:
    missing = _missing(config, "access_key_id", "secret_access_key")
    if missing:
        return [
            "AWS secrets require access_key_id and secret_access_key "
            f"(missing: {', '.join(missing)})"
        ]
    return []


def validate_gcp_config(config: dict[str, Any]) -> list[str]:
    auth_config = config.get("auth_config")
    if not auth_config and not config.get("auth_file"):
        return ["GCP secrets require either auth_config or auth_file"]
    if auth_config:
        if not isinstance(auth_config, dict):
            return ["auth_config must be an object"]
        missing = _missing(auth_config, "client_email", "private_key", "project_id")
        if missing:
            return [
                "client_email, private_key and project_id are required in auth_config "
                f"(missing: {', '.join(missing)})"
            ]
    return []


MANAGER_VALIDATORS = {
    "vault": validate_vault_config,
    "aws": validate_aws_config,
    "gcp": validate_gcp_config,
}


class SecretManager(EntityResource):
    """Secrets of one manager type."""

    resource_type = "secrets"

    def __init__(self, context: GatewayContext, manager: str):
        if manager not in SECRET_MANAGERS:
            raise ValidationError(
                f"Unknown secret manager '{manager}', expected one of: {', '.join(SECRET_MANAGERS)}"
            )
        super().__init__(context, get_endpoint("secrets", manager=manager))
        self.manager = manager

    async def create_validated(
        self, config: dict[str, Any], secret_id: str | None = None
    ) -> Entity:
        """Create a secret after checking the manager's required fields.

        Raises:
            ValidationError: Before any request, if required fields are missing
        """
        errors = MANAGER_VALIDATORS[self.manager](config)
        if errors:
            raise ValidationError(f"Invalid {self.manager} secret configuration", errors)
        return await self.create(config, secret_id)


class Secrets:
    """All secret managers of one gateway."""

    def __init__(self, context: GatewayContext):
        self.context = context
        self.vault = SecretManager(context, "vault")
        self.aws = SecretManager(context, "aws")
        self.gcp = SecretManager(context, "gcp")

    def manager(self, name: str) -> SecretManager:
        return SecretManager(self.context, name)

    async def create_vault_secret(
        self, config: dict[str, Any], secret_id: str | None = None
    ) -> Entity:
        """Create a HashiCorp Vault secret (``uri``, ``prefix``, ``token``)."""
        return await self.vault.create_validated(config, secret_id)

    async def create_aws_secret(
        self, config: dict[str, Any], secret_id: str | None = None
    ) -> Entity:
        """Create an AWS Secrets Manager secret (``access_key_id``, ``secret_access_key``)."""
        return await self.aws.create_validated(config, secret_id)

    async def create_gcp_secret(
        self, config: dict[str, Any], secret_id: str | None = None
    ) -> Entity:
        """Create a GCP Secret Manager secret (``auth_config`` or ``auth_file``)."""
        return await self.gcp.create_validated(config, secret_id)

    async def list_all_secrets(self) -> dict[str, list[Entity]]:
        """List secrets of every manager, keyed by manager name."""
        return {
            "vault": await self.vault.list(),
            "aws": await self.aws.list(),
            "gcp": await self.gcp.list(),
        }
