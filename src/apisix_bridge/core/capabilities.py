"""Capability detection for the connected gateway.

The resolver either trusts a declared server version or probes the Admin
API, then memoizes the result for the lifetime of the owning client.
Detection never raises: any unexpected failure yields the conservative
capability set.
"""

import asyncio

from apisix_bridge.client.admin_client import AdminAPIClient
from apisix_bridge.client.exceptions import (
    APIError,
    BadRequestError,
    NetworkError,
    NotFoundError,
)
from apisix_bridge.config import CapabilityPolicy
from apisix_bridge.core.compatibility import (
    CapabilitySet,
    capabilities_for_version,
    conservative_capabilities,
    get_profile,
)
from apisix_bridge.core.normalizer import ResponseFormat, ResponseNormalizer
from apisix_bridge.utils.logging import get_logger

logger = get_logger(__name__)

PROBE_PARAMS = {"page": 1, "page_size": 1}


class CapabilityResolver:
    """Resolves and caches the capability set of one gateway.

    Concurrent first calls share a single detection run.
    """

    def __init__(
        self,
        admin: AdminAPIClient,
        normalizer: ResponseNormalizer | None = None,
        policy: CapabilityPolicy | None = None,
        declared_version: str | None = None,
    ):
        """Initialize resolver.

        Args:
            admin: Admin API transport used for probing
            normalizer: Envelope normalizer used to detect the response format
            policy: Defaults for features that are assumed rather than proven
            declared_version: Known server version; disables probing
        """
        self.admin = admin
        self.normalizer = normalizer or ResponseNormalizer()
        self.policy = policy or CapabilityPolicy()
        self.declared_version = declared_version
        self._capabilities: CapabilitySet | None = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> CapabilitySet | None:
        """The memoized capability set, or None before the first resolution."""
        return self._capabilities

    async def get_capabilities(self) -> CapabilitySet:
        """Return the capability set, detecting it on first use."""
        if self._capabilities is not None:
            return self._capabilities
        async with self._lock:
            if self._capabilities is None:
                self._capabilities = await self._detect()
        return self._capabilities

    def reset(self) -> None:
        """Forget the cached capability set; the next call detects again."""
        self._capabilities = None
        logger.debug("capabilities_reset")

    async def _detect(self) -> CapabilitySet:
        if self.declared_version:
            capabilities = capabilities_for_version(self.declared_version)
            logger.info(
                "capability_detection_completed",
                source=capabilities.source,
                version=self.declared_version,
            )
            return capabilities

        try:
            capabilities = await self._probe()
        except Exception as e:
            logger.warning(
                "capability_detection_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            return conservative_capabilities()

        logger.info("capability_detection_completed", **capabilities.to_dict())
        return capabilities

    async def _probe(self) -> CapabilitySet:
        """Run the probe chain.

        Raises:
            Any error from the paginated list other than a 400 rejection;
            the caller turns that into the conservative fallback.
        """
        try:
            raw = await self.admin.get(self.policy.probe_endpoint, params=PROBE_PARAMS)
        except BadRequestError as e:
            logger.info("pagination_rejected", status_code=e.status_code, error=e.message)
            profile = get_profile("2")
            return CapabilitySet(
                major_version="2",
                response_format=ResponseFormat.LEGACY,
                supports_pagination=False,
                supports_credentials=False,
                supports_secrets=await self._probe_secrets(),
                supports_stream_routes=await self._probe_stream_routes(),
                supported_plugins=profile.supported_plugins,
            )

        profile = get_profile("3")
        return CapabilitySet(
            major_version="3",
            response_format=self.normalizer.detect_format(raw) or ResponseFormat.WRAPPED,
            supports_pagination=True,
            supports_credentials=await self._probe_credentials(),
            supports_secrets=await self._probe_secrets(),
            supports_stream_routes=await self._probe_stream_routes(),
            supported_plugins=profile.supported_plugins,
            deprecated_features=profile.deprecated_features,
        )

    async def _probe_credentials(self) -> bool:
        """Check whether the credentials sub-API is routed at all.

        A 404 for the probe consumer means the API exists; a 404 for the
        route itself means it does not.
        """
        endpoint = f"consumers/{self.policy.credentials_probe_consumer}/credentials"
        try:
            await self.admin.get(endpoint)
        except NotFoundError as e:
            supported = not e.is_missing_route
        except (APIError, NetworkError) as e:
            logger.debug("credentials_probe_failed", error=str(e))
            supported = False
        else:
            supported = True
        logger.debug("credentials_probe_completed", supported=supported)
        return supported

    async def _probe_secrets(self) -> bool:
        if not self.policy.probe_optional_features:
            return self.policy.assume_secrets
        try:
            await self.admin.get("secrets/vault")
        except NotFoundError as e:
            if e.is_missing_route:
                return False
            return self.policy.assume_secrets
        except (APIError, NetworkError) as e:
            logger.debug("secrets_probe_inconclusive", error=str(e))
            return self.policy.assume_secrets
        return True

    async def _probe_stream_routes(self) -> bool:
        if not self.policy.probe_optional_features:
            return self.policy.assume_stream_routes
        try:
            await self.admin.get("stream_routes")
        except NotFoundError as e:
            if e.is_missing_route:
                return False
            return self.policy.assume_stream_routes
        except BadRequestError as e:
            # Stream mode switched off in the gateway config
            if "disabled" in e.message.lower():
                return False
            return self.policy.assume_stream_routes
        except (APIError, NetworkError) as e:
            logger.debug("stream_routes_probe_inconclusive", error=str(e))
            return self.policy.assume_stream_routes
        return True
