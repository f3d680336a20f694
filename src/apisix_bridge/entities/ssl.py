"""SSL certificate wrapper.

Single-certificate GETs omit the private key; cloning recovers it from the
list response (see ``SSL_CLONE_PROFILE``).
"""

import time
from dataclasses import dataclass
from typing import Any

from apisix_bridge.core.clone import PayloadCheck
from apisix_bridge.core.normalizer import Entity
from apisix_bridge.entities.base import EntityResource

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class CertificateExpiration:
    """Expiry status of one certificate."""

    is_expired: bool
    will_expire_soon: bool
    days_remaining: int | None = None
    validity_end: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_expired": self.is_expired,
            "will_expire_soon": self.will_expire_soon,
            "days_remaining": self.days_remaining,
            "validity_end": self.validity_end,
        }


def expiration_of(
    certificate: Entity,
    days_to_expire: int = 30,
    now: float | None = None,
) -> CertificateExpiration:
    """Compute expiry status from a certificate's ``validity_end`` (epoch seconds)."""
    validity_end = certificate.get("validity_end")
    if not isinstance(validity_end, (int, float)):
        return CertificateExpiration(is_expired=False, will_expire_soon=False)

    now = time.time() if now is None else now
    is_expired = validity_end < now
    return CertificateExpiration(
        is_expired=is_expired,
        will_expire_soon=not is_expired and validity_end < now + days_to_expire * SECONDS_PER_DAY,
        days_remaining=max(0, int((validity_end - now) // SECONDS_PER_DAY)),
        validity_end=int(validity_end),
    )


def check_certificate_body(body: dict[str, Any]) -> list[str]:
    """A certificate needs ``cert`` and ``key``; ``snis``, when given, a non-empty list."""
    errors = []
    if not body.get("cert") or not body.get("key"):
        errors.append("SSL certificate must have both 'cert' and 'key' fields")
    snis = body.get("snis")
    if snis is not None:
        if not isinstance(snis, list):
            errors.append("SNI must be an array")
        elif not snis:
            errors.append("SNI array cannot be empty")
    return errors


class SSLCertificates(EntityResource):
    """SSL certificates."""

    resource_type = "ssls"

    async def find_by_sni(self, sni: str) -> list[Entity]:
        return await self.find_by(
            lambda cert: cert.get("sni") == sni or sni in (cert.get("snis") or [])
        )

    async def check_expiration(
        self, ssl_id: str, days_to_expire: int = 30
    ) -> CertificateExpiration:
        """Check whether a certificate has expired or expires within ``days_to_expire``."""
        return expiration_of(await self.get(ssl_id), days_to_expire)

    async def get_expiring_certificates(self, days_to_expire: int = 30) -> list[dict[str, Any]]:
        """Certificates that are expired or expire within ``days_to_expire``.

        Returns:
            Certificate dicts, each with an added ``expiration`` entry
        """
        expiring = []
        for cert in await self.list():
            info = expiration_of(cert, days_to_expire)
            if info.is_expired or info.will_expire_soon:
                expiring.append({**cert, "expiration": info.to_dict()})
        return expiring

    def clone_check(self) -> PayloadCheck | None:
        return check_certificate_body
