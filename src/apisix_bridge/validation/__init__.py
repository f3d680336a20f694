"""Validation module for APISIX Bridge.

This module checks entity payloads before they are sent to the gateway.
"""

from apisix_bridge.validation.payload_validator import PayloadValidator

__all__ = [
    "PayloadValidator",
]
