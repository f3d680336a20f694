"""Shared fixtures for gateway client tests."""

from typing import Any

import httpx
import pytest
import pytest_asyncio

from apisix_bridge.gateway import GatewayClient
from tests.fakes import FakeGateway, make_config


@pytest.fixture
def gateway() -> FakeGateway:
    """A 3.x gateway: wrapped envelope, pagination and every optional API."""
    return FakeGateway()


@pytest.fixture
def legacy_gateway() -> FakeGateway:
    """A 2.x gateway: legacy envelope, no pagination, credentials or secrets."""
    return FakeGateway(legacy=True)


@pytest_asyncio.fixture
async def connect():
    """Factory building clients against a fake gateway; closes them afterwards."""
    clients = []

    def _connect(fake: FakeGateway, **kwargs: Any) -> GatewayClient:
        config_overrides = {
            name: kwargs.pop(name) for name in ("declared_version", "api_key") if name in kwargs
        }
        client = GatewayClient(
            make_config(**config_overrides),
            transport=httpx.MockTransport(fake),
            **kwargs,
        )
        clients.append(client)
        return client

    yield _connect

    for client in clients:
        await client.close()


@pytest.fixture
def client(connect, gateway) -> GatewayClient:
    return connect(gateway)


@pytest.fixture
def legacy_client(connect, legacy_gateway) -> GatewayClient:
    return connect(legacy_gateway)
