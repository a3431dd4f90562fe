"""
End-to-end run against a standalone rippled.

    WS_URL=ws://127.0.0.1:6006 RPC_URL=http://127.0.0.1:5005 pytest -m integration
"""
import os

import pytest
import pytest_asyncio

from conformance.config import load_settings
from conformance.connection import open_connection, probe_node
from conformance.fixtures import prepare_suite
from conformance.ledger import advance, validated_ledger_index
from conformance.runner import run_case
from conformance.scenarios import REGISTRY

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not os.getenv("WS_URL"), reason="WS_URL not set; no live node"),
]


@pytest.fixture(scope="module")
def settings():
    return load_settings()


@pytest_asyncio.fixture
async def suite(settings):
    await probe_node(settings.rpc_url, max_retries=5, retry_delay=1.0)
    async with open_connection(settings.ws_url, request_timeout=settings.rpc_timeout) as connection:
        return await prepare_suite(connection, settings)


@pytest.mark.asyncio
async def test_ledger_accept_moves_validated_ledger(settings):
    async with open_connection(settings.ws_url) as connection:
        before = await validated_ledger_index(connection)
        await advance(connection)
        assert await validated_ledger_index(connection) > before


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["trustline", "payment", "order", "get_trustlines", "get_balances", "get_orderbook", "multisign"])
async def test_case(suite, settings, name):
    await run_case(suite, name, REGISTRY[name].run, settings=settings)
