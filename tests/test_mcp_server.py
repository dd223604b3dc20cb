import json

import pytest
import pytest_asyncio

from helpers import FakeAdapter, FakeClock, make_offer
from usdt_p2p.engine.service import OfferSearchService
from usdt_p2p.market.models import Direction
from usdt_p2p.mcp.server import OfferMCPServer
from usdt_p2p.sources.base import FetchFailure


@pytest_asyncio.fixture
async def server():
    adapter = FakeAdapter("binance", {
        Direction.BUY: [make_offer("a")],
        Direction.SELL: FetchFailure("binance", "HTTP 500"),
    })
    service = OfferSearchService([adapter], clock=FakeClock())
    await service.scheduler.refresh_cycle()
    yield OfferMCPServer(service)
    await service.stop()


async def test_tool_list(server):
    names = [t.name for t in server._tools()]
    assert names == ["search_offers", "get_health", "trigger_refresh"]
    schema = server._tools()[0].inputSchema
    assert schema["properties"]["currency"]["enum"] == ["USDT", "VND"]


async def test_search_tool_returns_serialisable_result(server):
    result = await server.handle("search_offers", {"action": "buy", "amount": 500, "currency": "USDT"})
    assert result["offers"][0]["id"] == "binance:a"
    assert result["meta"]["compatible_offers"] == 1
    json.dumps(result, default=str)


async def test_invalid_request_payload(server):
    result = await server.handle("search_offers", {"action": "buy", "amount": -1, "currency": "USDT"})
    assert result == {"error": "Invalid amount", "code": "invalid_request", "field": "amount"}


async def test_unavailable_payload(server):
    result = await server.handle("search_offers", {"action": "sell", "amount": 1, "currency": "USDT"})
    assert result["code"] == "unavailable"
    assert result["retryable"] is True
    assert result["details"] == {"binance": "HTTP 500"}


async def test_health_and_refresh_tools(server):
    health = await server.handle("get_health", {})
    assert health["slots"]["binance:buy"]["count"] == 1

    assert await server.handle("trigger_refresh", {}) == {"status": "refresh scheduled"}


async def test_unknown_tool(server):
    assert await server.handle("nope", {}) == {"error": "Unknown tool: nope"}


def test_subpackages_reexport_public_names():
    from usdt_p2p import market, mcp as mcp_pkg

    assert market.Offer is not None and "normalize" in market.__all__
    assert mcp_pkg.OfferMCPServer is OfferMCPServer
