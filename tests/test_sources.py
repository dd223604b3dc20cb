import asyncio

import httpx
import pytest

from usdt_p2p.market.models import Direction
from usdt_p2p.sources import BinanceAdapter, FetchFailure, OkxAdapter, build_adapters

CONFIG = {"asset": "USDT", "fiat": "VND", "rows": 10, "timeout_seconds": 5}


def _binance_payload():
    return {
        "code": "000000",
        "data": [
            {
                "adv": {
                    "advNo": "11",
                    "price": "26000",
                    "surplusAmount": "1000",
                    "minSingleTransAmount": "2600000",
                    "dynamicMaxSingleTransAmount": "52000000",
                    "tradeMethods": [{"tradeMethodName": "Bank Transfer"}],
                },
                "advertiser": {
                    "nickName": "alice",
                    "monthFinishRate": 0.97,
                    "monthOrderCount": 321,
                    "userNo": "u-1",
                },
            },
            {
                "adv": {"advNo": "12", "price": "oops", "surplusAmount": "10"},
                "advertiser": {},
            },
        ],
    }


def _okx_payload(side: str):
    return {
        "code": 0,
        "data": {
            side: [
                {
                    "id": "okx-1",
                    "price": "25900",
                    "availableAmount": "500",
                    "quoteMinAmountPerOrder": "518000",
                    "quoteMaxAmountPerOrder": "12950000",
                    "nickName": "bob",
                    "completedRate": "0.9912",
                    "completedOrderQuantity": 87,
                    "paymentMethods": ["bank", "momo"],
                    "publicUserId": "p-9",
                }
            ]
        },
    }


# ── Direction inversion ──────────────────────────────────────────────

def test_binance_direction_mapping():
    assert BinanceAdapter.user_direction_to_provider_side(Direction.BUY) == "SELL"
    assert BinanceAdapter.user_direction_to_provider_side(Direction.SELL) == "BUY"


def test_okx_direction_mapping():
    assert OkxAdapter.user_direction_to_provider_side(Direction.BUY) == "sell"
    assert OkxAdapter.user_direction_to_provider_side(Direction.SELL) == "buy"


# ── Binance ──────────────────────────────────────────────────────────

async def test_binance_fetch_offers_normalizes_and_converts_limits():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = request.content
        return httpx.Response(200, json=_binance_payload())

    adapter = BinanceAdapter(CONFIG, transport=httpx.MockTransport(handler))
    offers = await adapter.fetch_offers(Direction.BUY)
    await adapter.aclose()

    assert b'"tradeType":"SELL"' in seen["body"].replace(b" ", b"")
    assert len(offers) == 1
    offer = offers[0]
    assert offer.id == "binance:11"
    assert offer.direction is Direction.BUY
    assert offer.min_limit == pytest.approx(100)
    assert offer.max_limit == pytest.approx(2000)
    assert offer.completion_rate == pytest.approx(0.97)
    assert offer.total_orders == 321
    assert offer.payment_methods == ("Bank Transfer",)
    assert "advertiserNo=u-1" in offer.external_link
    assert "tradeType=sell" in offer.external_link


async def test_binance_falls_back_to_mirror():
    hosts = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        if request.url.host == "p2p.binance.com":
            return httpx.Response(503)
        return httpx.Response(200, json=_binance_payload())

    adapter = BinanceAdapter(CONFIG, transport=httpx.MockTransport(handler))
    raws = await adapter.fetch(Direction.SELL)

    assert hosts == ["p2p.binance.com", "c2c.binance.com"]
    assert len(raws) == 2


async def test_binance_all_strategies_fail():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "p2p.binance.com":
            raise httpx.ConnectError("boom", request=request)
        return httpx.Response(200, json={"data": None})

    adapter = BinanceAdapter(CONFIG, transport=httpx.MockTransport(handler))
    with pytest.raises(FetchFailure) as excinfo:
        await adapter.fetch(Direction.BUY)

    assert excinfo.value.source == "binance"
    assert "ConnectError" in excinfo.value.reason
    assert "Invalid response structure" in excinfo.value.reason


async def test_fetch_timeout_becomes_failure():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json=_binance_payload())

    adapter = BinanceAdapter({**CONFIG, "timeout_seconds": 0.05}, transport=httpx.MockTransport(handler))
    with pytest.raises(FetchFailure, match="timed out"):
        await adapter.fetch(Direction.BUY)


# ── OKX ──────────────────────────────────────────────────────────────

async def test_okx_fetch_uses_inverted_book():
    params = {}

    def handler(request: httpx.Request) -> httpx.Response:
        params.update(request.url.params)
        return httpx.Response(200, json=_okx_payload(request.url.params["side"]))

    adapter = OkxAdapter(CONFIG, transport=httpx.MockTransport(handler))
    offers = await adapter.fetch_offers(Direction.SELL)

    assert params["side"] == "buy"
    assert params["quoteCurrency"] == "vnd"
    assert params["baseCurrency"] == "usdt"
    assert len(offers) == 1
    offer = offers[0]
    assert offer.id == "okx:okx-1"
    assert offer.direction is Direction.SELL
    assert offer.min_limit == pytest.approx(20)
    assert offer.max_limit == pytest.approx(500)
    assert offer.completion_rate == pytest.approx(0.9912)


async def test_okx_missing_book_is_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": {"other": []}})

    adapter = OkxAdapter(CONFIG, transport=httpx.MockTransport(handler))
    with pytest.raises(FetchFailure, match="Missing 'sell' book"):
        await adapter.fetch(Direction.BUY)


# ── Registry ─────────────────────────────────────────────────────────

def test_build_adapters_from_config():
    config = {
        "market": {"asset": "usdt", "fiat": "vnd"},
        "sources": {"enabled": ["binance", "OKX"], "timeout_seconds": 12, "rows": 5},
    }
    adapters = build_adapters(config)
    assert [a.name for a in adapters] == ["binance", "okx"]
    assert adapters[0].fiat == "VND"
    assert adapters[1].timeout == 12
    assert adapters[1].rows == 5


def test_build_adapters_rejects_unknown_source():
    with pytest.raises(ValueError, match="Unknown source"):
        build_adapters({"sources": {"enabled": ["kraken"]}})


def test_build_adapters_allows_none():
    assert build_adapters({"sources": {"enabled": []}}) == []
