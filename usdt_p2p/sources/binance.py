"""
Binance P2P adapter.

Endpoint used (public, no auth):
  POST /bapi/c2c/v2/friendly/c2c/adv/search   -- advertisement book

Binance labels ads by the advertiser's side: a user who wants to BUY the
asset takes ``SELL`` ads.  Limits are quoted in fiat.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .base import FetchStrategy, SourceAdapter
from ..market.models import Direction, RawOffer

logger = logging.getLogger(__name__)

SEARCH_PATH = "/bapi/c2c/v2/friendly/c2c/adv/search"
ADVERTISER_URL = "https://p2p.binance.com/en/advertiserDetail"


class BinanceAdapter(SourceAdapter):
    """Binance P2P advertisement search."""

    name = "binance"
    strategies = (
        FetchStrategy("p2p", "https://p2p.binance.com"),
        FetchStrategy("c2c-mirror", "https://c2c.binance.com"),
    )

    @staticmethod
    def user_direction_to_provider_side(direction: Direction) -> str:
        """User BUY -> advertiser SELL; user SELL -> advertiser BUY."""
        return "SELL" if direction is Direction.BUY else "BUY"

    async def _request(
        self,
        client: httpx.AsyncClient,
        strategy: FetchStrategy,
        side: str,
    ) -> Any:
        url = f"{strategy.base_url}{SEARCH_PATH}"
        payload = {
            "asset": self.asset,
            "fiat": self.fiat,
            "merchantCheck": False,
            "page": 1,
            "payTypes": [],
            "publisherType": None,
            "rows": self.rows,
            "tradeType": side,
        }
        logger.debug("POST %s tradeType=%s", url, side)
        resp = await client.post(url, json=payload)
        resp.raise_for_status()
        return resp.json()

    def _extract(self, payload: Any, direction: Direction) -> list[RawOffer]:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise ValueError("Invalid response structure")

        side = self.user_direction_to_provider_side(direction).lower()
        raws: list[RawOffer] = []
        for ad in data:
            if not isinstance(ad, dict):
                continue
            adv = ad.get("adv") or {}
            advertiser = ad.get("advertiser") or {}
            raws.append(RawOffer(
                provider_id=adv.get("advNo"),
                price=adv.get("price"),
                available_amount=adv.get("surplusAmount"),
                min_limit=adv.get("minSingleTransAmount"),
                max_limit=adv.get("dynamicMaxSingleTransAmount") or adv.get("maxSingleTransAmount"),
                limits_in_quote=True,
                counterparty_name=advertiser.get("nickName"),
                completion_rate=advertiser.get("monthFinishRate"),
                total_orders=advertiser.get("monthOrderCount"),
                payment_methods=[
                    m.get("tradeMethodName") or m.get("identifier")
                    for m in adv.get("tradeMethods") or []
                    if isinstance(m, dict)
                ],
                external_link=(
                    f"{ADVERTISER_URL}?advertiserNo={advertiser.get('userNo', '')}"
                    f"&tradeType={side}"
                ),
            ))
        return raws
