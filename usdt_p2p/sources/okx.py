"""
OKX P2P adapter.

Endpoint used (public, no auth):
  GET /v3/c2c/tradingOrders/books?quoteCurrency=X&baseCurrency=Y&side=Z

The ``sell`` book holds merchants selling the asset, i.e. offers a user
can BUY from.  Per-order limits are quoted in fiat.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .base import FetchStrategy, SourceAdapter
from ..market.models import Direction, RawOffer

logger = logging.getLogger(__name__)

BOOKS_PATH = "/v3/c2c/tradingOrders/books"
MERCHANT_URL = "https://www.okx.com/p2p/ads-merchant"


class OkxAdapter(SourceAdapter):
    """OKX P2P order-book listing."""

    name = "okx"
    strategies = (
        FetchStrategy("www", "https://www.okx.com"),
        FetchStrategy("apex", "https://okx.com"),
    )

    @staticmethod
    def user_direction_to_provider_side(direction: Direction) -> str:
        """User BUY -> ``sell`` book; user SELL -> ``buy`` book."""
        return "sell" if direction is Direction.BUY else "buy"

    async def _request(
        self,
        client: httpx.AsyncClient,
        strategy: FetchStrategy,
        side: str,
    ) -> Any:
        url = f"{strategy.base_url}{BOOKS_PATH}"
        params = {
            "quoteCurrency": self.fiat.lower(),
            "baseCurrency": self.asset.lower(),
            "side": side,
            "paymentMethod": "all",
            "userType": "all",
            "showTrade": "false",
            "showFollow": "false",
            "showAlreadyTraded": "false",
            "isAbleFilter": "false",
        }
        logger.debug("GET %s params=%s", url, params)
        resp = await client.get(url, params=params)
        resp.raise_for_status()
        return resp.json()

    def _extract(self, payload: Any, direction: Direction) -> list[RawOffer]:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise ValueError("Invalid response structure")
        side = self.user_direction_to_provider_side(direction)
        book = data.get(side)
        if not isinstance(book, list):
            raise ValueError(f"Missing '{side}' book in response")

        raws: list[RawOffer] = []
        for order in book[: self.rows]:
            if not isinstance(order, dict):
                continue
            raws.append(RawOffer(
                provider_id=order.get("id"),
                price=order.get("price"),
                available_amount=order.get("availableAmount"),
                min_limit=order.get("quoteMinAmountPerOrder"),
                max_limit=order.get("quoteMaxAmountPerOrder"),
                limits_in_quote=True,
                counterparty_name=order.get("nickName"),
                completion_rate=order.get("completedRate"),
                total_orders=order.get("completedOrderQuantity"),
                payment_methods=list(order.get("paymentMethods") or []),
                external_link=f"{MERCHANT_URL}?publicUserId={order.get('publicUserId', '')}",
            ))
        return raws
