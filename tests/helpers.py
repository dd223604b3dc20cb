"""Shared test doubles."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from usdt_p2p.market.models import Direction, Offer, RawOffer
from usdt_p2p.sources.base import SourceAdapter


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_offer(
    id: str = "1",
    source: str = "binance",
    direction: Direction = Direction.BUY,
    price: float = 26000,
    available_amount: float = 1000,
    min_limit: float = 100,
    max_limit: float = 2000,
    completion_rate: float = 0.98,
    total_orders: int = 500,
    **extra: Any,
) -> Offer:
    return Offer(
        id=f"{source}:{id}",
        source=source,
        direction=direction,
        price=price,
        available_amount=available_amount,
        min_limit=min_limit,
        max_limit=max_limit,
        completion_rate=completion_rate,
        total_orders=total_orders,
        **extra,
    )


def raw_from_offer(offer: Offer) -> RawOffer:
    return RawOffer(
        provider_id=offer.id.split(":", 1)[1],
        price=str(offer.price),
        available_amount=str(offer.available_amount),
        min_limit=str(offer.min_limit),
        max_limit=str(offer.max_limit),
        counterparty_name=offer.counterparty_name,
        completion_rate=str(offer.completion_rate),
        total_orders=str(offer.total_orders),
    )


Scripted = Union[list[Offer], Exception]


class FakeAdapter(SourceAdapter):
    """Adapter returning scripted offers or failures per direction."""

    def __init__(self, name: str, responses: Optional[dict[Direction, Scripted]] = None):
        super().__init__({})
        self.name = name
        self.responses: dict[Direction, Scripted] = responses or {}
        self.calls: list[Direction] = []
        self.gate: Optional[asyncio.Event] = None
        self.delay = 0.0

    @staticmethod
    def user_direction_to_provider_side(direction: Direction) -> str:
        return direction.value

    async def _request(self, client, strategy, side):  # pragma: no cover - unused
        raise NotImplementedError

    def _extract(self, payload, direction):  # pragma: no cover - unused
        raise NotImplementedError

    async def fetch(self, direction: Direction) -> list[RawOffer]:
        self.calls.append(direction)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.gate is not None:
            await self.gate.wait()
        scripted = self.responses.get(direction, [])
        if isinstance(scripted, Exception):
            raise scripted
        return [raw_from_offer(o) for o in scripted]
