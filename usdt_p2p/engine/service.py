"""
Offer search service — the function-level contract for request handlers.

Owns the snapshot cache, the refresh scheduler and the aggregator, and
exposes ``search``, ``get_health`` and ``trigger_refresh``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional, Sequence

from .aggregator import Aggregator, PooledOffers
from .cache import Clock, SnapshotCache, utc_now
from .errors import InvalidRequestError, ServiceUnavailableError
from .ranking import DEFAULT_TOP_N, best_price, rank
from .scheduler import RefreshScheduler
from ..market.models import Direction, Estimate, ScoredOffer
from ..sources.base import SourceAdapter

logger = logging.getLogger(__name__)


def to_base_amount(quote_amount: float, price: float) -> float:
    """Fiat -> asset units at ``price``."""
    return quote_amount / price


def to_quote_amount(base_amount: float, price: float) -> float:
    """Asset units -> fiat at ``price``."""
    return base_amount * price


def format_age(seconds: Optional[float]) -> str:
    if seconds is None:
        return "never"
    return f"{int(seconds)}s"


@dataclass
class SearchResult:
    """Outcome of a successful search (possibly with zero eligible offers)."""
    action: str
    input_amount: float
    input_currency: str
    estimate: Optional[Estimate]
    offers: list[ScoredOffer]
    pool: PooledOffers
    compatible_offers: int

    @property
    def no_eligible_offers(self) -> bool:
        return not self.offers

    def to_dict(self) -> dict[str, Any]:
        pool = self.pool
        captured = pool.oldest_capture
        return {
            "query": {
                "action": self.action,
                "input_amount": self.input_amount,
                "input_currency": self.input_currency,
            },
            "estimate": self.estimate.model_dump() if self.estimate else None,
            "offers": [o.to_display() for o in self.offers],
            "meta": {
                "captured_at": captured.isoformat() if captured else None,
                "data_age": format_age(pool.max_age_seconds),
                "data_age_seconds": pool.max_age_seconds,
                "is_stale": pool.is_stale,
                "total_offers": len(pool.offers),
                "compatible_offers": self.compatible_offers,
                "per_source": pool.per_source(),
                "slots": [s.as_dict() for s in pool.slots],
            },
        }


class OfferSearchService:
    """
    Ranks cached P2P offers for a requested trade.

    Usage::

        service = OfferSearchService(adapters, asset="USDT", fiat="VND")
        await service.start()          # first refresh completes here
        result = service.search("buy", 500, "USDT")
    """

    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        asset: str = "USDT",
        fiat: str = "VND",
        refresh_interval: timedelta = timedelta(minutes=10),
        max_age: timedelta = timedelta(minutes=30),
        top_n: int = DEFAULT_TOP_N,
        clock: Clock = utc_now,
    ):
        self.asset = asset.upper()
        self.fiat = fiat.upper()
        self.top_n = top_n
        self.adapters = list(adapters)
        self.cache = SnapshotCache(refresh_interval, max_age, clock=clock)
        self.scheduler = RefreshScheduler(self.cache, self.adapters, interval=refresh_interval)
        self.aggregator = Aggregator(self.cache)

    @classmethod
    def from_config(cls, config: dict, adapters: Sequence[SourceAdapter]) -> "OfferSearchService":
        market = config.get("market", {})
        cache_cfg = config.get("cache", {})
        return cls(
            adapters,
            asset=market.get("asset", "USDT"),
            fiat=market.get("fiat", "VND"),
            refresh_interval=timedelta(minutes=cache_cfg.get("refresh_interval_minutes", 10)),
            max_age=timedelta(minutes=cache_cfg.get("max_age_minutes", 30)),
            top_n=config.get("search", {}).get("top_n", DEFAULT_TOP_N),
        )

    # ── Lifecycle ────────────────────────────────────────────────────

    @property
    def ready(self) -> bool:
        return self.scheduler.ready

    async def start(self) -> None:
        await self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        for adapter in self.adapters:
            await adapter.aclose()

    def trigger_refresh(self) -> None:
        """Fire-and-forget refresh cycle.  Safe to call concurrently."""
        self.scheduler.trigger_refresh()

    # ── Health ───────────────────────────────────────────────────────

    def get_health(self) -> dict[str, Any]:
        now = self.cache.clock()
        slots: dict[str, Any] = {}
        for slot in self.cache.slots():
            age = slot.age(now)
            age_secs = age.total_seconds() if age is not None else None
            slots[f"{slot.source}:{slot.direction.value.lower()}"] = {
                "count": len(slot.offers),
                "age_seconds": age_secs,
                "age": format_age(age_secs),
                "state": self.cache.staleness(slot, now).value,
                "error": slot.last_error,
            }
        return {
            "status": "ok" if self.ready else "starting",
            "slots": slots,
        }

    # ── Search ───────────────────────────────────────────────────────

    def validate(self, action: Any, amount: Any, currency: Any) -> tuple[Direction, float, str]:
        """
        Check a raw request.

        Raises:
            InvalidRequestError: bad action, non-positive amount or
                unsupported currency.
        """
        try:
            direction = Direction.parse(action)
        except ValueError:
            raise InvalidRequestError("action", 'Invalid action. Use "buy" or "sell"') from None

        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise InvalidRequestError("amount", "Invalid amount")
        if not math.isfinite(amount) or amount <= 0:
            raise InvalidRequestError("amount", "Invalid amount")

        cur = currency.strip().upper() if isinstance(currency, str) else ""
        if cur not in (self.asset, self.fiat):
            raise InvalidRequestError(
                "currency", f'Invalid currency. Use "{self.fiat}" or "{self.asset}"'
            )
        return direction, float(amount), cur

    def search(self, action: Any, amount: Any, currency: Any) -> SearchResult:
        """
        Rank cached offers for a trade request.

        Raises:
            InvalidRequestError: the request is malformed.
            ServiceUnavailableError: no usable data for the direction.
        """
        direction, amount, currency = self.validate(action, amount, currency)
        user_is_buying = direction is Direction.BUY

        pool = self.aggregator.collect(direction)
        if pool.no_data:
            raise ServiceUnavailableError(details=pool.errors())

        reference = best_price(pool.offers, user_is_buying)
        if currency == self.asset:
            base_amount = amount
        else:
            base_amount = to_base_amount(amount, reference.price)

        ranked = rank(pool.offers, base_amount, user_is_buying)
        top = ranked[: self.top_n]

        estimate = None
        if top:
            estimate = Estimate(
                base_amount=base_amount,
                quote_amount=to_quote_amount(base_amount, reference.price),
                price=reference.price,
                source=reference.source,
            )

        logger.debug(
            "search %s %s %s: %d pooled, %d compatible",
            direction.value, amount, currency, len(pool.offers), len(ranked),
        )
        return SearchResult(
            action=direction.value.lower(),
            input_amount=amount,
            input_currency=currency,
            estimate=estimate,
            offers=top,
            pool=pool,
            compatible_offers=len(ranked),
        )
