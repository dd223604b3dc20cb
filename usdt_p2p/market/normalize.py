"""
Offer normalizer.

Turns adapter-extracted ``RawOffer`` records into canonical ``Offer``
values: numbers parsed defensively, limits converted to the base asset,
and anything that breaks the offer invariants dropped.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Optional

from .models import Direction, Offer, RawOffer

logger = logging.getLogger(__name__)


def safe_float(val: Any) -> Optional[float]:
    """Parse a provider number (str / int / float).  Returns None if unusable."""
    if isinstance(val, bool) or val is None:
        return None
    if isinstance(val, str):
        val = val.strip().replace(",", "")
        if not val:
            return None
    try:
        num = float(val)
    except (TypeError, ValueError):
        return None
    if math.isnan(num) or math.isinf(num):
        return None
    return num


def safe_int(val: Any, default: int = 0) -> int:
    """Parse a provider count, falling back to ``default``; never negative."""
    num = safe_float(val)
    if num is None:
        return default
    return max(int(num), 0)


def parse_completion_rate(val: Any) -> float:
    """
    Completion rate as a 0-1 fraction.

    Values above 1 are read as percentages (98.5 -> 0.985).
    """
    rate = safe_float(val)
    if rate is None:
        return 0.0
    if rate > 1:
        rate = rate / 100
    return min(max(rate, 0.0), 1.0)


def normalize(raw: RawOffer, direction: Direction, source: str) -> Optional[Offer]:
    """
    Convert one raw record into an ``Offer``, or return None to drop it.

    Required numeric fields: price, available amount, min and max limit.
    """
    if raw.provider_id in (None, ""):
        return None

    price = safe_float(raw.price)
    available = safe_float(raw.available_amount)
    min_limit = safe_float(raw.min_limit)
    max_limit = safe_float(raw.max_limit)
    if price is None or available is None or min_limit is None or max_limit is None:
        return None
    if price <= 0 or available <= 0:
        return None

    if raw.limits_in_quote:
        min_limit = min_limit / price
        max_limit = max_limit / price

    if min_limit < 0 or min_limit > max_limit:
        return None

    return Offer(
        id=f"{source}:{raw.provider_id}",
        source=source,
        direction=direction,
        price=price,
        available_amount=available,
        min_limit=min_limit,
        max_limit=max_limit,
        counterparty_name=str(raw.counterparty_name or ""),
        completion_rate=parse_completion_rate(raw.completion_rate),
        total_orders=safe_int(raw.total_orders),
        payment_methods=tuple(str(m) for m in raw.payment_methods if m),
        external_link=raw.external_link,
    )


def normalize_batch(
    raws: Iterable[RawOffer],
    direction: Direction,
    source: str,
) -> list[Offer]:
    """Normalize a provider batch, preserving order and dropping bad records."""
    offers: list[Offer] = []
    dropped = 0
    for raw in raws:
        offer = normalize(raw, direction, source)
        if offer is None:
            dropped += 1
            continue
        offers.append(offer)
    if dropped:
        logger.debug("%s %s: dropped %d invalid offers", source, direction.value, dropped)
    return offers
