"""
Ranking engine — eligibility filter plus additive 0-100 score.

Components:
  price        40  position of the offer's price among candidates
  reliability  30  counterparty completion rate
  liquidity    15  available amount vs. requested, full credit at 3x
  experience   15  completed orders, full credit at 100
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..market.models import Offer, ScoredOffer

PRICE_WEIGHT = 40.0
RELIABILITY_WEIGHT = 30.0
LIQUIDITY_WEIGHT = 15.0
EXPERIENCE_WEIGHT = 15.0

LIQUIDITY_FULL_MULTIPLE = 3.0
EXPERIENCE_FULL_ORDERS = 100

DEFAULT_TOP_N = 5


def _check_amount(amount: float) -> None:
    if not amount > 0:
        raise ValueError(f"Requested amount must be positive, got {amount!r}")


def is_eligible(offer: Offer, amount: float) -> bool:
    """Offer can fill ``amount`` (base asset) within its limits and liquidity."""
    return (
        offer.available_amount >= amount
        and offer.min_limit <= amount <= offer.max_limit
    )


def price_rank(offer: Offer, candidates: Sequence[Offer], user_is_buying: bool) -> int:
    """
    1-based price rank: number of candidates priced at least as well as
    ``offer``, itself included.  Equal prices share a rank.
    """
    if user_is_buying:
        return sum(1 for c in candidates if c.price <= offer.price)
    return sum(1 for c in candidates if c.price >= offer.price)


def score_offer(
    offer: Offer,
    candidates: Sequence[Offer],
    amount: float,
    user_is_buying: bool,
) -> float:
    """Total score for one candidate against the full candidate set."""
    _check_amount(amount)
    n = len(candidates)
    rank = price_rank(offer, candidates, user_is_buying)

    price = PRICE_WEIGHT * (n - rank + 1) / n
    reliability = RELIABILITY_WEIGHT * offer.completion_rate
    liquidity = LIQUIDITY_WEIGHT * min(offer.available_amount / amount / LIQUIDITY_FULL_MULTIPLE, 1.0)
    experience = EXPERIENCE_WEIGHT * min(offer.total_orders / EXPERIENCE_FULL_ORDERS, 1.0)
    return price + reliability + liquidity + experience


def rank(
    offers: Iterable[Offer],
    amount: float,
    user_is_buying: bool,
    top_n: Optional[int] = None,
) -> list[ScoredOffer]:
    """
    Filter ``offers`` for eligibility and return them scored, best first.

    Exact score ties keep input order.  ``top_n=None`` returns every
    candidate.  An empty candidate set yields an empty list.
    """
    _check_amount(amount)
    candidates = [o for o in offers if is_eligible(o, amount)]

    scored = [
        ScoredOffer(
            **o.model_dump(),
            score=score_offer(o, candidates, amount, user_is_buying),
        )
        for o in candidates
    ]
    scored.sort(key=lambda s: s.score, reverse=True)

    if top_n is not None:
        return scored[:top_n]
    return scored


def best_price(offers: Iterable[Offer], user_is_buying: bool) -> Optional[Offer]:
    """Cheapest offer when buying, highest-priced when selling."""
    offers = list(offers)
    if not offers:
        return None
    if user_is_buying:
        return min(offers, key=lambda o: o.price)
    return max(offers, key=lambda o: o.price)
