"""
Pydantic models for P2P offer data.

Shared type definitions used by the adapters, the snapshot cache, the
ranking engine and the request surface.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Direction(str, Enum):
    """Trade direction from the requesting user's point of view."""
    BUY = "BUY"    # user buys the asset
    SELL = "SELL"  # user sells the asset

    @classmethod
    def parse(cls, value: Any) -> "Direction":
        """Accept 'buy' / 'BUY' / Direction.  Raises ValueError otherwise."""
        if isinstance(value, Direction):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise ValueError(f"Invalid direction {value!r}. Use 'buy' or 'sell'")


class RawOffer(BaseModel):
    """
    Provider record extracted by an adapter, not yet validated.

    Numeric fields are kept exactly as the provider sent them (strings,
    numbers or missing); the normalizer decides what survives.
    """
    provider_id: Any = None
    price: Any = None
    available_amount: Any = None
    min_limit: Any = None
    max_limit: Any = None
    limits_in_quote: bool = False
    counterparty_name: Any = None
    completion_rate: Any = None
    total_orders: Any = None
    payment_methods: list[Any] = Field(default_factory=list)
    external_link: str = ""


class Offer(BaseModel):
    """
    A normalized tradeable quote from one marketplace counterparty.

    All amounts are in the traded asset's base unit (e.g. USDT), never fiat.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    source: str
    direction: Direction
    price: float
    available_amount: float
    min_limit: float
    max_limit: float
    counterparty_name: str = ""
    completion_rate: float = 0.0  # 0-1 fraction
    total_orders: int = 0
    payment_methods: tuple[str, ...] = ()
    external_link: str = ""


class ScoredOffer(Offer):
    """An Offer with its per-request ranking score attached."""
    score: float

    def to_display(self) -> dict[str, Any]:
        """Presentation form: percentage completion rate, 1-decimal score."""
        return {
            "id": self.id,
            "source": self.source,
            "merchant": self.counterparty_name,
            "price": self.price,
            "available": self.available_amount,
            "limits": {"min": self.min_limit, "max": self.max_limit},
            "completion_rate": f"{self.completion_rate * 100:.1f}%",
            "total_orders": self.total_orders,
            "payment_methods": list(self.payment_methods),
            "score": round(self.score, 1),
            "link": self.external_link,
        }


class Estimate(BaseModel):
    """Counter-amount estimate for a search, at a single reference price."""
    base_amount: float
    quote_amount: float
    price: float
    source: Optional[str] = None
