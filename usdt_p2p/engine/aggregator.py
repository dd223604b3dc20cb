"""
Aggregator — pools cached offers for one direction across all sources.

Applies the staleness policy: EMPTY and EXPIRED slots contribute nothing
and are reported as unavailable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .cache import SnapshotCache, Staleness
from ..market.models import Direction, Offer


@dataclass(frozen=True)
class SlotReport:
    """Per-slot metadata attached to an aggregation."""
    source: str
    state: Staleness
    age_seconds: Optional[float]
    captured_at: Optional[datetime]
    count: int
    error: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.state.usable

    def as_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "state": self.state.value,
            "age_seconds": self.age_seconds,
            "captured_at": self.captured_at.isoformat() if self.captured_at else None,
            "count": self.count,
            "error": self.error,
        }


@dataclass
class PooledOffers:
    """Result of ``Aggregator.collect``."""
    direction: Direction
    offers: list[Offer] = field(default_factory=list)
    slots: list[SlotReport] = field(default_factory=list)

    @property
    def no_data(self) -> bool:
        """True when no slot contributed any offer."""
        return not self.offers

    @property
    def contributing(self) -> list[SlotReport]:
        return [s for s in self.slots if s.available and s.count > 0]

    @property
    def is_stale(self) -> bool:
        return any(s.state is Staleness.STALE for s in self.contributing)

    @property
    def oldest_capture(self) -> Optional[datetime]:
        times = [s.captured_at for s in self.contributing if s.captured_at is not None]
        return min(times) if times else None

    @property
    def max_age_seconds(self) -> Optional[float]:
        ages = [s.age_seconds for s in self.contributing if s.age_seconds is not None]
        return max(ages) if ages else None

    def per_source(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for offer in self.offers:
            counts[offer.source] = counts.get(offer.source, 0) + 1
        return counts

    def errors(self) -> dict[str, Optional[str]]:
        return {s.source: s.error for s in self.slots if not s.available or s.error}


class Aggregator:
    """Read-only view over the cache for the request path."""

    def __init__(self, cache: SnapshotCache):
        self.cache = cache

    def collect(self, direction: Direction, now: Optional[datetime] = None) -> PooledOffers:
        now = now or self.cache.clock()
        pooled = PooledOffers(direction=direction)

        for slot in self.cache.slots(direction):
            state = self.cache.staleness(slot, now)
            age = slot.age(now)
            error = slot.last_error
            if state is Staleness.EMPTY and error is None:
                error = "no data captured yet"
            elif state is Staleness.EXPIRED and error is None:
                error = "data expired"

            usable = state.usable
            pooled.slots.append(SlotReport(
                source=slot.source,
                state=state,
                age_seconds=age.total_seconds() if age is not None else None,
                captured_at=slot.captured_at,
                count=len(slot.offers) if usable else 0,
                error=error,
            ))
            if usable:
                pooled.offers.extend(slot.offers)

        return pooled
