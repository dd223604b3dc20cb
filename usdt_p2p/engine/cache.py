"""
In-memory snapshot cache, one slot per (source, direction).

Each slot is an immutable ``Slot`` value; writers replace it wholesale, so
readers always see either the previous or the next complete slot and no
lock is shared between slots.  Staleness is derived at read time from
``captured_at``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Iterable, Optional

from ..market.models import Direction, Offer

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = timedelta(minutes=10)
DEFAULT_MAX_AGE = timedelta(minutes=30)

SlotKey = tuple[str, Direction]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Staleness(str, Enum):
    EMPTY = "EMPTY"
    FRESH = "FRESH"
    STALE = "STALE"
    EXPIRED = "EXPIRED"

    @property
    def usable(self) -> bool:
        return self in (Staleness.FRESH, Staleness.STALE)


def classify(
    captured_at: Optional[datetime],
    now: datetime,
    refresh_interval: timedelta = DEFAULT_REFRESH_INTERVAL,
    max_age: timedelta = DEFAULT_MAX_AGE,
) -> Staleness:
    """FRESH up to ``refresh_interval``, STALE up to ``max_age``, then EXPIRED."""
    if captured_at is None:
        return Staleness.EMPTY
    age = now - captured_at
    if age <= refresh_interval:
        return Staleness.FRESH
    if age <= max_age:
        return Staleness.STALE
    return Staleness.EXPIRED


@dataclass(frozen=True)
class Slot:
    """Latest known-good offers for one (source, direction) and its last error."""
    source: str
    direction: Direction
    offers: tuple[Offer, ...] = ()
    captured_at: Optional[datetime] = None
    last_error: Optional[str] = None

    def age(self, now: datetime) -> Optional[timedelta]:
        if self.captured_at is None:
            return None
        return now - self.captured_at


class SnapshotCache:
    """
    Process-wide offer cache owned by the search service.

    Only the refresh scheduler writes; the aggregator and health report read.
    """

    def __init__(
        self,
        refresh_interval: timedelta = DEFAULT_REFRESH_INTERVAL,
        max_age: timedelta = DEFAULT_MAX_AGE,
        clock: Clock = utc_now,
    ):
        if refresh_interval <= timedelta(0) or max_age < refresh_interval:
            raise ValueError("Need 0 < refresh_interval <= max_age")
        self.refresh_interval = refresh_interval
        self.max_age = max_age
        self.clock = clock
        self._slots: dict[SlotKey, Slot] = {}

    # ── Slot lifecycle ───────────────────────────────────────────────

    def register(self, source: str, direction: Direction) -> None:
        """Create an EMPTY slot.  Registering twice keeps the existing slot."""
        key = (source, direction)
        if key not in self._slots:
            self._slots[key] = Slot(source=source, direction=direction)

    def register_all(self, sources: Iterable[str], directions: Iterable[Direction]) -> None:
        directions = list(directions)
        for source in sources:
            for direction in directions:
                self.register(source, direction)

    # ── Writes ───────────────────────────────────────────────────────

    def put(self, source: str, direction: Direction, offers: Iterable[Offer]) -> Slot:
        """Replace the slot's offers, stamp ``captured_at = now``, clear the error."""
        slot = Slot(
            source=source,
            direction=direction,
            offers=tuple(offers),
            captured_at=self.clock(),
            last_error=None,
        )
        self._slots[(source, direction)] = slot
        return slot

    def put_error(self, source: str, direction: Direction, error: str) -> Slot:
        """Record ``error`` and keep the last-known-good offers and timestamp."""
        key = (source, direction)
        current = self._slots.get(key) or Slot(source=source, direction=direction)
        slot = replace(current, last_error=error)
        self._slots[key] = slot
        return slot

    # ── Reads ────────────────────────────────────────────────────────

    def get(self, source: str, direction: Direction) -> Slot:
        """Return the slot, or an EMPTY one if the key was never registered."""
        return self._slots.get((source, direction)) or Slot(source=source, direction=direction)

    def slots(self, direction: Optional[Direction] = None) -> list[Slot]:
        """Snapshot of all slots, optionally for one direction."""
        return [
            s for s in list(self._slots.values())
            if direction is None or s.direction is direction
        ]

    def staleness(self, slot: Slot, now: Optional[datetime] = None) -> Staleness:
        now = now or self.clock()
        return classify(slot.captured_at, now, self.refresh_interval, self.max_age)
