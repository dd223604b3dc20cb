"""
Refresh scheduler — drives population of the snapshot cache.

One cycle fetches every (adapter, direction) pair concurrently and writes
each outcome to its own slot.  Cycles run on a fixed interval and on
demand; overlapping cycles are allowed and simply overwrite slots again.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Iterable, Optional, Sequence

from .cache import DEFAULT_REFRESH_INTERVAL, SlotKey, SnapshotCache
from ..market.models import Direction
from ..sources.base import FetchFailure, SourceAdapter

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Periodic + on-demand refresh of every (source, direction) slot."""

    def __init__(
        self,
        cache: SnapshotCache,
        adapters: Sequence[SourceAdapter],
        directions: Iterable[Direction] = (Direction.BUY, Direction.SELL),
        interval: timedelta = DEFAULT_REFRESH_INTERVAL,
    ):
        self.cache = cache
        self.adapters = list(adapters)
        self.directions = list(directions)
        self.interval = interval
        self.cycles = 0
        self.ready = False

        self._periodic: Optional[asyncio.Task] = None
        self._triggered: set[asyncio.Task] = set()

        self.cache.register_all((a.name for a in self.adapters), self.directions)

    # ── One cycle ────────────────────────────────────────────────────

    async def refresh_cycle(self) -> dict[SlotKey, Optional[str]]:
        """
        Fetch every (adapter, direction) pair concurrently.

        Returns:
            Mapping of slot key -> error message (None on success).
        """
        self.cycles += 1
        cycle = self.cycles
        pairs = [(a, d) for a in self.adapters for d in self.directions]
        logger.info("Refresh cycle #%d: %d slots", cycle, len(pairs))

        results = await asyncio.gather(*(self._refresh_slot(a, d) for a, d in pairs))
        outcome = {(a.name, d): err for (a, d), err in zip(pairs, results)}
        self.ready = True

        failed = sum(1 for err in outcome.values() if err is not None)
        logger.info(
            "Refresh cycle #%d done: %d ok, %d failed",
            cycle, len(outcome) - failed, failed,
        )
        return outcome

    async def _refresh_slot(self, adapter: SourceAdapter, direction: Direction) -> Optional[str]:
        try:
            offers = await adapter.fetch_offers(direction)
        except FetchFailure as e:
            self.cache.put_error(adapter.name, direction, e.reason)
            logger.warning("%s %s update failed: %s", adapter.name, direction.value, e.reason)
            return e.reason
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            self.cache.put_error(adapter.name, direction, reason)
            logger.exception("%s %s adapter error", adapter.name, direction.value)
            return reason

        self.cache.put(adapter.name, direction, offers)
        logger.info("%s %s updated: %d offers", adapter.name, direction.value, len(offers))
        return None

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> None:
        """Run one cycle to completion, then start the periodic loop."""
        if not self.adapters:
            logger.warning("Refresh scheduler started with no adapters")
        cycle_start = asyncio.get_running_loop().time()
        await self.refresh_cycle()
        if self._periodic is None:
            self._periodic = asyncio.create_task(self._run_periodic(cycle_start))

    async def _run_periodic(self, cycle_start: float) -> None:
        """Start a cycle every ``interval``, measured from the previous start."""
        loop = asyncio.get_running_loop()
        interval_secs = self.interval.total_seconds()
        while True:
            elapsed = loop.time() - cycle_start
            sleep_secs = max(0.0, interval_secs - elapsed)
            if sleep_secs > 0:
                await asyncio.sleep(sleep_secs)
            else:
                logger.warning("Refresh cycle took longer than interval (%.0fs)", elapsed)
            cycle_start = loop.time()
            await self.refresh_cycle()

    def trigger_refresh(self) -> asyncio.Task:
        """Start an extra cycle now without waiting for the timer."""
        task = asyncio.create_task(self.refresh_cycle())
        self._triggered.add(task)
        task.add_done_callback(self._triggered.discard)
        return task

    async def stop(self) -> None:
        """Cancel the periodic loop and any in-flight triggered cycles."""
        tasks = list(self._triggered)
        if self._periodic is not None:
            tasks.append(self._periodic)
            self._periodic = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
