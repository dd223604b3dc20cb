"""
Base source adapter interface.

Every marketplace implements one capability: fetch the offers for a user
direction, or fail with a human-readable reason.  Retries across hosts are
adapter-private and expressed as an ordered list of ``FetchStrategy``.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..market.models import Direction, Offer, RawOffer
from ..market.normalize import normalize_batch

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "User-Agent": "Mozilla/5.0",
}


class FetchFailure(Exception):
    """Raised when a source cannot produce offers for a direction.

    Attributes:
        source: Adapter name (e.g. "binance").
        reason: Human-readable error description.
    """

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"[{source}] {reason}")


@dataclass(frozen=True)
class FetchStrategy:
    """One way of reaching a marketplace (host + label), tried in order."""
    name: str
    base_url: str


class SourceAdapter(ABC):
    """
    Base class that all marketplace adapters must implement.

    Subclass must provide:
        - ``name``                              — source identifier
        - ``strategies``                        — ordered hosts to try
        - ``user_direction_to_provider_side``   — direction inversion
        - ``_request``                          — one HTTP call, raw JSON
        - ``_extract``                          — JSON -> list[RawOffer]
    """

    name: str = ""
    strategies: tuple[FetchStrategy, ...] = ()

    def __init__(
        self,
        config: Optional[dict] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: Source settings — ``asset``, ``fiat``, ``rows``,
                    ``timeout_seconds``.
            transport: Optional httpx transport (tests inject a MockTransport).
        """
        config = config or {}
        self.asset = str(config.get("asset", "USDT")).upper()
        self.fiat = str(config.get("fiat", "VND")).upper()
        self.rows = int(config.get("rows", 10))
        self.timeout = float(config.get("timeout_seconds", DEFAULT_TIMEOUT))
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    # ── Abstract hooks ───────────────────────────────────────────────

    @staticmethod
    @abstractmethod
    def user_direction_to_provider_side(direction: Direction) -> str:
        """Map the user's direction to the provider's own side label."""
        ...

    @abstractmethod
    async def _request(
        self,
        client: httpx.AsyncClient,
        strategy: FetchStrategy,
        side: str,
    ) -> Any:
        """Issue the provider request for ``side`` and return parsed JSON."""
        ...

    @abstractmethod
    def _extract(self, payload: Any, direction: Direction) -> list[RawOffer]:
        """Pull raw offer records out of a provider payload.

        Raises ValueError if the payload does not have the expected shape.
        """
        ...

    # ── HTTP client ──────────────────────────────────────────────────

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create this adapter's HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=DEFAULT_HEADERS,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── Public contract ──────────────────────────────────────────────

    async def fetch(self, direction: Direction) -> list[RawOffer]:
        """
        Fetch raw offers for the user's ``direction``.

        Tries each strategy in order until one succeeds.  The whole call is
        bounded by ``timeout_seconds``.

        Raises:
            FetchFailure: every strategy failed, or the call timed out.
        """
        try:
            return await asyncio.wait_for(self._fetch_with_fallback(direction), self.timeout)
        except asyncio.TimeoutError:
            raise FetchFailure(self.name, f"timed out after {self.timeout:g}s") from None

    async def fetch_offers(self, direction: Direction) -> list[Offer]:
        """Fetch and normalize offers for ``direction``."""
        raws = await self.fetch(direction)
        return normalize_batch(raws, direction, self.name)

    async def _fetch_with_fallback(self, direction: Direction) -> list[RawOffer]:
        if not self.strategies:
            raise FetchFailure(self.name, "no fetch strategies configured")

        side = self.user_direction_to_provider_side(direction)
        client = await self._get_client()
        reasons: list[str] = []

        for strategy in self.strategies:
            try:
                payload = await self._request(client, strategy, side)
                return self._extract(payload, direction)
            except httpx.HTTPStatusError as e:
                reason = f"{strategy.name}: HTTP {e.response.status_code}"
            except httpx.HTTPError as e:
                reason = f"{strategy.name}: {type(e).__name__}: {e}"
            except ValueError as e:
                reason = f"{strategy.name}: {e}"
            logger.debug("%s %s strategy failed: %s", self.name, direction.value, reason)
            reasons.append(reason)

        raise FetchFailure(self.name, "; ".join(reasons))
