"""Builds the enabled source adapters from configuration."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .base import SourceAdapter
from .binance import BinanceAdapter
from .okx import OkxAdapter

logger = logging.getLogger(__name__)

ADAPTERS: dict[str, type[SourceAdapter]] = {
    BinanceAdapter.name: BinanceAdapter,
    OkxAdapter.name: OkxAdapter,
}


def build_adapters(
    config: dict,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list[SourceAdapter]:
    """
    Instantiate the adapters listed in ``config["sources"]["enabled"]``.

    Raises:
        ValueError: an enabled name has no adapter.
    """
    market_cfg = config.get("market", {})
    sources_cfg = config.get("sources", {})
    adapter_cfg = {
        "asset": market_cfg.get("asset", "USDT"),
        "fiat": market_cfg.get("fiat", "VND"),
        "rows": sources_cfg.get("rows", 10),
        "timeout_seconds": sources_cfg.get("timeout_seconds", 30),
    }

    adapters: list[SourceAdapter] = []
    for name in sources_cfg.get("enabled", []):
        cls = ADAPTERS.get(name.lower())
        if cls is None:
            raise ValueError(f"Unknown source '{name}'. Known: {', '.join(sorted(ADAPTERS))}")
        adapters.append(cls(adapter_cfg, transport=transport))

    if not adapters:
        logger.warning("No source adapters enabled; every search will be unavailable")
    return adapters
