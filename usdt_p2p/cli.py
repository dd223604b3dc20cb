"""
Command-line entry — one refresh cycle, then a ranked search or health table.

    python -m usdt_p2p.cli buy 500 --currency USDT [--config config.yaml]
    python -m usdt_p2p.cli --health
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional

from .config import load_config
from .engine.errors import InvalidRequestError, ServiceUnavailableError
from .engine.service import OfferSearchService, SearchResult
from .sources.registry import build_adapters


def print_health(service: OfferSearchService) -> None:
    health = service.get_health()
    print(f"\n{'=' * 60}")
    print(f"Cache status: {health['status']}")
    print(f"{'=' * 60}")
    for key, slot in health["slots"].items():
        line = f"  {key:<14} {slot['state']:<8} {slot['count']:>3} offers  age {slot['age']}"
        if slot["error"]:
            line += f"  error: {slot['error']}"
        print(line)


def print_result(result: SearchResult, asset: str, fiat: str) -> None:
    data = result.to_dict()
    meta = data["meta"]
    print(f"\n{'=' * 60}")
    print(
        f"{result.action.upper()} {result.input_amount:,.2f} {result.input_currency} | "
        f"data age {meta['data_age']}{' (STALE)' if meta['is_stale'] else ''}"
    )
    print(f"{'=' * 60}")
    print(
        f"Offers: {meta['compatible_offers']} compatible of {meta['total_offers']} "
        f"({', '.join(f'{k}: {v}' for k, v in meta['per_source'].items())})"
    )

    if result.estimate:
        est = result.estimate
        print(
            f"Estimate: {est.base_amount:,.2f} {asset} = {est.quote_amount:,.0f} {fiat} "
            f"@ {est.price:,.2f} ({est.source})"
        )
    if result.no_eligible_offers:
        print("\nNo offers can fill this amount.")
        return

    for i, offer in enumerate(data["offers"], start=1):
        print(f"\n  #{i} [{offer['score']:.1f}] {offer['merchant']} ({offer['source']})")
        print(
            f"       Price: {offer['price']:,.2f} | Available: {offer['available']:,.2f} {asset} | "
            f"Limits: {offer['limits']['min']:,.2f}-{offer['limits']['max']:,.2f}"
        )
        print(
            f"       Completion: {offer['completion_rate']} | Orders: {offer['total_orders']} | "
            f"Pay: {', '.join(offer['payment_methods']) or '-'}"
        )
        print(f"       {offer['link']}")


async def run(
    action: Optional[str],
    amount: Optional[float],
    currency: Optional[str],
    config_path: str = "config.yaml",
    health: bool = False,
) -> int:
    """Load config, warm the cache once, answer one request.  Returns exit code."""
    config = load_config(config_path)
    service = OfferSearchService.from_config(config, build_adapters(config))

    print("Fetching P2P offers...\n")
    await service.scheduler.refresh_cycle()
    try:
        if health or action is None:
            print_health(service)
            return 0
        try:
            result = service.search(action, amount, currency or service.asset)
        except InvalidRequestError as e:
            print(f"Invalid request: {e.message}")
            return 2
        except ServiceUnavailableError as e:
            print(f"{e.message}")
            for source, reason in e.details.items():
                print(f"  {source}: {reason}")
            return 3
        print_result(result, service.asset, service.fiat)
        return 0
    finally:
        await service.stop()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Compare USDT P2P offers across marketplaces")
    parser.add_argument("action", nargs="?", choices=["buy", "sell"], help="buy or sell")
    parser.add_argument("amount", nargs="?", type=float, help="Amount to trade")
    parser.add_argument("--currency", default=None, help="Unit of amount (default: asset)")
    parser.add_argument("--config", default="config.yaml", help="Config file path")
    parser.add_argument("--health", action="store_true", help="Print cache status only")
    args = parser.parse_args()

    if args.action and args.amount is None:
        parser.error("amount is required with an action")

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    raise SystemExit(asyncio.run(
        run(
            args.action,
            args.amount,
            args.currency,
            config_path=args.config,
            health=args.health,
        )
    ))


if __name__ == "__main__":
    main()
