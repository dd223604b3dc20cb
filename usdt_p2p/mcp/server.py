"""
MCP server exposing the offer search service.

Tools:
  - search_offers     rank cached offers for a buy/sell request
  - get_health        per-slot cache status
  - trigger_refresh   start a refresh cycle now
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any

import mcp.server.stdio
import mcp.types as types
from mcp.server import Server

from ..config import load_config
from ..engine.errors import InvalidRequestError, ServiceUnavailableError
from ..engine.service import OfferSearchService
from ..sources.registry import build_adapters

logger = logging.getLogger(__name__)


class OfferMCPServer:

    def __init__(self, service: OfferSearchService, name: str = "usdt-p2p"):
        self.service = service
        self.server = Server(name)
        self._register_handlers()

    def _register_handlers(self) -> None:
        @self.server.list_tools()
        async def list_tools() -> list[types.Tool]:
            return self._tools()

        @self.server.call_tool()
        async def call_tool(
            name: str, arguments: dict[str, Any]
        ) -> list[types.TextContent]:
            result = await self.handle(name, arguments or {})
            text = json.dumps(result, indent=2, default=str)
            return [types.TextContent(type="text", text=text)]

    def _tools(self) -> list[types.Tool]:
        svc = self.service
        return [
            types.Tool(
                name="search_offers",
                description=(
                    f"Find the best P2P offers to buy or sell {svc.asset} against {svc.fiat}. "
                    "Returns an estimate at the best pooled price, the top ranked offers "
                    "(score 0-100 from price, completion rate, liquidity and experience) "
                    "and data freshness metadata."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "action": {
                            "type": "string",
                            "enum": ["buy", "sell"],
                            "description": f"'buy' to acquire {svc.asset}, 'sell' to dispose of it.",
                        },
                        "amount": {
                            "type": "number",
                            "description": "Positive amount, in `currency` units.",
                        },
                        "currency": {
                            "type": "string",
                            "enum": [svc.asset, svc.fiat],
                            "description": f"Unit of `amount`: {svc.asset} or {svc.fiat}.",
                        },
                    },
                    "required": ["action", "amount", "currency"],
                },
            ),
            types.Tool(
                name="get_health",
                description=(
                    "Cache status per marketplace and direction: offer count, "
                    "data age, freshness state and the last refresh error."
                ),
                inputSchema={"type": "object", "properties": {}},
            ),
            types.Tool(
                name="trigger_refresh",
                description="Start a background refresh of every marketplace now.",
                inputSchema={"type": "object", "properties": {}},
            ),
        ]

    async def handle(self, name: str, args: dict[str, Any]) -> Any:
        """Dispatch a tool call and map service errors to JSON payloads."""
        try:
            return await self._dispatch(name, args)
        except InvalidRequestError as e:
            return {"error": e.message, "code": "invalid_request", "field": e.field}
        except ServiceUnavailableError as e:
            return {
                "error": e.message,
                "code": "unavailable",
                "retryable": e.retryable,
                "details": e.details,
            }
        except Exception as e:
            logger.error("Tool %s failed: %s", name, e)
            return {"error": str(e), "tool": name}

    async def _dispatch(self, name: str, args: dict[str, Any]) -> Any:
        if name == "search_offers":
            result = self.service.search(
                args.get("action"), args.get("amount"), args.get("currency")
            )
            return result.to_dict()

        if name == "get_health":
            return self.service.get_health()

        if name == "trigger_refresh":
            self.service.trigger_refresh()
            return {"status": "refresh scheduled"}

        return {"error": f"Unknown tool: {name}"}

    async def run(self) -> None:
        logger.info("Warming cache before serving ...")
        await self.service.start()
        logger.info("Starting MCP server '%s' ...", self.server.name)
        try:
            async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.service.stop()


# ── Entry point ──────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(description="USDT P2P offer search MCP server")
    parser.add_argument("--config", default="config.yaml", help="Config file path")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    config = load_config(args.config)
    service = OfferSearchService.from_config(config, build_adapters(config))
    asyncio.run(OfferMCPServer(service).run())


if __name__ == "__main__":
    main()
