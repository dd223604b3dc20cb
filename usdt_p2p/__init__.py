"""
USDT P2P Compare — snapshot cache + ranking engine for P2P marketplace offers.

Layers:
  market/   — Offer data model and the normalizer
  sources/  — Marketplace adapters (Binance, OKX, …)
  engine/   — Snapshot cache, refresh scheduler, aggregator, ranking, search
  mcp/      — MCP server exposing search / health / refresh tools
"""
