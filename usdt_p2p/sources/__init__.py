from .base import FetchFailure, FetchStrategy, SourceAdapter
from .binance import BinanceAdapter
from .okx import OkxAdapter
from .registry import build_adapters

__all__ = [
    "BinanceAdapter",
    "FetchFailure",
    "FetchStrategy",
    "OkxAdapter",
    "SourceAdapter",
    "build_adapters",
]
