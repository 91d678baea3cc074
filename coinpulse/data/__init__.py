"""Market Data Layer.

Components:
- AssetQuote: Immutable price snapshot for one asset
- HistoryInterval: Sampling interval for historical price series
- MarketDataProvider: Abstract interface for upstream market data sources
- ResponseCache: Time-boxed, request-coalescing cache for upstream fetches
"""

from coinpulse.data.base import (
    AssetQuote,
    HistoryInterval,
    MarketDataProvider,
    quote_map,
    to_decimal,
)
from coinpulse.data.cache import CacheEntry, ResponseCache

__all__ = [
    "AssetQuote",
    "CacheEntry",
    "HistoryInterval",
    "MarketDataProvider",
    "ResponseCache",
    "quote_map",
    "to_decimal",
]
