"""User-friendly Market Data API.

This module routes upstream market data requests through a shared
ResponseCache and exposes live subscriptions on top of a PollingController.
"""

from typing import Callable, Dict, List, Optional

import pandas as pd

from coinpulse.data.base import AssetQuote, HistoryInterval, MarketDataProvider
from coinpulse.data.cache import DEFAULT_TTL_SECONDS, ResponseCache
from coinpulse.data.providers.coincap_provider import CoinCapProvider
from coinpulse.orchestration.polling import (
    DEFAULT_POLLING_INTERVAL_MS,
    PollingController,
    PollUpdate,
    SubscriptionState,
)
from coinpulse.utils.config import Config, load_api_credentials
from coinpulse.utils.logging import get_logger

logger = get_logger(__name__)

# Freshness per data class, in seconds
DEFAULT_TTLS: Dict[str, float] = {
    "assets": DEFAULT_TTL_SECONDS,
    "asset": DEFAULT_TTL_SECONDS,
    "history": 60.0,
}


class MarketDataAPI:
    """High-level API for cached market data access.

    Every call is keyed by its request shape (``assets:limit=20``,
    ``asset:bitcoin``, ``history:bitcoin:d1``), so any number of widgets
    asking for the same data within the TTL share a single upstream request.

    Example:
        >>> api = MarketDataAPI()
        >>> quotes = api.get_quote_map(limit=20)
        >>> btc = quotes["bitcoin"]
        >>> history = api.get_asset_history("bitcoin", HistoryInterval.H1)
    """

    def __init__(
        self,
        provider: Optional[MarketDataProvider] = None,
        cache: Optional[ResponseCache] = None,
        ttls: Optional[Dict[str, float]] = None,
        asset_limit: int = 20,
    ):
        """Initialize MarketDataAPI.

        Args:
            provider: MarketDataProvider instance (defaults to CoinCapProvider)
            cache: ResponseCache to share (defaults to a new one)
            ttls: Per data class TTL overrides ({"assets", "asset", "history"})
            asset_limit: Default number of assets for list queries
        """
        self.provider = provider if provider is not None else CoinCapProvider()
        self.cache = cache if cache is not None else ResponseCache()
        self.ttls = {**DEFAULT_TTLS, **(ttls or {})}
        self.asset_limit = asset_limit

        logger.debug(
            "MarketDataAPI initialized with %s", type(self.provider).__name__
        )

    @classmethod
    def from_config(cls, config: Config) -> "MarketDataAPI":
        """Build provider and cache from the ``market_data`` and ``cache`` sections."""
        credentials = load_api_credentials()
        provider = CoinCapProvider(
            api_key=credentials["api_key"],
            base_url=credentials["base_url"] or config.get("market_data.base_url"),
            timeout=config.get("market_data.timeout", CoinCapProvider.DEFAULT_TIMEOUT),
        )
        cache = ResponseCache(
            default_ttl=float(
                config.get("cache.default_ttl_seconds", DEFAULT_TTL_SECONDS)
            ),
            max_entries=config.get("cache.max_entries"),
        )
        ttls = {name: float(ttl) for name, ttl in config.section("cache.ttl").items()}
        return cls(
            provider=provider,
            cache=cache,
            ttls=ttls,
            asset_limit=int(config.get("market_data.asset_limit", 20)),
        )

    def get_assets(self, limit: Optional[int] = None) -> List[AssetQuote]:
        """Get the top assets by market cap (cached)."""
        if limit is None:
            limit = self.asset_limit
        return self.cache.get(
            f"assets:limit={limit}",
            lambda: self.provider.get_assets(limit),
            ttl=self.ttls["assets"],
        )

    def get_asset(self, asset_id: str) -> AssetQuote:
        """Get a single asset (cached)."""
        return self.cache.get(
            f"asset:{asset_id}",
            lambda: self.provider.get_asset(asset_id),
            ttl=self.ttls["asset"],
        )

    def get_asset_history(
        self,
        asset_id: str,
        interval: HistoryInterval = HistoryInterval.D1,
    ) -> pd.DataFrame:
        """Get the historical price series for an asset (cached)."""
        interval = HistoryInterval(interval)
        return self.cache.get(
            f"history:{asset_id}:{interval.value}",
            lambda: self.provider.get_asset_history(asset_id, interval),
            ttl=self.ttls["history"],
        )

    def get_quote_map(self, limit: Optional[int] = None) -> Dict[str, AssetQuote]:
        """Get the top assets as ``{asset_id: AssetQuote}`` for valuation."""
        return {quote.asset_id: quote for quote in self.get_assets(limit)}

    def subscribe_assets(
        self,
        controller: PollingController,
        listener: Optional[Callable[[PollUpdate], None]] = None,
        limit: Optional[int] = None,
        interval_ms: int = DEFAULT_POLLING_INTERVAL_MS,
    ) -> SubscriptionState:
        """Poll the asset list through the cache.

        Returns:
            The SubscriptionState; detach with ``controller.unsubscribe(state.key, listener)``
        """
        if limit is None:
            limit = self.asset_limit
        return controller.start(
            f"assets:limit={limit}",
            lambda: self.get_assets(limit),
            interval_ms=interval_ms,
            listener=listener,
        )

    def subscribe_asset(
        self,
        controller: PollingController,
        asset_id: str,
        listener: Optional[Callable[[PollUpdate], None]] = None,
        interval_ms: int = DEFAULT_POLLING_INTERVAL_MS,
    ) -> SubscriptionState:
        """Poll a single asset through the cache."""
        return controller.start(
            f"asset:{asset_id}",
            lambda: self.get_asset(asset_id),
            interval_ms=interval_ms,
            listener=listener,
        )
