"""Abstract base class and value types for market data providers.

This module defines the MarketDataProvider interface that concrete upstream
clients must implement, and the AssetQuote snapshot they produce.

Prices are carried as ``Decimal`` parsed from the upstream decimal strings.
They are never converted to ``float``, so very small (sub-cent) and very large
values keep every digit the upstream sent.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from coinpulse.utils.exceptions import DataQualityError

ZERO = Decimal("0")


class HistoryInterval(Enum):
    """Sampling interval accepted by the history endpoint."""

    H1 = "h1"
    H12 = "h12"
    D1 = "d1"
    W1 = "w1"
    M1 = "m1"


def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """Parse an upstream numeric field into a Decimal.

    ``None`` and empty strings become zero. Floats are routed through ``str``
    so we never inherit binary floating point noise.

    Raises:
        DataQualityError: If the value is not a valid, finite decimal number
    """
    if value is None or value == "":
        return ZERO
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, float):
            result = Decimal(str(value))
        else:
            result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise DataQualityError(
            f"Invalid decimal for {field_name}: {value!r}"
        ) from e

    # Decimal() accepts NaN and Infinity; quotes must be finite
    if not result.is_finite():
        raise DataQualityError(f"Non-finite decimal for {field_name}: {value!r}")
    return result


@dataclass(frozen=True)
class AssetQuote:
    """Immutable market snapshot for a single asset.

    Attributes:
        asset_id: Upstream identifier (e.g. "bitcoin")
        symbol: Ticker symbol (e.g. "BTC")
        name: Display name
        price_usd: Last price in USD
        change_percent_24h: Percent change over the last 24 hours
        volume_usd_24h: Traded volume over the last 24 hours in USD
        market_cap_usd: Market capitalization in USD
        rank: Market cap rank, if the upstream provided one
    """

    asset_id: str
    symbol: str
    name: str
    price_usd: Decimal
    change_percent_24h: Decimal = ZERO
    volume_usd_24h: Decimal = ZERO
    market_cap_usd: Decimal = ZERO
    rank: Optional[int] = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "AssetQuote":
        """Build a quote from one CoinCap asset record.

        Args:
            payload: Asset record with camelCase CoinCap field names

        Raises:
            DataQualityError: If the id is missing or a numeric field is malformed
        """
        asset_id = payload.get("id")
        if not asset_id:
            raise DataQualityError(f"Asset record without id: {dict(payload)!r}")

        rank = payload.get("rank")
        try:
            rank = int(rank) if rank not in (None, "") else None
        except (TypeError, ValueError) as e:
            raise DataQualityError(f"Invalid rank for {asset_id}: {rank!r}") from e

        return cls(
            asset_id=asset_id,
            symbol=payload.get("symbol") or asset_id.upper(),
            name=payload.get("name") or asset_id,
            price_usd=to_decimal(payload.get("priceUsd"), "priceUsd"),
            change_percent_24h=to_decimal(
                payload.get("changePercent24Hr"), "changePercent24Hr"
            ),
            volume_usd_24h=to_decimal(payload.get("volumeUsd24Hr"), "volumeUsd24Hr"),
            market_cap_usd=to_decimal(payload.get("marketCapUsd"), "marketCapUsd"),
            rank=rank,
        )


QuoteSource = Union[Mapping[str, AssetQuote], Iterable[AssetQuote]]


def quote_map(quotes: QuoteSource) -> Dict[str, AssetQuote]:
    """Normalize a quote list or mapping into ``{asset_id: AssetQuote}``."""
    if isinstance(quotes, Mapping):
        return dict(quotes)
    return {quote.asset_id: quote for quote in quotes}


class MarketDataProvider(ABC):
    """Abstract interface for upstream market data sources.

    Concrete providers talk to one upstream (CoinCap, a fixture, ...) and
    return typed snapshots. They do not cache; caching is layered on top by
    MarketDataAPI through a ResponseCache.

    Example:
        >>> provider = CoinCapProvider()
        >>> quotes = provider.get_assets(limit=10)
        >>> btc = provider.get_asset("bitcoin")
    """

    @abstractmethod
    def get_assets(self, limit: int = 20) -> List[AssetQuote]:
        """Fetch the top assets by market cap.

        Raises:
            DataProviderError: If the request fails
            DataQualityError: If the payload is malformed
        """
        pass

    @abstractmethod
    def get_asset(self, asset_id: str) -> AssetQuote:
        """Fetch a single asset by its identifier.

        Raises:
            DataProviderError: If the request fails
            DataQualityError: If the payload is malformed
        """
        pass

    @abstractmethod
    def get_asset_history(
        self,
        asset_id: str,
        interval: HistoryInterval = HistoryInterval.D1,
    ) -> pd.DataFrame:
        """Fetch a historical price series for an asset.

        Returns:
            DataFrame indexed by ``date`` with columns:
                - price_usd (Decimal): Price at the sample point
                - time (int): Sample timestamp in epoch milliseconds
        """
        pass
