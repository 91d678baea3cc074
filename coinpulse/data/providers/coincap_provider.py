"""CoinCap market data provider.

This module implements the MarketDataProvider interface against the CoinCap
v2 REST API, which serves asset lists, single-asset lookups and historical
price series as JSON with prices encoded as decimal strings.

API Endpoint: https://api.coincap.io/v2
"""

from typing import Any, Dict, List, Optional

import pandas as pd
import requests

from coinpulse.data.base import (
    AssetQuote,
    HistoryInterval,
    MarketDataProvider,
    to_decimal,
)
from coinpulse.utils.exceptions import (
    DataProviderError,
    DataQualityError,
    RateLimitError,
)
from coinpulse.utils.logging import get_logger

logger = get_logger(__name__)


class CoinCapProvider(MarketDataProvider):
    """CoinCap REST API provider.

    The public endpoints work without a key; passing an API key raises the
    upstream rate limit. Rate limiting shows up as HTTP 429 and is raised as
    RateLimitError so callers (the polling loop) can simply retry on the next
    tick.

    Example:
        >>> provider = CoinCapProvider()
        >>> quotes = provider.get_assets(limit=5)
        >>> print([q.symbol for q in quotes])
        ['BTC', 'ETH', 'USDT', 'BNB', 'SOL']
    """

    API_URL = "https://api.coincap.io/v2"
    DEFAULT_TIMEOUT = 10

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize CoinCap provider.

        Args:
            api_key: Optional CoinCap API key (sent as a bearer token)
            base_url: Override for the API root (default: public v2 endpoint)
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.base_url = (base_url or self.API_URL).rstrip("/")
        self.timeout = timeout

        logger.debug("CoinCap provider initialized (base_url: %s)", self.base_url)

    def get_assets(self, limit: int = 20) -> List[AssetQuote]:
        """Fetch the top ``limit`` assets by market cap.

        Raises:
            DataProviderError: If the request fails
            DataQualityError: If the payload is malformed
        """
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        body = self._get("/assets", params={"limit": limit})
        records = body["data"]
        if not isinstance(records, list):
            raise DataQualityError("Expected a list of assets in 'data'")

        quotes = [AssetQuote.from_api(record) for record in records]
        logger.info("Fetched %d assets from CoinCap", len(quotes))
        return quotes

    def get_asset(self, asset_id: str) -> AssetQuote:
        """Fetch one asset by id (e.g. "bitcoin").

        Raises:
            DataProviderError: If the request fails (including unknown ids)
            DataQualityError: If the payload is malformed
        """
        body = self._get(f"/assets/{asset_id}")
        record = body["data"]
        if not isinstance(record, dict):
            raise DataQualityError(f"Expected an asset record for {asset_id}")
        return AssetQuote.from_api(record)

    def get_asset_history(
        self,
        asset_id: str,
        interval: HistoryInterval = HistoryInterval.D1,
    ) -> pd.DataFrame:
        """Fetch the historical price series for an asset.

        Args:
            asset_id: Asset identifier
            interval: Sampling interval (h1, h12, d1, w1, m1)

        Returns:
            DataFrame indexed by ``date`` with ``price_usd`` (Decimal) and
            ``time`` (epoch ms) columns, oldest first. Empty if the upstream
            has no samples.
        """
        interval = HistoryInterval(interval)
        body = self._get(
            f"/assets/{asset_id}/history", params={"interval": interval.value}
        )
        points = body["data"]
        if not isinstance(points, list):
            raise DataQualityError(f"Expected a list of history points for {asset_id}")

        if not points:
            logger.warning("No history returned for %s (%s)", asset_id, interval.value)
            return pd.DataFrame(
                {"price_usd": pd.Series(dtype=object), "time": pd.Series(dtype="int64")},
                index=pd.DatetimeIndex([], name="date"),
            )

        try:
            df = pd.DataFrame(
                {
                    "price_usd": [
                        to_decimal(p.get("priceUsd"), "priceUsd") for p in points
                    ],
                    "time": [int(p["time"]) for p in points],
                },
                index=pd.DatetimeIndex(
                    pd.to_datetime([p["time"] for p in points], unit="ms", utc=True),
                    name="date",
                ),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DataQualityError(
                f"Malformed history point for {asset_id}: {e}"
            ) from e

        return df.sort_index()

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Issue a GET request and return the decoded JSON envelope.

        Raises:
            RateLimitError: On HTTP 429
            DataProviderError: On transport errors or other non-2xx responses
            DataQualityError: If the body is not a JSON object with ``data``
        """
        url = f"{self.base_url}{path}"

        try:
            response = requests.get(
                url, params=params, headers=self._headers(), timeout=self.timeout
            )
        except requests.RequestException as e:
            raise DataProviderError(f"Failed to fetch {path} from CoinCap: {e}") from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            try:
                retry_after = float(retry_after) if retry_after else None
            except ValueError:
                retry_after = None
            raise RateLimitError(
                f"CoinCap rate limit exceeded for {path}", retry_after=retry_after
            )

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise DataProviderError(
                f"Failed to fetch {path} from CoinCap: {response.status_code}"
            ) from e

        try:
            body = response.json()
        except ValueError as e:
            raise DataProviderError(
                f"Failed to parse CoinCap response for {path}: {e}"
            ) from e

        if not isinstance(body, dict) or "data" not in body:
            raise DataQualityError(f"CoinCap response for {path} has no 'data' field")

        return body
