"""Consumer-facing APIs.

- MarketDataAPI: Cached market data access and live subscriptions
- PortfolioAPI: Valuation and rebalancing call pair
"""

from coinpulse.api.market_api import MarketDataAPI
from coinpulse.api.portfolio_api import PortfolioAPI

__all__ = ["MarketDataAPI", "PortfolioAPI"]
