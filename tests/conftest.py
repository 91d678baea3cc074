"""Shared fixtures for CoinPulse tests."""

from decimal import Decimal
from typing import Dict

import pytest

from coinpulse.data.base import AssetQuote
from coinpulse.portfolio.base import Portfolio, PortfolioAsset


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_quote(
    asset_id: str,
    price: str,
    change: str = "1.5",
    symbol: str | None = None,
) -> AssetQuote:
    """Build an AssetQuote with sensible defaults."""
    return AssetQuote(
        asset_id=asset_id,
        symbol=symbol or asset_id[:3].upper(),
        name=asset_id.title(),
        price_usd=Decimal(price),
        change_percent_24h=Decimal(change),
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def quotes() -> Dict[str, AssetQuote]:
    """Quotes for the five assets of the sample portfolio."""
    return {
        q.asset_id: q
        for q in [
            make_quote("bitcoin", "40000", "2.10", "BTC"),
            make_quote("ethereum", "2000", "-1.25", "ETH"),
            make_quote("cardano", "0.5", "3.40", "ADA"),
            make_quote("solana", "100", "-0.80", "SOL"),
            make_quote("polkadot", "5", "0", "DOT"),
        ]
    }


@pytest.fixture
def example_portfolio() -> Portfolio:
    """BTC 40%, ETH 25%, ADA 15%, SOL 10%, DOT 5%, 5% cash; $100k total."""

    def asset(asset_id, symbol, amount, value, allocation):
        return PortfolioAsset(
            asset_id=asset_id,
            symbol=symbol,
            amount=Decimal(amount),
            value_usd=Decimal(value),
            allocation_percent=Decimal(allocation),
        )

    assets = [
        asset("bitcoin", "BTC", "1", "40000", "40"),
        asset("ethereum", "ETH", "12.5", "25000", "25"),
        asset("cardano", "ADA", "30000", "15000", "15"),
        asset("solana", "SOL", "100", "10000", "10"),
        asset("polkadot", "DOT", "1000", "5000", "5"),
    ]
    return Portfolio(assets=assets, total_value_usd=Decimal("100000"))


@pytest.fixture
def quote_factory():
    """Factory building AssetQuotes: ``quote_factory("bitcoin", "40000")``."""
    return make_quote
