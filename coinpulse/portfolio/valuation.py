"""Portfolio valuation against live market quotes.

``recompute`` is the only place holding values, totals and allocations are
derived. It is a pure function: the input portfolio is left untouched and the
same inputs always produce an equal result.
"""

from dataclasses import replace
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Dict

from coinpulse.data.base import AssetQuote, QuoteSource, quote_map
from coinpulse.portfolio.base import HUNDRED, ZERO, Portfolio

# Allocations are truncated to this step so they never sum above 100
ALLOCATION_QUANTUM = Decimal("0.000001")

DEFAULT_VOLATILITY = Decimal("5")
RISK_SCORE_MULTIPLIER = Decimal("5")


def price_of(quotes: Dict[str, AssetQuote], asset_id: str) -> Decimal:
    """Current price for ``asset_id``; zero when there is no quote."""
    quote = quotes.get(asset_id)
    return quote.price_usd if quote is not None else ZERO


def recompute(portfolio: Portfolio, quotes: QuoteSource) -> Portfolio:
    """Revalue every holding at current prices.

    Algorithm:
    1. value_usd = amount * price (missing quote => price 0)
    2. total_value_usd = sum of value_usd
    3. allocation_percent = value_usd / total * 100, truncated to 6 decimals;
       when the total is 0 allocations are left as they were

    Args:
        portfolio: Portfolio snapshot
        quotes: Quotes as ``{asset_id: AssetQuote}`` or an iterable of quotes

    Returns:
        A new Portfolio; ``last_rebalanced_at`` and ``risk_score`` are carried over

    Example:
        >>> revalued = recompute(portfolio, market_api.get_quote_map())
        >>> revalued.total_value_usd == sum(a.value_usd for a in revalued.assets)
        True
    """
    quotes = quote_map(quotes)

    valued = [
        replace(asset, value_usd=asset.amount * price_of(quotes, asset.asset_id))
        for asset in portfolio.assets
    ]
    total = sum((asset.value_usd for asset in valued), ZERO)

    if total > 0:
        valued = [
            replace(
                asset,
                allocation_percent=(asset.value_usd / total * HUNDRED).quantize(
                    ALLOCATION_QUANTUM, rounding=ROUND_DOWN
                ),
            )
            for asset in valued
        ]

    return replace(portfolio, assets=valued, total_value_usd=total)


def calculate_risk_score(portfolio: Portfolio, quotes: QuoteSource) -> int:
    """Score portfolio risk from 0 (calm) to 100 (volatile).

    Uses the absolute 24h change of each asset as a volatility proxy,
    weighted by allocation. Assets without a quote count as 5% volatile.
    The weighted volatility is multiplied by 5 and clamped to 0..100.
    """
    quotes = quote_map(quotes)

    weighted = ZERO
    for asset in portfolio.assets:
        quote = quotes.get(asset.asset_id)
        volatility = (
            abs(quote.change_percent_24h) if quote is not None else DEFAULT_VOLATILITY
        )
        weighted += volatility * asset.allocation_percent / HUNDRED

    score = min(HUNDRED, max(ZERO, weighted * RISK_SCORE_MULTIPLIER))
    return int(score.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
