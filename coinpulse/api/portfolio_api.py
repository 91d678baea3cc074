"""User-friendly Portfolio API for valuation and rebalancing decisions.

This module provides the valuation + rebalancing call pair consumers use
whenever they hold a portfolio and a fresh quote map.
"""

from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from coinpulse.data.base import QuoteSource, quote_map
from coinpulse.portfolio.base import Portfolio, RebalanceAction
from coinpulse.portfolio.rebalancer import PortfolioRebalancer
from coinpulse.portfolio.targets import resolve_risk_profile
from coinpulse.portfolio.valuation import calculate_risk_score, recompute
from coinpulse.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


class PortfolioAPI:
    """High-level API for portfolio valuation and rebalancing.

    Example:
        >>> market = MarketDataAPI()
        >>> api = PortfolioAPI()
        >>> result = api.evaluate(portfolio, market.get_quote_map(), "moderate")
        >>> for action in result["actions"]:
        ...     print(action.justification)
        >>> portfolio = api.rebalance(result["portfolio"], result["actions"])
    """

    def __init__(self, rebalancer: Optional[PortfolioRebalancer] = None):
        """Initialize PortfolioAPI.

        Args:
            rebalancer: PortfolioRebalancer instance (defaults to default config)
        """
        self.rebalancer = rebalancer if rebalancer is not None else PortfolioRebalancer()

    def evaluate(
        self,
        portfolio: Portfolio,
        quotes: QuoteSource,
        risk_profile: Any,
    ) -> Dict[str, Any]:
        """Revalue a portfolio and propose rebalancing actions.

        Returns:
            Dictionary with:
                - portfolio: Revalued Portfolio (with refreshed risk_score)
                - actions: List of RebalanceAction sorted by asset_id
                - risk_profile: The RiskProfile actually used
                - risk_score: 0..100 risk score
                - cash_percent: Uninvested share of the portfolio
        """
        quotes = quote_map(quotes)
        profile = resolve_risk_profile(risk_profile)

        revalued = recompute(portfolio, quotes)
        revalued = replace(revalued, risk_score=calculate_risk_score(revalued, quotes))
        actions = self.rebalancer.generate_actions(revalued, quotes, profile)

        log_with_context(
            logger,
            "info",
            "Portfolio evaluated",
            total_value_usd=revalued.total_value_usd,
            risk_score=revalued.risk_score,
            profile=profile.value,
            actions=len(actions),
        )

        return {
            "portfolio": revalued,
            "actions": actions,
            "risk_profile": profile,
            "risk_score": revalued.risk_score,
            "cash_percent": revalued.cash_percent,
        }

    def rebalance(
        self,
        portfolio: Portfolio,
        actions: List[RebalanceAction],
        now: Optional[datetime] = None,
    ) -> Portfolio:
        """Apply accepted actions. Revalue the result before deciding again."""
        rebalanced = self.rebalancer.apply_actions(portfolio, actions, now=now)
        logger.info("Applied %d rebalance actions", len(actions))
        return rebalanced
