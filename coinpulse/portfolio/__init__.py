"""Portfolio Layer.

This layer values portfolios against live quotes and turns allocation drift
from a risk-profile target into suggested trades.

Components:
- Portfolio / PortfolioAsset: Portfolio snapshot
- RiskProfile: Risk appetite selecting a target allocation table
- RebalanceAction: Suggested trade with justification
- recompute: Pure valuation of a portfolio at current prices
- PortfolioRebalancer: Diff-based trade generation
"""

from coinpulse.portfolio.base import (
    Portfolio,
    PortfolioAsset,
    RebalanceAction,
    RiskProfile,
    TradeDirection,
)
from coinpulse.portfolio.rebalancer import PortfolioRebalancer, generate_actions
from coinpulse.portfolio.targets import TARGET_ALLOCATIONS, get_target_allocations
from coinpulse.portfolio.valuation import calculate_risk_score, recompute

__all__ = [
    "Portfolio",
    "PortfolioAsset",
    "PortfolioRebalancer",
    "RebalanceAction",
    "RiskProfile",
    "TARGET_ALLOCATIONS",
    "TradeDirection",
    "calculate_risk_score",
    "generate_actions",
    "get_target_allocations",
    "recompute",
]
