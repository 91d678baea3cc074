"""Risk-profile driven portfolio rebalancer.

This module diffs a portfolio's current allocations against the target table
of a risk profile and proposes the minimal set of trades to close material
drifts.

Algorithm:
1. Look up the target allocation table for the risk profile
2. For each held asset with a target, delta = target% - current%
3. Skip drifts with abs(delta) <= materiality threshold (default 2 points)
4. Buy when delta > 0, sell otherwise
5. Size the trade in units at the current price, rounded by price tier;
   skip assets without a positive price
6. Attach a justification from the decision table
"""

from dataclasses import replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

import pytz

from coinpulse.data.base import QuoteSource, quote_map
from coinpulse.portfolio.base import (
    HUNDRED,
    ZERO,
    Portfolio,
    RebalanceAction,
    TradeDirection,
)
from coinpulse.portfolio.justification import build_justification
from coinpulse.portfolio.targets import get_target_allocations, resolve_risk_profile
from coinpulse.portfolio.valuation import price_of
from coinpulse.utils.exceptions import RebalanceError
from coinpulse.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MATERIALITY_THRESHOLD = Decimal("2")

# (exclusive price ceiling, decimal places); prices above the last ceiling use 2
PRECISION_TIERS = (
    (Decimal("0.01"), 6),
    (Decimal("1"), 4),
)
DEFAULT_UNIT_PLACES = 2


def unit_precision(price: Decimal) -> int:
    """Decimal places used for trade units at ``price``."""
    for ceiling, places in PRECISION_TIERS:
        if price < ceiling:
            return places
    return DEFAULT_UNIT_PLACES


def round_units(units: Decimal, price: Decimal) -> Decimal:
    """Round ``units`` half-up to the precision tier of ``price``.

    Example:
        >>> round_units(Decimal("123.456789"), Decimal("0.005"))
        Decimal('123.456789')
        >>> round_units(Decimal("123.456789"), Decimal("0.5"))
        Decimal('123.4568')
        >>> round_units(Decimal("0.123456"), Decimal("30000"))
        Decimal('0.12')
    """
    step = Decimal(1).scaleb(-unit_precision(price))
    return units.quantize(step, rounding=ROUND_HALF_UP)


class PortfolioRebalancer:
    """Proposes trades that move a portfolio toward a risk profile's targets.

    Stateless apart from configuration: actions are recomputed from scratch for
    every (portfolio, quotes, profile) and never stored.

    Configuration Parameters:
        materiality_threshold: Minimum drift in percentage points before a
            trade is proposed; drifts equal to it are ignored (default 2)

    Example:
        >>> rebalancer = PortfolioRebalancer({"materiality_threshold": 2})
        >>> portfolio = recompute(portfolio, quotes)
        >>> actions = rebalancer.generate_actions(portfolio, quotes, "moderate")
        >>> for action in actions:
        ...     print(action.direction.value, action.units_to_trade, action.symbol)
    """

    def __init__(self, config: Optional[Dict] = None):
        """Initialize rebalancer with configuration.

        Args:
            config: Configuration dictionary. Uses defaults if not provided.
        """
        config = config or {}

        self.materiality_threshold = Decimal(
            str(config.get("materiality_threshold", DEFAULT_MATERIALITY_THRESHOLD))
        )

        self._validate_config()

    def _validate_config(self) -> None:
        if self.materiality_threshold < 0:
            raise RebalanceError(
                f"materiality_threshold must be >= 0, got {self.materiality_threshold}"
            )

    def calculate_drift(
        self,
        portfolio: Portfolio,
        risk_profile: Any,
    ) -> Dict[str, Decimal]:
        """Target minus current allocation for every held asset with a target.

        Returns:
            ``{asset_id: delta}`` in percentage points; positive means underweight
        """
        targets = get_target_allocations(risk_profile)
        return {
            asset.asset_id: targets[asset.asset_id] - asset.allocation_percent
            for asset in portfolio.assets
            if asset.asset_id in targets
        }

    def should_rebalance(self, portfolio: Portfolio, risk_profile: Any) -> bool:
        """Check if any targeted holding drifted beyond the threshold."""
        drift = self.calculate_drift(portfolio, risk_profile)
        return any(abs(delta) > self.materiality_threshold for delta in drift.values())

    def generate_actions(
        self,
        portfolio: Portfolio,
        quotes: QuoteSource,
        risk_profile: Any,
    ) -> List[RebalanceAction]:
        """Propose trades closing material drifts from the target table.

        Holdings without a target are never traded. Holdings without a
        positive current price are skipped since the trade cannot be sized.

        Args:
            portfolio: Portfolio, freshly revalued
            quotes: Current quotes ``{asset_id: AssetQuote}`` or an iterable
            risk_profile: RiskProfile or its string value; unknown values fall
                back to the default profile

        Returns:
            Actions sorted by asset_id
        """
        profile = resolve_risk_profile(risk_profile)
        quotes = quote_map(quotes)
        drift = self.calculate_drift(portfolio, profile)

        actions: List[RebalanceAction] = []
        for asset in portfolio.assets:
            delta = drift.get(asset.asset_id)
            if delta is None or abs(delta) <= self.materiality_threshold:
                continue

            price = price_of(quotes, asset.asset_id)
            if price <= 0:
                logger.debug(
                    "Skipping %s: no positive price to size the trade", asset.asset_id
                )
                continue

            direction = TradeDirection.BUY if delta > 0 else TradeDirection.SELL
            size = abs(delta)
            units = round_units(size / HUNDRED * portfolio.total_value_usd / price, price)
            justification = build_justification(
                direction, quotes[asset.asset_id].change_percent_24h, profile
            )

            actions.append(
                RebalanceAction(
                    asset_id=asset.asset_id,
                    symbol=asset.symbol,
                    direction=direction,
                    allocation_delta_percent=size,
                    units_to_trade=units,
                    justification=justification.text,
                    justification_template=justification.template,
                )
            )

        actions.sort(key=lambda action: action.asset_id)

        logger.info(
            "Generated %d rebalance actions for '%s' profile",
            len(actions),
            profile.value,
        )
        return actions

    def apply_actions(
        self,
        portfolio: Portfolio,
        actions: List[RebalanceAction],
        now: Optional[datetime] = None,
    ) -> Portfolio:
        """Apply accepted actions to holdings.

        Adjusts each traded holding's amount by the signed units and its
        allocation by the signed delta, and stamps ``last_rebalanced_at``.
        Values and totals are NOT revalued: run ``recompute`` before making
        further decisions from the result.

        Returns:
            A new Portfolio
        """
        by_asset = {action.asset_id: action for action in actions}
        held = {asset.asset_id for asset in portfolio.assets}
        for asset_id in sorted(set(by_asset) - held):
            logger.warning("Ignoring action for %s: not held in portfolio", asset_id)

        assets = []
        for asset in portfolio.assets:
            action = by_asset.get(asset.asset_id)
            if action is None:
                assets.append(asset)
                continue
            assets.append(
                replace(
                    asset,
                    amount=max(ZERO, asset.amount + action.signed_units),
                    allocation_percent=min(
                        HUNDRED,
                        max(ZERO, asset.allocation_percent + action.signed_delta),
                    ),
                )
            )

        return replace(
            portfolio,
            assets=assets,
            last_rebalanced_at=now or datetime.now(pytz.utc),
        )


def generate_actions(
    portfolio: Portfolio,
    quotes: QuoteSource,
    risk_profile: Any,
) -> List[RebalanceAction]:
    """Module-level shortcut using a default-configured rebalancer."""
    return PortfolioRebalancer().generate_actions(portfolio, quotes, risk_profile)
