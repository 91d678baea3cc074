"""Portfolio data structures.

This module defines the portfolio snapshot consumed by valuation, the risk
profile enumeration that selects a target allocation table, and the trade
actions produced by the rebalancing engine.

All money, amount and percentage fields are ``Decimal``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from coinpulse.data.base import to_decimal

if TYPE_CHECKING:
    from coinpulse.portfolio.justification import JustificationTemplate

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class TradeDirection(Enum):
    """Direction of a suggested trade."""

    BUY = "buy"
    SELL = "sell"


class RiskProfile(Enum):
    """Investor risk appetite; each maps to a fixed target allocation table."""

    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"
    VERY_AGGRESSIVE = "very_aggressive"

    @classmethod
    def parse(cls, value: Any) -> Optional["RiskProfile"]:
        """Return the matching profile, or None if ``value`` is not one."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass
class PortfolioAsset:
    """One holding in a portfolio.

    Attributes:
        asset_id: Market data identifier (e.g. "bitcoin")
        symbol: Ticker symbol (e.g. "BTC")
        amount: Units held
        value_usd: Market value of the holding (derived by valuation)
        allocation_percent: Share of total portfolio value, 0..100
        name: Optional display name
    """

    asset_id: str
    symbol: str
    amount: Decimal
    value_usd: Decimal = ZERO
    allocation_percent: Decimal = ZERO
    name: str = ""

    def __post_init__(self):
        """Validate holding fields."""
        if not ZERO <= self.allocation_percent <= HUNDRED:
            raise ValueError(
                f"allocation_percent must be in [0, 100], got {self.allocation_percent}"
            )
        if self.value_usd < 0:
            raise ValueError(f"value_usd must be non-negative, got {self.value_usd}")


@dataclass
class Portfolio:
    """Snapshot of a portfolio.

    ``total_value_usd`` is kept equal to the sum of the holdings' ``value_usd``
    by valuation; nothing else should assign it.

    Attributes:
        assets: Holdings
        total_value_usd: Sum of holding values
        last_rebalanced_at: When actions were last applied
        risk_score: 0..100 volatility score
    """

    assets: List[PortfolioAsset] = field(default_factory=list)
    total_value_usd: Decimal = ZERO
    last_rebalanced_at: Optional[datetime] = None
    risk_score: int = 0

    @property
    def cash_percent(self) -> Decimal:
        """Uninvested share of the portfolio (100 minus allocations)."""
        allocated = sum((a.allocation_percent for a in self.assets), ZERO)
        return max(ZERO, HUNDRED - allocated)

    def get_asset(self, asset_id: str) -> Optional[PortfolioAsset]:
        for asset in self.assets:
            if asset.asset_id == asset_id:
                return asset
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Portfolio":
        """Build a portfolio from plain data (e.g. a stored user document).

        Example:
            >>> Portfolio.from_dict({
            ...     "assets": [
            ...         {"asset_id": "bitcoin", "symbol": "BTC",
            ...          "amount": "0.5", "allocation_percent": 40},
            ...     ],
            ... })
        """
        assets = [
            PortfolioAsset(
                asset_id=item["asset_id"],
                symbol=item.get("symbol") or item["asset_id"].upper(),
                amount=to_decimal(item.get("amount"), "amount"),
                value_usd=to_decimal(item.get("value_usd"), "value_usd"),
                allocation_percent=to_decimal(
                    item.get("allocation_percent"), "allocation_percent"
                ),
                name=item.get("name", ""),
            )
            for item in data.get("assets", [])
        ]

        last_rebalanced_at = data.get("last_rebalanced_at")
        if isinstance(last_rebalanced_at, str):
            last_rebalanced_at = datetime.fromisoformat(last_rebalanced_at)

        return cls(
            assets=assets,
            total_value_usd=sum((a.value_usd for a in assets), ZERO),
            last_rebalanced_at=last_rebalanced_at,
            risk_score=int(data.get("risk_score", 0)),
        )


@dataclass(frozen=True)
class RebalanceAction:
    """A suggested trade moving one holding toward its target allocation.

    Attributes:
        asset_id: Asset to trade
        symbol: Ticker symbol
        direction: BUY or SELL
        allocation_delta_percent: Absolute allocation change in percentage points
        units_to_trade: Units to buy or sell, rounded by price tier
        justification: Human-readable reason
        justification_template: Id of the template the reason was rendered from
    """

    asset_id: str
    symbol: str
    direction: TradeDirection
    allocation_delta_percent: Decimal
    units_to_trade: Decimal
    justification: str
    justification_template: Optional["JustificationTemplate"] = None

    def __post_init__(self):
        """Validate action fields."""
        if self.allocation_delta_percent <= 0:
            raise ValueError(
                "allocation_delta_percent must be positive, "
                f"got {self.allocation_delta_percent}"
            )
        if self.units_to_trade < 0:
            raise ValueError(
                f"units_to_trade must be non-negative, got {self.units_to_trade}"
            )

    @property
    def signed_delta(self) -> Decimal:
        """Allocation change with sign: positive for buys, negative for sells."""
        if self.direction == TradeDirection.BUY:
            return self.allocation_delta_percent
        return -self.allocation_delta_percent

    @property
    def signed_units(self) -> Decimal:
        if self.direction == TradeDirection.BUY:
            return self.units_to_trade
        return -self.units_to_trade

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "allocation_delta_percent": str(self.allocation_delta_percent),
            "units_to_trade": str(self.units_to_trade),
            "justification": self.justification,
        }
