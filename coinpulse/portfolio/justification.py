"""Decision table for rebalance action justifications.

A justification is chosen from a fixed set of templates by the tuple
``(direction, 24h trend, risk profile)``; only the 24h change figure is
interpolated. The same inputs always select the same template, so the table
can be tested exhaustively.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Tuple

from coinpulse.portfolio.base import RiskProfile, TradeDirection

CENT = Decimal("0.01")


class Trend(Enum):
    """Sign of the 24h price change. Zero counts as DOWN."""

    UP = "up"
    DOWN = "down"

    @classmethod
    def from_change(cls, change_percent: Decimal) -> "Trend":
        return cls.UP if change_percent > 0 else cls.DOWN


class JustificationTemplate(Enum):
    """Justification templates; values are ``str.format`` patterns."""

    MOMENTUM = "Capitalize on strong momentum ({change}% 24h change)"
    GRADUAL_INCREASE = (
        "Gradually increase position in asset with positive trend ({change}%)"
    )
    BUY_THE_DIP = "Buy the dip while price is down {abs_change}% to optimize position"
    TAKE_PROFIT = "Take profit after {change}% gain to rebalance portfolio"
    LIMIT_LOSS = "Reduce exposure to minimize further loss ({change}%)"
    ROTATE_OUT = "Reallocate to better performing assets from this underperformer"


_BUY, _SELL = TradeDirection.BUY, TradeDirection.SELL
_UP, _DOWN = Trend.UP, Trend.DOWN
_C, _M = RiskProfile.CONSERVATIVE, RiskProfile.MODERATE
_A, _VA = RiskProfile.AGGRESSIVE, RiskProfile.VERY_AGGRESSIVE

DECISION_TABLE: Dict[Tuple[TradeDirection, Trend, RiskProfile], JustificationTemplate] = {
    (_BUY, _UP, _C): JustificationTemplate.GRADUAL_INCREASE,
    (_BUY, _UP, _M): JustificationTemplate.GRADUAL_INCREASE,
    (_BUY, _UP, _A): JustificationTemplate.MOMENTUM,
    (_BUY, _UP, _VA): JustificationTemplate.MOMENTUM,
    (_BUY, _DOWN, _C): JustificationTemplate.BUY_THE_DIP,
    (_BUY, _DOWN, _M): JustificationTemplate.BUY_THE_DIP,
    (_BUY, _DOWN, _A): JustificationTemplate.BUY_THE_DIP,
    (_BUY, _DOWN, _VA): JustificationTemplate.BUY_THE_DIP,
    (_SELL, _UP, _C): JustificationTemplate.TAKE_PROFIT,
    (_SELL, _UP, _M): JustificationTemplate.TAKE_PROFIT,
    (_SELL, _UP, _A): JustificationTemplate.TAKE_PROFIT,
    (_SELL, _UP, _VA): JustificationTemplate.TAKE_PROFIT,
    (_SELL, _DOWN, _C): JustificationTemplate.LIMIT_LOSS,
    (_SELL, _DOWN, _M): JustificationTemplate.LIMIT_LOSS,
    (_SELL, _DOWN, _A): JustificationTemplate.ROTATE_OUT,
    (_SELL, _DOWN, _VA): JustificationTemplate.ROTATE_OUT,
}


@dataclass(frozen=True)
class Justification:
    """A selected template plus the values interpolated into it."""

    template: JustificationTemplate
    change: Decimal

    @property
    def values(self) -> Dict[str, str]:
        change = self.change.quantize(CENT, rounding=ROUND_HALF_UP)
        return {"change": str(change), "abs_change": str(abs(change))}

    @property
    def text(self) -> str:
        return self.template.value.format(**self.values)


def select_template(
    direction: TradeDirection,
    trend: Trend,
    risk_profile: RiskProfile,
) -> JustificationTemplate:
    return DECISION_TABLE[(direction, trend, risk_profile)]


def build_justification(
    direction: TradeDirection,
    change_percent_24h: Decimal,
    risk_profile: RiskProfile,
) -> Justification:
    """Pick the template for a trade and bind the 24h change to it."""
    template = select_template(
        direction, Trend.from_change(change_percent_24h), risk_profile
    )
    return Justification(template=template, change=change_percent_24h)
