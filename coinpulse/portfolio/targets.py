"""Target allocation tables per risk profile.

Each table maps an asset identifier to a target share of the portfolio in
percent. Tables need not sum to 100, and assets missing from a table have no
target: the rebalancing engine never trades them.
"""

from decimal import Decimal
from typing import Any, Dict

from coinpulse.portfolio.base import RiskProfile
from coinpulse.utils.logging import get_logger

logger = get_logger(__name__)

TargetAllocationTable = Dict[str, Decimal]

DEFAULT_RISK_PROFILE = RiskProfile.MODERATE


def _table(**targets: int) -> TargetAllocationTable:
    return {asset_id.replace("_", "-"): Decimal(pct) for asset_id, pct in targets.items()}


TARGET_ALLOCATIONS: Dict[RiskProfile, TargetAllocationTable] = {
    RiskProfile.CONSERVATIVE: _table(
        bitcoin=35, ethereum=20, cardano=10, solana=5, polkadot=5, tether=20, usd_coin=5
    ),
    RiskProfile.MODERATE: _table(
        bitcoin=40, ethereum=25, cardano=12, solana=8, polkadot=7, tether=8
    ),
    RiskProfile.AGGRESSIVE: _table(
        bitcoin=45, ethereum=30, cardano=8, solana=12, polkadot=5
    ),
    RiskProfile.VERY_AGGRESSIVE: _table(
        bitcoin=35, ethereum=35, solana=20, polkadot=10
    ),
}


def resolve_risk_profile(value: Any) -> RiskProfile:
    """Map ``value`` to a RiskProfile, falling back to the default profile.

    Unknown values are not an error: actions are advisory, so we log and use
    DEFAULT_RISK_PROFILE.
    """
    profile = RiskProfile.parse(value)
    if profile is None:
        logger.warning(
            "Unknown risk profile %r, using '%s'", value, DEFAULT_RISK_PROFILE.value
        )
        return DEFAULT_RISK_PROFILE
    return profile


def get_target_allocations(risk_profile: Any) -> TargetAllocationTable:
    """Return a copy of the target table for ``risk_profile``.

    Example:
        >>> get_target_allocations("very_aggressive")["solana"]
        Decimal('20')
    """
    return dict(TARGET_ALLOCATIONS[resolve_risk_profile(risk_profile)])
