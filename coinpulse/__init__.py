"""CoinPulse: live crypto market data sync and portfolio rebalancing."""

__version__ = "0.1.0"
