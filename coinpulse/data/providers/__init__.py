"""Concrete market data providers."""

from coinpulse.data.providers.coincap_provider import CoinCapProvider

__all__ = ["CoinCapProvider"]
