"""Custom exceptions for CoinPulse.

This module defines the exception hierarchy for the application.
"""


class CoinPulseError(Exception):
    """Base exception for all CoinPulse errors.

    All custom exceptions in the application should inherit from this class.
    """

    pass


class ConfigurationError(CoinPulseError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Invalid TTL or polling interval values
        - Configuration file not found
    """

    pass


class DataError(CoinPulseError):
    """Base exception for data layer errors.

    Parent class for all data-related exceptions.
    """

    pass


class DataProviderError(DataError):
    """Raised when the upstream market data source fails.

    Examples:
        - Network connection failed
        - Non-2xx HTTP response
        - Response body is not JSON
    """

    pass


class RateLimitError(DataProviderError):
    """Raised when the upstream rejects a request with HTTP 429.

    Attributes:
        retry_after: Seconds the upstream asked us to wait, if it said so
    """

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class DataQualityError(DataError):
    """Raised when an upstream payload has an unexpected shape.

    Examples:
        - Missing "data" envelope
        - Price field that is not a decimal string
    """

    pass


class CacheError(DataError):
    """Raised when the response cache is used after being disposed."""

    pass


class SubscriptionError(CoinPulseError):
    """Raised for operations on an unknown or detached polling subscription."""

    pass


class PortfolioError(CoinPulseError):
    """Base exception for portfolio layer errors.

    Parent class for all portfolio-related exceptions.
    """

    pass


class RebalanceError(PortfolioError):
    """Raised when rebalancing input is invalid.

    Examples:
        - Negative materiality threshold
        - Malformed target allocation table
    """

    pass
