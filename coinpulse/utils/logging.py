"""Logging configuration for CoinPulse.

Every module logs through ``get_logger(__name__)``; the CLI calls
``setup_logging`` once with ``logging.level`` from the config. Scheduler and
HTTP client chatter is kept at WARNING so a 15 second polling loop does not
flood the console.
"""

import logging
import sys
from typing import Any, Iterable

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# APScheduler logs every job run and urllib3 every connection at INFO/DEBUG
NOISY_LOGGERS = ("apscheduler", "urllib3")


def setup_logging(
    level: str = "INFO",
    log_format: str | None = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """Configure the root logger for CoinPulse.

    Logs go to stdout. Unknown level names fall back to INFO.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom format string (default: DEFAULT_FORMAT)
        quiet_loggers: Third-party loggers held at WARNING regardless of level

    Example:
        >>> config = load_config()
        >>> setup_logging(level=config.get("logging.level", "INFO"))
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=log_format or DEFAULT_FORMAT,
        stream=sys.stdout,
        force=True,
    )

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get the logger for a CoinPulse module (pass ``__name__``)."""
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: Any,
) -> None:
    """Log ``message`` with ``key=value`` context appended after a pipe.

    Args:
        logger: Logger instance
        level: Log level name (debug, info, warning, error, critical)
        message: Log message
        **context: Context fields, rendered in the order given

    Example:
        >>> log_with_context(
        ...     logger, "info", "Portfolio evaluated",
        ...     risk_score=9, profile="moderate", actions=1,
        ... )
        # Logs: "Portfolio evaluated | risk_score=9 profile=moderate actions=1"
    """
    log_func = getattr(logger, level.lower())

    if context:
        context_str = " ".join(f"{k}={v}" for k, v in context.items())
        message = f"{message} | {context_str}"

    log_func(message)
