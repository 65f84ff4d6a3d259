"""Logging configuration for Equity Advisor."""

import logging
import sys


def setup_logger(name: str = "equity_advisor", level: str | None = None) -> logging.Logger:
    """Create and configure a logger.

    When *level* is omitted the configured ``app.log_level`` (or the
    ``EQUITY_ADVISOR_LOG_LEVEL`` environment override) is used.
    """
    if level is None:
        from equity_advisor.config import LOG_LEVEL
        level = LOG_LEVEL

    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        fmt = logging.Formatter(
            "%(asctime)s | %(name)-20s | %(levelname)-7s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(fmt)
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
