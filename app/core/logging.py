"""
Logging utilities for the robot API and its lifecycle services.

Provides a consistent logging format and configuration.
"""

import logging
import sys

_NOISY_LOGGERS = ("msal", "httpx", "botocore")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging and quiet chatty third-party loggers."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    if level.upper() != "DEBUG":
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["configure_logging"]
