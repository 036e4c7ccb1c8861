"""Logging setup for the CLI and the dashboard."""
from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Libraries that log every polled request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: str | None = None) -> None:
    """Initialize logging for painel.

    The level can be provided directly or via the ``LOG_LEVEL`` environment
    variable (defaults to ``INFO``). HTTP client loggers stay at ``WARNING``
    unless debugging, since the sync loop polls every sheet each cycle.
    """

    resolved_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=resolved_level, format=LOG_FORMAT)

    http_level = logging.DEBUG if resolved_level == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(http_level)
