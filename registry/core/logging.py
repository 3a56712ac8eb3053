"""Logging configuration for the registry service.

Every record carries the correlation id of the request that emitted it.
"""

from __future__ import annotations

import logging
import sys

from registry.core.correlation import RequestIdFilter

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(requestId)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """Install a stdout handler whose records include ``requestId``."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handler.addFilter(RequestIdFilter())

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
