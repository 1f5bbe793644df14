"""
Logging configuration for the application.

One stdout handler on the root logger; the market data and database client
libraries are turned down so fallback and tier warnings stay visible.
"""

import logging
import sys
from typing import Optional

from trademind.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Library loggers and the level they are capped at
QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "sqlalchemy": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "yfinance": logging.WARNING,
    "alpaca": logging.WARNING,
}


def setup_logging(level: Optional[str] = None) -> None:
    """Configure application logging. `level` overrides LOG_LEVEL."""
    level_name = (level or settings.LOG_LEVEL).upper()

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name, cap in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(cap)

    if settings.DB_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
