"""Configuration management for the finance tracker.

This module centralizes all configuration values including paths,
defaults, and environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

# Base project root - assumes this file is in finance_tracker/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("FINTRACK_DATA_DIR", _PROJECT_ROOT / "data"))

# Database
DB_PATH = Path(
    os.getenv("FINTRACK_DB_PATH", DATA_DIR / "finance.db")
).resolve()

# Persistent UI state (recurring check timestamp, filters)
CACHE_PATH = Path(
    os.getenv("FINTRACK_CACHE_PATH", DATA_DIR / "persistent_cache.json")
).resolve()

# Display
CURRENCY_SYMBOL = os.getenv("FINTRACK_CURRENCY_SYMBOL", "₹")
ITEMS_PER_PAGE = 10

# Recurring materialization throttle
RECURRING_CHECK_INTERVAL_MINUTES = int(os.getenv("FINTRACK_RECURRING_INTERVAL_MINUTES", "30"))

# Share of the current balance that can be spent on a wishlist item safely
SAFE_SPEND_RATIO = 0.15

# Identity of the single local user
USER_ID: Optional[str] = os.getenv("FINTRACK_USER_ID", "local-user") or None
USER_EMAIL: Optional[str] = os.getenv("FINTRACK_USER_EMAIL")

LOG_LEVEL = os.getenv("FINTRACK_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    for directory in [DATA_DIR, DB_PATH.parent, CACHE_PATH.parent]:
        directory.mkdir(parents=True, exist_ok=True)


def configure_logging(level: Optional[str] = None) -> None:
    """Install a root handler once; later calls only adjust the level."""
    logging.basicConfig(level=level or LOG_LEVEL, format=LOG_FORMAT)
    logging.getLogger("finance_tracker").setLevel(level or LOG_LEVEL)
