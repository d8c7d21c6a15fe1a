"""Small JSON file for UI state that should survive a restart.

Holds the recurring-check timestamp, the saved ledger sort preferences and
the analytics windows.  Unknown keys in the file are dropped on load and a
missing or corrupt file falls back to the defaults.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .config import CACHE_PATH

logger = logging.getLogger(__name__)

DEFAULT_CACHE: Dict[str, Any] = {
    'recurring_last_check': None,
    'filters': {},
    'trend_days': 30,
    'comparison_months': 6,
}


def _defaults() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_CACHE)


def load_cache(path: Path | None = None) -> Dict[str, Any]:
    target = path or CACHE_PATH
    cache = _defaults()
    if not target.exists():
        return cache
    try:
        with target.open('r', encoding='utf-8') as handle:
            data = json.load(handle)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable cache file %s: %s", target, exc)
        return cache
    if isinstance(data, dict):
        cache.update({k: v for k, v in data.items() if k in DEFAULT_CACHE})
    return cache


def save_cache(cache: Dict[str, Any], path: Path | None = None) -> None:
    """Write ``cache`` through a temporary file so readers never see half a file."""
    target = path or CACHE_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    scratch = target.with_name(target.name + '.tmp')
    with scratch.open('w', encoding='utf-8') as handle:
        json.dump(cache, handle, indent=2, sort_keys=True)
    scratch.replace(target)


class CacheValueStore:
    """Get/set access to one key of the cache file.

    Used as the last-check state of the recurring throttle.
    """

    def __init__(self, key: str, path: Path | None = None):
        if key not in DEFAULT_CACHE:
            raise KeyError(f"Unknown cache key: {key}")
        self.key = key
        self.path = path

    def get(self) -> Optional[Any]:
        return load_cache(self.path).get(self.key)

    def set(self, value: Any) -> None:
        cache = load_cache(self.path)
        cache[self.key] = value
        save_cache(cache, self.path)
