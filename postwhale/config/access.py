"""Cached configuration access.

Entries are keyed by resolved config path and remember the file's mtime, so an
edit made on disk (by hand or by another postwhale process) is picked up on the
next get_config() without an explicit reload.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from postwhale.config.loader import get_config_path, load_config
from postwhale.config.schema import Config


@dataclass
class _CacheEntry:
    config: Config
    mtime_ns: int | None


_lock = threading.RLock()
_cache: dict[Path, _CacheEntry] = {}


def _resolve(config_path: Path | None) -> Path:
    return Path(config_path or get_config_path()).expanduser().resolve()


def _mtime_ns(path: Path) -> int | None:
    try:
        return path.stat().st_mtime_ns
    except OSError:
        return None


def get_config(*, config_path: Path | None = None, force_reload: bool = False) -> Config:
    """Return the config for ``config_path`` (default file), reloading when it changed on disk."""
    path = _resolve(config_path)
    mtime = _mtime_ns(path)
    with _lock:
        entry = _cache.get(path)
        if entry is not None and not force_reload and entry.mtime_ns == mtime:
            return entry.config
        if entry is not None and not force_reload:
            logger.debug("Config {} changed on disk; reloading", path)
        config = load_config(path)
        _cache[path] = _CacheEntry(config=config, mtime_ns=mtime)
        return config


def clear_config_cache(*, config_path: Path | None = None) -> None:
    """Drop one cached entry, or all of them."""
    with _lock:
        if config_path is None:
            _cache.clear()
        else:
            _cache.pop(_resolve(config_path), None)
