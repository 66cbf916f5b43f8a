"""Filesystem and payload coercion helpers shared across modules."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, TypeVar

T = TypeVar("T")

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def ensure_dir(path: Path) -> Path:
    """Create the directory if missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """Return ~/.postwhale, creating it if needed."""
    return ensure_dir(Path.home() / ".postwhale")


def safe_filename(name: str) -> str:
    """Replace characters that are not allowed in file names."""
    return _UNSAFE_CHARS.sub("_", name).strip() or "_"


def safe_dict(value: Any) -> dict[str, Any]:
    """Return the value when dict-like, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def safe_list(value: Any) -> list[Any]:
    """Return the value when list-like, otherwise an empty list."""
    return value if isinstance(value, list) else []


def safe_parse_json(text: str | None, fallback: T) -> T:
    """Parse JSON text, returning ``fallback`` on any decode failure."""
    if not text:
        return fallback
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return fallback
