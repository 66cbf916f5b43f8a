"""Key/value persistence for editable configs and favorites."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

from postwhale.state.dirty import EditableConfig, KeyValueRow, mark_saved, rows_from_list
from postwhale.tree.filter import Favorites
from postwhale.tree.models import Endpoint, SavedRequest
from postwhale.utils.exceptions import StorageError
from postwhale.utils.helpers import ensure_dir, safe_dict, safe_filename, safe_parse_json

CONFIG_KEY_PREFIX = "postwhale_config_"
FAVORITE_KEYS = {
    "repos": "postwhale_favorites_repos",
    "services": "postwhale_favorites_services",
    "endpoints": "postwhale_favorites_endpoints",
}


def _default_headers() -> list[KeyValueRow]:
    return [KeyValueRow(key="Content-Type", value="application/json", enabled=True)]


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self) -> list[str]: ...


class MemoryStore:
    """Process-local store, used by tests and headless runs."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore:
    """
    One file per key under ``root``.

    Writes go to a temp file first and are moved into place with os.replace,
    so a reader never sees a half-written value.
    """

    def __init__(self, root: Path):
        self.root = ensure_dir(Path(root).expanduser())
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.root / f"{safe_filename(key)}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read {path}: {e}", key=key) from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with self._lock:
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    f.write(value)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, path)
            except OSError as e:
                raise StorageError(f"Failed to write {path}: {e}", key=key) from e

    def delete(self, key: str) -> bool:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return False
            try:
                path.unlink()
            except OSError as e:
                raise StorageError(f"Failed to delete {path}: {e}", key=key) from e
            return True

    def keys(self) -> list[str]:
        return sorted(p.stem for p in self.root.glob("*.json"))


def read_json(store: KeyValueStore, key: str, fallback: Any) -> Any:
    """Load a JSON value, falling back on a missing or corrupt entry."""
    try:
        raw = store.get(key)
    except StorageError as e:
        logger.warning("Failed to load {}: {}", key, e)
        return fallback
    if raw is None:
        return fallback
    value = safe_parse_json(raw, None)
    if value is None:
        logger.warning("Discarding corrupt stored value for {}", key)
        return fallback
    return value


def write_json(store: KeyValueStore, key: str, value: Any) -> bool:
    """Persist a JSON value. Returns False (and logs) when the store rejects the write."""
    try:
        store.set(key, json.dumps(value, ensure_ascii=False))
    except StorageError as e:
        logger.error("Failed to save {}: {}", key, e)
        return False
    return True


def create_anonymous_config(endpoint: Endpoint) -> EditableConfig:
    """Fresh config for an endpoint with no saved request selected."""
    query_params = [
        KeyValueRow(key=str(p.get("name") or ""), value="", enabled=True)
        for p in endpoint.parameters("query")
    ]
    return EditableConfig(
        id=f"temp_{endpoint.id}",
        endpoint_id=endpoint.id,
        name=None,
        path_params={},
        query_params=query_params,
        headers=_default_headers(),
        body="",
    )


def create_config_from_saved_request(saved: SavedRequest) -> EditableConfig:
    """Editable config for a saved request; malformed JSON columns fall back to defaults."""
    headers = safe_parse_json(saved.headers_json, None)
    return EditableConfig(
        id=str(saved.id),
        endpoint_id=saved.endpoint_id,
        name=saved.name,
        path_params={str(k): str(v) for k, v in safe_dict(safe_parse_json(saved.path_params_json, {})).items()},
        query_params=rows_from_list(safe_parse_json(saved.query_params_json, [])),
        headers=rows_from_list(headers) if isinstance(headers, list) else _default_headers(),
        body=saved.body or "",
    )


class ConfigStorage:
    """Editable configs keyed by config id (``temp_<endpoint>`` or the saved request id)."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def key_for(config_id: str) -> str:
        return f"{CONFIG_KEY_PREFIX}{config_id}"

    def load(self, config_id: str) -> EditableConfig | None:
        raw = read_json(self.store, self.key_for(config_id), None)
        if not isinstance(raw, dict):
            return None
        return EditableConfig.from_dict(raw)

    def save(self, config: EditableConfig) -> bool:
        return write_json(self.store, self.key_for(config.id), config.to_dict())

    def delete(self, config_id: str) -> bool:
        try:
            return self.store.delete(self.key_for(config_id))
        except StorageError as e:
            logger.error("Failed to delete config {}: {}", config_id, e)
            return False

    def load_or_create(self, endpoint: Endpoint, saved: SavedRequest | None = None) -> EditableConfig:
        """
        Restore the persisted edit state for an endpoint (or one of its saved
        requests); otherwise build a fresh config whose snapshot is its current state.
        """
        config_id = str(saved.id) if saved is not None else f"temp_{endpoint.id}"
        stored = self.load(config_id)
        if stored is not None:
            if stored.original_snapshot is None:
                mark_saved(stored)
            return stored
        config = create_config_from_saved_request(saved) if saved is not None else create_anonymous_config(endpoint)
        return mark_saved(config)


class FavoritesStore:
    """Favorite repo/service/endpoint ids, one JSON array per kind."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def load(self) -> Favorites:
        favorites = Favorites()
        for kind, key in FAVORITE_KEYS.items():
            raw = read_json(self.store, key, [])
            ids = {int(v) for v in raw if isinstance(v, int) and not isinstance(v, bool)} if isinstance(raw, list) else set()
            setattr(favorites, kind, ids)
        return favorites

    def save(self, favorites: Favorites) -> bool:
        ok = True
        for kind, key in FAVORITE_KEYS.items():
            ok = write_json(self.store, key, sorted(getattr(favorites, kind))) and ok
        return ok

    def toggle(self, kind: str, item_id: int) -> Favorites:
        if kind not in FAVORITE_KEYS:
            raise ValueError(f"unknown favorite kind: {kind}")
        favorites = self.load()
        ids: set[int] = getattr(favorites, kind)
        if item_id in ids:
            ids.remove(item_id)
        else:
            ids.add(item_id)
        write_json(self.store, FAVORITE_KEYS[kind], sorted(ids))
        return favorites

    def clear(self) -> bool:
        return self.save(Favorites())
