"""Configuration loading utilities."""

import json
import os
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from postwhale.config.schema import Config

# Keys whose dict values are env var names and must be stored verbatim.
_VERBATIM_KEYS = {"env"}


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".postwhale" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """Read the config file, or return defaults (plus env overrides) when it does not exist.

    A file that cannot be parsed or validated raises ValueError naming the path; it is
    never silently replaced.
    """
    path = config_path or get_config_path()
    if not path.exists():
        return Config()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("config root must be a JSON object")
        return Config.model_validate(convert_keys(_migrate_config(data)))
    except ValueError as e:
        # JSONDecodeError and pydantic's ValidationError are both ValueErrors
        raise ValueError(
            f"Failed to load config from {path}: {e}. "
            "Fix the file or remove it to regenerate defaults."
        ) from e


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Write ``config`` as camelCase JSON, replacing the file atomically."""
    from postwhale.config.access import clear_config_cache

    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(convert_to_camel(config.model_dump()), indent=2), encoding="utf-8")
    os.replace(tmp, path)
    logger.debug("Saved config to {}", path)
    clear_config_cache(config_path=path)


def _migrate_config(data: dict) -> dict:
    """Migrate old config formats to current."""
    bridge = data.get("bridge")
    if isinstance(bridge, dict):
        # backendPath (single executable) -> command argv
        backend_path = bridge.pop("backendPath", None)
        if isinstance(backend_path, str) and backend_path.strip() and "command" not in bridge:
            bridge["command"] = [backend_path.strip()]
        command = bridge.get("command")
        if isinstance(command, str) and command.strip():
            bridge["command"] = command.split()
        # timeoutSeconds -> timeoutMs
        seconds = bridge.pop("timeoutSeconds", None)
        if isinstance(seconds, (int, float)) and "timeoutMs" not in bridge:
            bridge["timeoutMs"] = int(seconds * 1000)
    return data


def _rekey(data: Any, rename: Callable[[str], str]) -> Any:
    """Rename dict keys recursively; dicts under a verbatim key keep their keys."""
    if isinstance(data, dict):
        out: dict[str, Any] = {}
        for key, value in data.items():
            name = rename(key)
            out[name] = dict(value) if name in _VERBATIM_KEYS and isinstance(value, dict) else _rekey(value, rename)
        return out
    if isinstance(data, list):
        return [_rekey(item, rename) for item in data]
    return data


def convert_keys(data: Any) -> Any:
    """camelCase file keys to the snake_case field names pydantic expects."""
    return _rekey(data, camel_to_snake)


def convert_to_camel(data: Any) -> Any:
    return _rekey(data, snake_to_camel)


def camel_to_snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() and i else c.lower() for i, c in enumerate(name))


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)
