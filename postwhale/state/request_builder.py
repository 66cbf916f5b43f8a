"""Turn an editable request config into the worker's executeRequest payload."""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import quote

from postwhale.state.dirty import EditableConfig, KeyValueRow
from postwhale.tree.models import Endpoint, Service
from postwhale.utils.exceptions import ValidationError

_PATH_PARAM = re.compile(r"\{([^}]+)\}")
_TRAVERSAL = ("../", "..\\")
# Same unreserved set as JavaScript's encodeURIComponent.
_COMPONENT_SAFE = "-_.!~*'()"


class PathParamsError(ValidationError):
    """Path parameters are missing or carry a traversal sequence."""

    def __init__(self, missing: list[str], invalid: list[str]):
        parts = []
        if missing:
            parts.append(f"missing path parameters: {', '.join(missing)}")
        if invalid:
            parts.append(f"invalid path parameters: {', '.join(invalid)}")
        super().__init__("; ".join(parts), field="pathParams")
        self.missing = missing
        self.invalid = invalid
        self.details.update({"missing": missing, "invalid": invalid})


def encode_component(value: str) -> str:
    return quote(value, safe=_COMPONENT_SAFE)


def path_param_names(path: str) -> list[str]:
    """Names of ``{param}`` placeholders in path order."""
    return _PATH_PARAM.findall(path)


def resolve_path(path: str, path_params: dict[str, str]) -> str:
    """
    Substitute path parameters into ``path``.

    Every placeholder needs a non-blank value, and so does every key present in
    ``path_params``. Values containing ``../`` or ``..\\`` are rejected. Raises
    PathParamsError listing all offending names at once.
    """
    missing: list[str] = []
    invalid: list[str] = []
    resolved = path
    for key, value in path_params.items():
        if not (value or "").strip():
            missing.append(key)
            continue
        if any(seq in value for seq in _TRAVERSAL):
            invalid.append(key)
            continue
        resolved = resolved.replace("{" + key + "}", encode_component(value), 1)
    for name in path_param_names(path):
        if not (path_params.get(name) or "").strip() and name not in missing:
            missing.append(name)
    if missing or invalid:
        raise PathParamsError(missing, invalid)
    return resolved


def _sendable(rows: list[KeyValueRow]) -> list[KeyValueRow]:
    return [r for r in rows if r.enabled and r.key and r.value]


def append_query(path: str, query_params: list[KeyValueRow]) -> str:
    """Append enabled rows that have both key and value as an encoded query string."""
    query = "&".join(f"{encode_component(r.key)}={encode_component(r.value)}" for r in _sendable(query_params))
    if not query:
        return path
    return f"{path}{'&' if '?' in path else '?'}{query}"


def build_headers(rows: list[KeyValueRow], base: dict[str, str] | None = None) -> dict[str, str]:
    """Enabled header rows layered over ``base``; later rows win on duplicate keys."""
    headers = dict(base or {})
    for row in _sendable(rows):
        headers[row.key] = row.value
    return headers


def build_execute_payload(
    config: EditableConfig,
    endpoint: Endpoint,
    service: Service,
    environment: str = "LOCAL",
    base_headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Payload for the executeRequest action; raises PathParamsError before anything is sent."""
    resolved = resolve_path(endpoint.path, config.path_params)
    return {
        "serviceId": service.service_id,
        "port": service.port,
        "endpoint": append_query(resolved, config.query_params),
        "method": endpoint.method,
        "environment": environment,
        "headers": build_headers(config.headers, base_headers),
        "body": config.body,
        "endpointId": endpoint.id,
    }
