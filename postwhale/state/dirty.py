"""Editable request configs and their dirty-state tracking."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from postwhale.utils.helpers import safe_dict, safe_list

TRACKED_FIELDS = ("name", "path_params", "query_params", "headers", "body")


@dataclass
class KeyValueRow:
    key: str
    value: str = ""
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "value": self.value, "enabled": self.enabled}

    @classmethod
    def from_dict(cls, raw: Any) -> "KeyValueRow":
        row = safe_dict(raw)
        return cls(key=str(row.get("key") or ""), value=str(row.get("value") or ""), enabled=bool(row.get("enabled", True)))


def rows_from_list(raw: Any) -> list[KeyValueRow]:
    return [KeyValueRow.from_dict(item) for item in safe_list(raw) if isinstance(item, dict)]


@dataclass(frozen=True)
class ConfigSnapshot:
    """Immutable copy of the tracked fields at load/save time."""

    name: str | None
    path_params: dict[str, str]
    query_params: list[KeyValueRow]
    headers: list[KeyValueRow]
    body: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "pathParams": dict(self.path_params),
            "queryParams": [r.to_dict() for r in self.query_params],
            "headers": [r.to_dict() for r in self.headers],
            "body": self.body,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "ConfigSnapshot":
        row = safe_dict(raw)
        name = row.get("name")
        return cls(
            name=str(name) if name is not None else None,
            path_params={str(k): str(v) for k, v in safe_dict(row.get("pathParams")).items()},
            query_params=rows_from_list(row.get("queryParams")),
            headers=rows_from_list(row.get("headers")),
            body=str(row.get("body") or ""),
        )


@dataclass
class EditableConfig:
    """A request config being edited for one endpoint (anonymous or saved)."""

    id: str
    endpoint_id: int
    name: str | None = None
    path_params: dict[str, str] = field(default_factory=dict)
    query_params: list[KeyValueRow] = field(default_factory=list)
    headers: list[KeyValueRow] = field(default_factory=list)
    body: str = ""
    original_snapshot: ConfigSnapshot | None = None

    @property
    def is_saved_request(self) -> bool:
        return not self.id.startswith("temp_")

    def to_dict(self) -> dict[str, Any]:
        data = extract_snapshot(self).to_dict()
        data["id"] = self.id
        data["endpointId"] = self.endpoint_id
        data["originalSnapshot"] = self.original_snapshot.to_dict() if self.original_snapshot else None
        return data

    @classmethod
    def from_dict(cls, raw: Any) -> "EditableConfig":
        row = safe_dict(raw)
        fields = ConfigSnapshot.from_dict(row)
        original = row.get("originalSnapshot")
        return cls(
            id=str(row.get("id") or ""),
            endpoint_id=int(row.get("endpointId") or 0),
            name=fields.name,
            path_params=fields.path_params,
            query_params=fields.query_params,
            headers=fields.headers,
            body=fields.body,
            original_snapshot=ConfigSnapshot.from_dict(original) if isinstance(original, dict) else None,
        )


def extract_snapshot(config: EditableConfig) -> ConfigSnapshot:
    """Canonical projection of the tracked fields (deep copies)."""
    return ConfigSnapshot(
        name=config.name,
        path_params=copy.deepcopy(config.path_params),
        query_params=copy.deepcopy(config.query_params),
        headers=copy.deepcopy(config.headers),
        body=config.body,
    )


def is_dirty(config: EditableConfig) -> bool:
    """True when the tracked fields differ from the last captured snapshot."""
    if config.original_snapshot is None:
        return True
    return extract_snapshot(config) != config.original_snapshot


def mark_saved(config: EditableConfig) -> EditableConfig:
    """Replace the snapshot with the current state (after a load or successful save)."""
    config.original_snapshot = extract_snapshot(config)
    return config


def undo(config: EditableConfig) -> EditableConfig:
    """Overwrite the tracked fields with the snapshot's values."""
    snapshot = config.original_snapshot
    if snapshot is None:
        return config
    config.name = snapshot.name
    config.path_params = copy.deepcopy(snapshot.path_params)
    config.query_params = copy.deepcopy(snapshot.query_params)
    config.headers = copy.deepcopy(snapshot.headers)
    config.body = snapshot.body
    return config
