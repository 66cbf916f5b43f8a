"""Repository / service / endpoint records as the worker reports them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from postwhale.utils.helpers import safe_dict


@dataclass(frozen=True, slots=True)
class Repository:
    id: int
    name: str
    path: str = ""

    @classmethod
    def from_dict(cls, raw: Any) -> "Repository":
        row = safe_dict(raw)
        return cls(id=int(row.get("id") or 0), name=str(row.get("name") or ""), path=str(row.get("path") or ""))


@dataclass(frozen=True, slots=True)
class Service:
    id: int
    repo_id: int
    name: str
    service_id: str = ""
    port: int = 0

    @classmethod
    def from_dict(cls, raw: Any) -> "Service":
        row = safe_dict(raw)
        return cls(
            id=int(row.get("id") or 0),
            repo_id=int(row.get("repoId") or 0),
            name=str(row.get("name") or ""),
            service_id=str(row.get("serviceId") or ""),
            port=int(row.get("port") or 0),
        )


@dataclass(frozen=True, slots=True)
class Endpoint:
    id: int
    service_id: int
    method: str
    path: str
    operation_id: str = ""
    spec: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @classmethod
    def from_dict(cls, raw: Any) -> "Endpoint":
        row = safe_dict(raw)
        return cls(
            id=int(row.get("id") or 0),
            service_id=int(row.get("serviceId") or 0),
            method=str(row.get("method") or "").upper(),
            path=str(row.get("path") or ""),
            operation_id=str(row.get("operationId") or ""),
            spec=safe_dict(row.get("spec")),
        )

    def parameters(self, location: str) -> list[dict[str, Any]]:
        """OpenAPI parameters declared ``in`` the given location (path/query/header)."""
        params = self.spec.get("parameters")
        if not isinstance(params, list):
            return []
        return [p for p in params if isinstance(p, dict) and p.get("in") == location]


@dataclass(frozen=True, slots=True)
class SavedRequest:
    id: int
    endpoint_id: int
    name: str
    path_params_json: str = "{}"
    query_params_json: str = "[]"
    headers_json: str = "[]"
    body: str = ""
    created_at: str = ""

    @classmethod
    def from_dict(cls, raw: Any) -> "SavedRequest":
        row = safe_dict(raw)
        return cls(
            id=int(row.get("id") or 0),
            endpoint_id=int(row.get("endpointId") or 0),
            name=str(row.get("name") or ""),
            path_params_json=str(row.get("pathParamsJson") or "{}"),
            query_params_json=str(row.get("queryParamsJson") or "[]"),
            headers_json=str(row.get("headersJson") or "[]"),
            body=str(row.get("body") or ""),
            created_at=str(row.get("createdAt") or ""),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "endpointId": self.endpoint_id,
            "name": self.name,
            "pathParamsJson": self.path_params_json,
            "queryParamsJson": self.query_params_json,
            "headersJson": self.headers_json,
            "body": self.body,
        }
