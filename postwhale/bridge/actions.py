"""Typed wrappers over the backend worker's action set."""

from __future__ import annotations

from typing import Any, Protocol

from postwhale.state.dirty import EditableConfig
from postwhale.state.request_builder import build_execute_payload
from postwhale.tree.models import Endpoint, Repository, SavedRequest, Service
from postwhale.utils.helpers import safe_dict, safe_list

ADD_REPOSITORY = "addRepository"
GET_REPOSITORIES = "getRepositories"
REMOVE_REPOSITORY = "removeRepository"
REFRESH_REPOSITORY = "refreshRepository"
GET_SERVICES = "getServices"
GET_ENDPOINTS = "getEndpoints"
EXECUTE_REQUEST = "executeRequest"
GET_REQUEST_HISTORY = "getRequestHistory"
SCAN_DIRECTORY = "scanDirectory"
CHECK_PATH = "checkPath"
SAVE_SAVED_REQUEST = "saveSavedRequest"
GET_SAVED_REQUESTS = "getSavedRequests"
UPDATE_SAVED_REQUEST = "updateSavedRequest"
DELETE_SAVED_REQUEST = "deleteSavedRequest"

ENVIRONMENTS = ("LOCAL", "STAGING", "PRODUCTION")


class Invoker(Protocol):
    async def invoke(self, action: str, data: Any = None, *, timeout: float | None = None) -> Any: ...


class WorkerActions:
    """Convenience layer mapping worker actions to typed Python results."""

    def __init__(self, bridge: Invoker):
        self.bridge = bridge

    async def add_repository(self, path: str) -> dict[str, Any]:
        return safe_dict(await self.bridge.invoke(ADD_REPOSITORY, {"path": path}))

    async def get_repositories(self) -> list[Repository]:
        result = await self.bridge.invoke(GET_REPOSITORIES, {})
        return [Repository.from_dict(row) for row in safe_list(result) if isinstance(row, dict)]

    async def remove_repository(self, repo_id: int) -> None:
        await self.bridge.invoke(REMOVE_REPOSITORY, {"id": repo_id})

    async def refresh_repository(self, repo_id: int) -> dict[str, Any]:
        return safe_dict(await self.bridge.invoke(REFRESH_REPOSITORY, {"id": repo_id}))

    async def get_services(self, repository_id: int) -> list[Service]:
        result = await self.bridge.invoke(GET_SERVICES, {"repositoryId": repository_id})
        return [Service.from_dict(row) for row in safe_list(result) if isinstance(row, dict)]

    async def get_endpoints(self, service_id: int) -> list[Endpoint]:
        result = await self.bridge.invoke(GET_ENDPOINTS, {"serviceId": service_id})
        return [Endpoint.from_dict(row) for row in safe_list(result) if isinstance(row, dict)]

    async def execute_request(
        self,
        *,
        service_id: str,
        port: int,
        endpoint: str,
        method: str,
        environment: str = "LOCAL",
        headers: dict[str, str] | None = None,
        body: str = "",
        endpoint_id: int | None = None,
    ) -> dict[str, Any]:
        if environment not in ENVIRONMENTS:
            raise ValueError(f"unknown environment: {environment}")
        payload: dict[str, Any] = {
            "serviceId": service_id,
            "port": port,
            "endpoint": endpoint,
            "method": method.upper(),
            "environment": environment,
            "headers": dict(headers or {}),
            "body": body,
        }
        if endpoint_id is not None:
            payload["endpointId"] = endpoint_id
        return safe_dict(await self.bridge.invoke(EXECUTE_REQUEST, payload))

    async def execute_config(
        self,
        config: EditableConfig,
        endpoint: Endpoint,
        service: Service,
        *,
        environment: str = "LOCAL",
        base_headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Send an edited request; path parameter problems raise before the worker is called."""
        if environment not in ENVIRONMENTS:
            raise ValueError(f"unknown environment: {environment}")
        payload = build_execute_payload(config, endpoint, service, environment, base_headers)
        return safe_dict(await self.bridge.invoke(EXECUTE_REQUEST, payload))

    async def get_request_history(self, endpoint_id: int, limit: int = 50) -> list[dict[str, Any]]:
        result = await self.bridge.invoke(GET_REQUEST_HISTORY, {"endpointId": endpoint_id, "limit": limit})
        return [safe_dict(row) for row in safe_list(result) if isinstance(row, dict)]

    async def scan_directory(self, path: str) -> dict[str, Any]:
        return safe_dict(await self.bridge.invoke(SCAN_DIRECTORY, {"path": path}))

    async def check_path(self, path: str) -> dict[str, Any]:
        return safe_dict(await self.bridge.invoke(CHECK_PATH, {"path": path}))

    async def save_saved_request(self, request: SavedRequest) -> SavedRequest:
        payload = request.to_payload()
        payload.pop("id", None)
        return SavedRequest.from_dict(await self.bridge.invoke(SAVE_SAVED_REQUEST, payload))

    async def get_saved_requests(self, endpoint_id: int) -> list[SavedRequest]:
        result = await self.bridge.invoke(GET_SAVED_REQUESTS, {"endpointId": endpoint_id})
        return [SavedRequest.from_dict(row) for row in safe_list(result) if isinstance(row, dict)]

    async def update_saved_request(self, request: SavedRequest) -> SavedRequest:
        return SavedRequest.from_dict(await self.bridge.invoke(UPDATE_SAVED_REQUEST, request.to_payload()))

    async def delete_saved_request(self, request_id: int) -> None:
        await self.bridge.invoke(DELETE_SAVED_REQUEST, {"id": request_id})
