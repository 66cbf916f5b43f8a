"""
Sidebar tree filtering: which repositories, services and endpoints are visible.

Pipeline for one call:
- build parent -> children indices (O(n))
- base match set from the view mode (all / favorites / method filters)
- optional search match set, intersected level by level with the base set
- bottom-up propagation: an entity that was only pulled in as an ancestor stays
  visible only while it still has a visible child

Everything is recomputed from the inputs; nothing is cached between calls.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from postwhale.tree.models import Endpoint, Repository, Service


class ViewMode(str, Enum):
    ALL = "all"
    FAVORITES = "favorites"
    FILTERS = "filters"


class ItemKind(str, Enum):
    REPO = "repo"
    SERVICE = "service"
    ENDPOINT = "endpoint"


@dataclass
class FilterState:
    methods: list[str] = field(default_factory=list)


@dataclass
class Favorites:
    repos: set[int] = field(default_factory=set)
    services: set[int] = field(default_factory=set)
    endpoints: set[int] = field(default_factory=set)


@dataclass(frozen=True)
class TreeIndices:
    services_by_repo_id: dict[int, list[Service]]
    endpoints_by_service_id: dict[int, list[Endpoint]]
    service_by_id: dict[int, Service]
    endpoint_by_id: dict[int, Endpoint]


@dataclass
class _Matches:
    """Ids matched per level. ``direct`` ids matched on their own, the rest are ancestors."""

    repos: set[int] = field(default_factory=set)
    services: set[int] = field(default_factory=set)
    endpoints: set[int] = field(default_factory=set)
    direct_repos: set[int] = field(default_factory=set)
    direct_services: set[int] = field(default_factory=set)

    def add_repo(self, repo_id: int, direct: bool) -> None:
        self.repos.add(repo_id)
        if direct:
            self.direct_repos.add(repo_id)

    def add_service(self, service_id: int, direct: bool) -> None:
        self.services.add(service_id)
        if direct:
            self.direct_services.add(service_id)


@dataclass
class FilteredTree:
    repositories: list[Repository]
    repository_ids: set[int]
    service_ids: set[int]
    endpoint_ids: set[int]
    expanded_repos: set[int]
    expanded_services: set[int]


def build_indices(services: Iterable[Service], endpoints: Iterable[Endpoint]) -> TreeIndices:
    """Index services by repo and endpoints by service, plus id lookups."""
    services_by_repo_id: dict[int, list[Service]] = {}
    endpoints_by_service_id: dict[int, list[Endpoint]] = {}
    service_by_id: dict[int, Service] = {}
    endpoint_by_id: dict[int, Endpoint] = {}
    for service in services:
        services_by_repo_id.setdefault(service.repo_id, []).append(service)
        service_by_id[service.id] = service
    for endpoint in endpoints:
        endpoints_by_service_id.setdefault(endpoint.service_id, []).append(endpoint)
        endpoint_by_id[endpoint.id] = endpoint
    return TreeIndices(services_by_repo_id, endpoints_by_service_id, service_by_id, endpoint_by_id)


def _match_all(repositories: Sequence[Repository], indices: TreeIndices) -> _Matches:
    repo_ids = {r.id for r in repositories}
    service_ids = set(indices.service_by_id)
    return _Matches(
        repos=set(repo_ids),
        services=set(service_ids),
        endpoints=set(indices.endpoint_by_id),
        direct_repos=set(repo_ids),
        direct_services=set(service_ids),
    )


def _add_endpoint_with_ancestors(matches: _Matches, endpoint: Endpoint, indices: TreeIndices) -> None:
    matches.endpoints.add(endpoint.id)
    # Stale references (deleted service) only drop the ancestors.
    service = indices.service_by_id.get(endpoint.service_id)
    if service is not None:
        matches.add_service(service.id, direct=False)
        matches.add_repo(service.repo_id, direct=False)


def _match_favorites(indices: TreeIndices, favorites: Favorites) -> _Matches:
    matches = _Matches()
    for repo_id in favorites.repos:
        matches.add_repo(repo_id, direct=True)
        for service in indices.services_by_repo_id.get(repo_id, []):
            matches.add_service(service.id, direct=True)
            matches.endpoints.update(e.id for e in indices.endpoints_by_service_id.get(service.id, []))
    for service_id in favorites.services:
        service = indices.service_by_id.get(service_id)
        if service is None:
            continue
        matches.add_service(service_id, direct=True)
        matches.add_repo(service.repo_id, direct=False)
        matches.endpoints.update(e.id for e in indices.endpoints_by_service_id.get(service_id, []))
    for endpoint_id in favorites.endpoints:
        endpoint = indices.endpoint_by_id.get(endpoint_id)
        if endpoint is not None:
            _add_endpoint_with_ancestors(matches, endpoint, indices)
    return matches


def _match_methods(indices: TreeIndices, filter_state: FilterState) -> _Matches:
    matches = _Matches()
    methods = {m.upper() for m in filter_state.methods}
    if not methods:
        return matches
    for endpoint in indices.endpoint_by_id.values():
        if endpoint.method.upper() in methods:
            _add_endpoint_with_ancestors(matches, endpoint, indices)
    return matches


def _match_search(repositories: Sequence[Repository], indices: TreeIndices, query: str) -> _Matches:
    matches = _Matches()
    for repo in repositories:
        if query in repo.name.lower():
            matches.add_repo(repo.id, direct=True)
    for service in indices.service_by_id.values():
        if query in service.name.lower():
            matches.add_service(service.id, direct=True)
            matches.add_repo(service.repo_id, direct=False)
    for endpoint in indices.endpoint_by_id.values():
        if query in endpoint.path.lower() or query in endpoint.method.lower():
            _add_endpoint_with_ancestors(matches, endpoint, indices)
    return matches


def _intersect(base: _Matches, other: _Matches) -> _Matches:
    return _Matches(
        repos=base.repos & other.repos,
        services=base.services & other.services,
        endpoints=base.endpoints & other.endpoints,
        direct_repos=base.direct_repos & other.direct_repos,
        direct_services=base.direct_services & other.direct_services,
    )


def filter_tree(
    repositories: Sequence[Repository],
    services: Sequence[Service],
    endpoints: Sequence[Endpoint],
    mode: ViewMode | str,
    search_query: str,
    filter_state: FilterState,
    favorites: Favorites,
) -> FilteredTree:
    """Compute visibility and auto-expand sets for the sidebar tree."""
    mode = ViewMode(mode)
    indices = build_indices(services, endpoints)

    if mode is ViewMode.FAVORITES:
        matches = _match_favorites(indices, favorites)
    elif mode is ViewMode.FILTERS:
        matches = _match_methods(indices, filter_state)
    else:
        matches = _match_all(repositories, indices)

    query = search_query.strip().lower()
    if query:
        matches = _intersect(matches, _match_search(repositories, indices, query))

    endpoint_ids = set(matches.endpoints)

    service_ids: set[int] = set()
    expanded_services: set[int] = set()
    for service_id in matches.services:
        children = indices.endpoints_by_service_id.get(service_id, [])
        has_visible_child = any(e.id in endpoint_ids for e in children)
        if has_visible_child:
            expanded_services.add(service_id)
        if has_visible_child or service_id in matches.direct_services:
            service_ids.add(service_id)

    known_repo_ids = {r.id for r in repositories}
    repository_ids: set[int] = set()
    expanded_repos: set[int] = set()
    for repo_id in matches.repos & known_repo_ids:
        children = indices.services_by_repo_id.get(repo_id, [])
        has_visible_child = any(s.id in service_ids for s in children)
        if has_visible_child:
            expanded_repos.add(repo_id)
        if has_visible_child or repo_id in matches.direct_repos:
            repository_ids.add(repo_id)

    return FilteredTree(
        repositories=[r for r in repositories if r.id in repository_ids],
        repository_ids=repository_ids,
        service_ids=service_ids,
        endpoint_ids=endpoint_ids,
        expanded_repos=expanded_repos,
        expanded_services=expanded_services,
    )


def is_item_visible(kind: ItemKind | str, item_id: int, tree: FilteredTree) -> bool:
    """True if the item of the given kind is in the tree's visibility sets."""
    kind = ItemKind(kind)
    if kind is ItemKind.REPO:
        return item_id in tree.repository_ids
    if kind is ItemKind.SERVICE:
        return item_id in tree.service_ids
    return item_id in tree.endpoint_ids
