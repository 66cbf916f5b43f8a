"""Sidebar tree models and filtering."""

from postwhale.tree.filter import (
    Favorites,
    FilteredTree,
    FilterState,
    ItemKind,
    ViewMode,
    build_indices,
    filter_tree,
    is_item_visible,
)
from postwhale.tree.models import Endpoint, Repository, SavedRequest, Service

__all__ = [
    "Endpoint",
    "Favorites",
    "FilteredTree",
    "FilterState",
    "ItemKind",
    "Repository",
    "SavedRequest",
    "Service",
    "ViewMode",
    "build_indices",
    "filter_tree",
    "is_item_visible",
]
