"""Persisted sidebar view mode and method filters."""

from __future__ import annotations

from postwhale.state.storage import KeyValueStore, read_json, write_json
from postwhale.tree.filter import FilterState, ViewMode
from postwhale.utils.helpers import safe_dict

VIEW_KEY = "postwhale_view"
FILTERS_KEY = "postwhale_filters"


class ViewStateStore:
    def __init__(self, store: KeyValueStore):
        self.store = store

    def load_view(self) -> ViewMode:
        raw = read_json(self.store, VIEW_KEY, ViewMode.ALL.value)
        try:
            return ViewMode(raw)
        except ValueError:
            return ViewMode.ALL

    def save_view(self, mode: ViewMode | str) -> bool:
        return write_json(self.store, VIEW_KEY, ViewMode(mode).value)

    def load_filters(self) -> FilterState:
        raw = safe_dict(read_json(self.store, FILTERS_KEY, {}))
        methods = raw.get("methods")
        if not isinstance(methods, list):
            return FilterState()
        return FilterState(methods=[str(m).upper() for m in methods if isinstance(m, str)])

    def save_filters(self, filters: FilterState) -> bool:
        return write_json(self.store, FILTERS_KEY, {"methods": list(filters.methods)})

    def toggle_method(self, method: str) -> FilterState:
        filters = self.load_filters()
        method = method.upper()
        if method in filters.methods:
            filters.methods.remove(method)
        else:
            filters.methods.append(method)
        self.save_filters(filters)
        return filters

    def clear_filters(self) -> FilterState:
        filters = FilterState()
        self.save_filters(filters)
        return filters
