"""Client-side request state: lifecycle, dirty tracking and persistence."""

from postwhale.state.dirty import (
    ConfigSnapshot,
    EditableConfig,
    KeyValueRow,
    extract_snapshot,
    is_dirty,
    mark_saved,
    undo,
)
from postwhale.state.error_history import ErrorEntry, ErrorHistory
from postwhale.state.lifecycle import LifecycleEntry, RequestLifecycleStore, RequestStatus, SendTicket
from postwhale.state.request_builder import PathParamsError, build_execute_payload, resolve_path
from postwhale.state.storage import (
    ConfigStorage,
    FavoritesStore,
    JsonFileStore,
    MemoryStore,
    create_anonymous_config,
    create_config_from_saved_request,
)
from postwhale.state.view_state import ViewStateStore

__all__ = [
    "ConfigSnapshot",
    "ConfigStorage",
    "EditableConfig",
    "ErrorEntry",
    "ErrorHistory",
    "FavoritesStore",
    "JsonFileStore",
    "KeyValueRow",
    "LifecycleEntry",
    "MemoryStore",
    "PathParamsError",
    "RequestLifecycleStore",
    "RequestStatus",
    "SendTicket",
    "ViewStateStore",
    "build_execute_payload",
    "create_anonymous_config",
    "create_config_from_saved_request",
    "extract_snapshot",
    "is_dirty",
    "mark_saved",
    "resolve_path",
    "undo",
]
