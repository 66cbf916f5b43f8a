"""Envelope models for the UI <-> worker stdio protocol."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Wire field names.
FIELD_ACTION = "action"
FIELD_DATA = "data"
FIELD_REQUEST_ID = "requestId"
FIELD_SUCCESS = "success"
FIELD_ERROR = "error"

_RESPONSE_META_FIELDS = frozenset({FIELD_REQUEST_ID, FIELD_SUCCESS, FIELD_ERROR})
DEFAULT_ERROR_MESSAGE = "worker request failed"


@dataclass(frozen=True, slots=True)
class CallEnvelope:
    """Outbound call frame."""

    action: str
    payload: Any
    call_id: int

    def to_wire(self) -> dict[str, Any]:
        return {FIELD_ACTION: self.action, FIELD_DATA: self.payload, FIELD_REQUEST_ID: self.call_id}


@dataclass(frozen=True, slots=True)
class ResponseEnvelope:
    """Inbound response frame. ``error_message`` set means a remote failure."""

    call_id: int
    result: Any = None
    error_message: str | None = None

    def __post_init__(self) -> None:
        # Blank failure text is replaced the same way the decoder replaces it.
        if self.error_message is not None:
            object.__setattr__(self, "error_message", self.error_message.strip() or DEFAULT_ERROR_MESSAGE)

    @property
    def ok(self) -> bool:
        return self.error_message is None

    def to_wire(self) -> dict[str, Any]:
        if self.error_message is not None:
            return {FIELD_REQUEST_ID: self.call_id, FIELD_SUCCESS: False, FIELD_ERROR: self.error_message}
        return {FIELD_REQUEST_ID: self.call_id, FIELD_SUCCESS: True, FIELD_DATA: self.result}


def response_from_wire(row: dict[str, Any], call_id: int) -> ResponseEnvelope:
    """Build a ResponseEnvelope from a decoded JSON object whose id is already validated."""
    error = row.get(FIELD_ERROR)
    success = row.get(FIELD_SUCCESS)
    failed = success is False or (error not in (None, "") and success is not True)
    if failed:
        message = _error_text(error) or DEFAULT_ERROR_MESSAGE
        return ResponseEnvelope(call_id=call_id, error_message=message)
    if FIELD_DATA in row:
        return ResponseEnvelope(call_id=call_id, result=row[FIELD_DATA])
    rest = {k: v for k, v in row.items() if k not in _RESPONSE_META_FIELDS}
    return ResponseEnvelope(call_id=call_id, result=rest)


def _error_text(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or "").strip()
    if error is None:
        return ""
    return str(error).strip()
