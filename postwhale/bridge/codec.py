"""Newline-delimited JSON framing for worker stdio."""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from postwhale.bridge.errors import FrameDecodeError
from postwhale.bridge.protocol import (
    FIELD_ACTION,
    FIELD_DATA,
    FIELD_REQUEST_ID,
    CallEnvelope,
    ResponseEnvelope,
    response_from_wire,
)

TERMINATOR = b"\n"
DEFAULT_MAX_FRAME_BYTES = 16 * 1024 * 1024


def encode_line(payload: dict[str, Any]) -> bytes:
    """Encode one JSON object as a newline-terminated frame."""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8") + TERMINATOR


def encode(envelope: CallEnvelope | ResponseEnvelope) -> bytes:
    """Encode an envelope into a self-delimited frame."""
    return encode_line(envelope.to_wire())


def _parse_object(line: bytes | str) -> tuple[dict[str, Any], str]:
    text = line.decode("utf-8", errors="replace") if isinstance(line, bytes) else line
    text = text.strip()
    try:
        row = json.loads(text)
    except json.JSONDecodeError as exc:
        raise FrameDecodeError(f"invalid JSON ({exc.msg})", text) from exc
    if not isinstance(row, dict):
        raise FrameDecodeError("frame is not a JSON object", text)
    return row, text


def _parse_call_id(row: dict[str, Any], text: str) -> int:
    raw = row.get(FIELD_REQUEST_ID)
    if isinstance(raw, bool) or raw is None:
        raise FrameDecodeError("missing requestId", text)
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    if not isinstance(raw, int):
        raise FrameDecodeError(f"requestId must be an integer, got {type(raw).__name__}", text)
    return raw


def decode_response_line(line: bytes | str) -> ResponseEnvelope:
    """Decode one response frame (without terminator). Raises FrameDecodeError."""
    row, text = _parse_object(line)
    return response_from_wire(row, _parse_call_id(row, text))


def decode_call_line(line: bytes | str) -> CallEnvelope:
    """Decode one call frame, as the worker side sees it. Raises FrameDecodeError."""
    row, text = _parse_object(line)
    action = row.get(FIELD_ACTION)
    if not isinstance(action, str) or not action:
        raise FrameDecodeError("missing action", text)
    return CallEnvelope(action=action, payload=row.get(FIELD_DATA), call_id=_parse_call_id(row, text))


class FrameCodec:
    """Incremental decoder for a possibly fragmented response byte stream."""

    def __init__(self, max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES):
        self.max_frame_bytes = max_frame_bytes
        self._buffer = bytearray()
        self._discarding = False
        self.dropped = 0

    @property
    def pending_bytes(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> list[ResponseEnvelope]:
        """Consume newly arrived bytes and return every complete, valid envelope."""
        if chunk:
            self._buffer.extend(chunk)
        envelopes: list[ResponseEnvelope] = []
        while True:
            idx = self._buffer.find(TERMINATOR)
            if idx < 0:
                break
            line = bytes(self._buffer[:idx])
            del self._buffer[: idx + 1]
            if self._discarding:
                # Tail of an oversized frame; resync after this terminator.
                self._discarding = False
                continue
            if not line.strip():
                continue
            try:
                envelopes.append(decode_response_line(line))
            except FrameDecodeError as exc:
                self.dropped += 1
                logger.warning("Dropping worker frame: {} | {}", exc.details.get("reason"), exc.details.get("line"))
        if len(self._buffer) > self.max_frame_bytes:
            logger.warning(
                "Worker frame exceeds {} bytes without terminator; discarding until next newline",
                self.max_frame_bytes,
            )
            self._buffer.clear()
            self._discarding = True
            self.dropped += 1
        return envelopes

    def reset(self) -> None:
        self._buffer.clear()
        self._discarding = False
