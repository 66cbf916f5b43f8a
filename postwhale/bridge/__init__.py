"""Request/response bridge between the UI process and the backend worker."""

from .client import WorkerBridge, configure_bridge, get_bridge, reset_bridge
from .codec import FrameCodec, decode_call_line, decode_response_line, encode, encode_line
from .correlation import CorrelationTable, PendingCall
from .errors import (
    BridgeError,
    DuplicateCallIdError,
    FrameDecodeError,
    RemoteError,
    RequestTimeoutError,
    WorkerStartError,
    WorkerTerminatedError,
    WorkerWriteFailureError,
)
from .protocol import CallEnvelope, ResponseEnvelope

__all__ = [
    "BridgeError",
    "CallEnvelope",
    "CorrelationTable",
    "DuplicateCallIdError",
    "FrameCodec",
    "FrameDecodeError",
    "PendingCall",
    "RemoteError",
    "RequestTimeoutError",
    "ResponseEnvelope",
    "WorkerBridge",
    "WorkerStartError",
    "WorkerTerminatedError",
    "WorkerWriteFailureError",
    "configure_bridge",
    "decode_call_line",
    "decode_response_line",
    "encode",
    "encode_line",
    "get_bridge",
    "reset_bridge",
]
