"""Error taxonomy for the worker bridge."""

from __future__ import annotations

from typing import Any

from postwhale.utils.exceptions import ErrorCategory, PostwhaleError


class BridgeError(PostwhaleError):
    """Base class for every failure an ``invoke`` caller can observe."""

    def __init__(
        self,
        message: str,
        code: str = "BRIDGE_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, category=category, details=details)


class FrameDecodeError(BridgeError):
    """Inbound frame could not be decoded. Never reaches a caller."""

    def __init__(self, reason: str, line: str = ""):
        super().__init__(
            f"Malformed worker frame: {reason}",
            code="FRAME_DECODE_ERROR",
            category=ErrorCategory.VALIDATION,
            details={"reason": reason, "line": line[:200]},
        )


class DuplicateCallIdError(BridgeError):
    """A call id was registered twice."""

    def __init__(self, call_id: int):
        super().__init__(
            f"Call id {call_id} is already registered",
            code="DUPLICATE_CALL_ID",
            details={"call_id": call_id},
        )


class RequestTimeoutError(BridgeError):
    """No response arrived before the call's deadline."""

    def __init__(self, action: str, timeout_seconds: float, call_id: int | None = None):
        super().__init__(
            f"Request '{action}' timed out after {timeout_seconds:g}s",
            code="REQUEST_TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"action": action, "timeout_seconds": timeout_seconds, "call_id": call_id},
        )


class WorkerWriteFailureError(BridgeError):
    """Writing the call frame to the worker's stdin failed."""

    def __init__(self, action: str, reason: str):
        super().__init__(
            f"Failed to send '{action}' to worker: {reason}",
            code="WORKER_WRITE_FAILURE",
            category=ErrorCategory.CONNECTION,
            details={"action": action, "reason": reason},
        )


class WorkerTerminatedError(BridgeError):
    """The worker process exited or its stream failed while calls were pending."""

    def __init__(self, returncode: int | None = None, reason: str = ""):
        message = "Worker process terminated"
        if returncode is not None:
            message += f" (exit code {returncode})"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            code="WORKER_TERMINATED",
            category=ErrorCategory.CONNECTION,
            details={"returncode": returncode, "reason": reason},
        )


class WorkerStartError(BridgeError):
    """The worker executable could not be launched."""

    def __init__(self, command: list[str], reason: str):
        super().__init__(
            f"Failed to start worker {' '.join(command)!r}: {reason}",
            code="WORKER_START_FAILED",
            details={"command": list(command), "reason": reason},
        )


class RemoteError(BridgeError):
    """The worker reported a business-level failure; message passed verbatim."""

    def __init__(self, message: str, action: str = ""):
        super().__init__(
            message,
            code="REMOTE_ERROR",
            category=ErrorCategory.REMOTE,
            details={"action": action},
        )
