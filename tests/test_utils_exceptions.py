"""Tests for postwhale.utils.exceptions and the bridge error taxonomy."""

from __future__ import annotations

import asyncio
import json

from postwhale.bridge.errors import (
    BridgeError,
    FrameDecodeError,
    RemoteError,
    RequestTimeoutError,
    WorkerStartError,
    WorkerTerminatedError,
    WorkerWriteFailureError,
)
from postwhale.utils.exceptions import (
    ErrorCategory,
    PostwhaleError,
    StorageError,
    ValidationError,
    classify_exception,
    format_error,
    sanitize_error_message,
)


class TestExceptionClasses:
    def test_postwhale_error_to_dict(self) -> None:
        exc = PostwhaleError("test message", code="TEST_CODE")
        assert exc.to_dict() == {
            "error": "TEST_CODE",
            "message": "test message",
            "category": ErrorCategory.FATAL.value,
            "details": {},
        }
        assert str(exc) == "[TEST_CODE] test message"

    def test_validation_error_with_field(self) -> None:
        exc = ValidationError("Invalid input", field="port")
        assert exc.code == "VALIDATION_ERROR"
        assert exc.category == ErrorCategory.VALIDATION
        assert exc.details == {"field": "port"}

    def test_storage_error(self) -> None:
        exc = StorageError("disk full", key="postwhale_view")
        assert exc.category == ErrorCategory.RECOVERABLE
        assert exc.details == {"key": "postwhale_view"}


class TestBridgeErrors:
    def test_all_bridge_errors_share_base(self) -> None:
        for exc in (
            FrameDecodeError("bad"),
            RequestTimeoutError("getServices", 30.0),
            WorkerWriteFailureError("getServices", "broken pipe"),
            WorkerTerminatedError(1),
            WorkerStartError(["postwhale-backend"], "not found"),
            RemoteError("nope"),
        ):
            assert isinstance(exc, BridgeError)
            assert isinstance(exc, PostwhaleError)

    def test_timeout_message(self) -> None:
        exc = RequestTimeoutError("executeRequest", 30.0, call_id=4)
        assert exc.message == "Request 'executeRequest' timed out after 30s"
        assert exc.category == ErrorCategory.TIMEOUT

    def test_terminated_message_includes_exit_code_and_reason(self) -> None:
        assert WorkerTerminatedError().message == "Worker process terminated"
        exc = WorkerTerminatedError(2, "stdout closed")
        assert exc.message == "Worker process terminated (exit code 2): stdout closed"
        assert exc.details["returncode"] == 2

    def test_remote_error_is_verbatim(self) -> None:
        exc = RemoteError("service fusion has no port configured", action="executeRequest")
        assert exc.message == "service fusion has no port configured"
        assert exc.category == ErrorCategory.REMOTE

    def test_frame_decode_error_truncates_line(self) -> None:
        exc = FrameDecodeError("invalid JSON", "x" * 500)
        assert len(exc.details["line"]) == 200


class TestSanitize:
    def test_redacts_tokens(self) -> None:
        msg = sanitize_error_message("request failed: token=abc123 and Bearer xyz.abc")
        assert "abc123" not in msg
        assert "xyz.abc" not in msg
        assert "[REDACTED]" in msg

    def test_plain_message_untouched(self) -> None:
        assert sanitize_error_message("connection refused") == "connection refused"

    def test_redacts_auth_headers_and_query_tokens(self) -> None:
        msg = sanitize_error_message("GET /orders?access_token=q1w2&page=2 Authorization: Basic dXNlcjpwYXNz")
        assert "q1w2" not in msg
        assert "dXNlcjpwYXNz" not in msg
        assert "page=2" in msg


class TestClassify:
    def test_postwhale_error_keeps_code(self) -> None:
        assert classify_exception(RemoteError("x")) == ("REMOTE_ERROR", ErrorCategory.REMOTE)

    def test_builtin_mappings(self) -> None:
        assert classify_exception(FileNotFoundError("x"))[0] == "FILE_NOT_FOUND"
        assert classify_exception(asyncio.TimeoutError())[0] == "TIMEOUT"
        assert classify_exception(BrokenPipeError())[0] == "CONNECTION_ERROR"
        assert classify_exception(json.JSONDecodeError("bad", "{", 0))[0] == "JSON_PARSE_ERROR"
        assert classify_exception(KeyError("k"))[1] == ErrorCategory.VALIDATION

    def test_message_heuristics(self) -> None:
        assert classify_exception(RuntimeError("operation timed out"))[0] == "TIMEOUT"
        assert classify_exception(RuntimeError("connection reset"))[0] == "CONNECTION_ERROR"
        assert classify_exception(RuntimeError("weird"))[0] == "INTERNAL_ERROR"


class TestFormatError:
    def test_postwhale_error_uses_message(self) -> None:
        assert format_error(RemoteError("boom")) == "boom"

    def test_include_code(self) -> None:
        text = format_error(RequestTimeoutError("echo", 1.0), include_code=True)
        assert text == "REQUEST_TIMEOUT (timeout): Request 'echo' timed out after 1s"

    def test_foreign_exception_is_sanitized(self) -> None:
        assert "secret1" not in format_error(RuntimeError("password=secret1"))

    def test_empty_message_falls_back_to_class_name(self) -> None:
        assert format_error(RuntimeError()) == "RuntimeError"
