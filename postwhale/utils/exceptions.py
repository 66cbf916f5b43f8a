"""
Exception hierarchy and error handling utilities for postwhale.

Provides:
- Base exception class with error codes and categories
- Safe error message formatting (no secrets in logs or banners)
- Exception classification for arbitrary errors
"""

from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    RECOVERABLE = "recoverable"
    FATAL = "fatal"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    REMOTE = "remote"


class PostwhaleError(Exception):
    """Base exception for all postwhale errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ValidationError(PostwhaleError):
    """Input validation error."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", category=ErrorCategory.VALIDATION, details=details)


class StorageError(PostwhaleError):
    """Persistence read/write failure."""

    def __init__(self, message: str, key: str | None = None):
        details = {"key": key} if key else {}
        super().__init__(message, code="STORAGE_ERROR", category=ErrorCategory.RECOVERABLE, details=details)


# Worker errors often echo the outgoing HTTP request, so headers and query strings
# are the usual leak points.
_SECRET_PATTERNS = (
    re.compile(r"\b(authorization|cookie|set-cookie|x-api-key)\s*:\s*[^\r\n,;]+", re.IGNORECASE),
    re.compile(r"\bbearer\s+[\w\-.~+/]+=*", re.IGNORECASE),
    re.compile(r"\b(api[_-]?key|access[_-]?token|token|secret|password)\s*[=:]\s*['\"]?[^\s&'\",]+['\"]?", re.IGNORECASE),
    re.compile(r"\bsk-[A-Za-z0-9]{20,}"),
    re.compile(r"\b[A-Za-z0-9]{32,}\b"),
)


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Redact credentials, auth headers and long opaque tokens from ``message``."""
    for pattern in _SECRET_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


# First match wins, so subclasses precede their bases (JSONDecodeError is a ValueError,
# BrokenPipeError a ConnectionError).
_BUILTIN_CLASSES: tuple[tuple[tuple[type[BaseException], ...], str, ErrorCategory], ...] = (
    ((FileNotFoundError,), "FILE_NOT_FOUND", ErrorCategory.NOT_FOUND),
    ((asyncio.TimeoutError, TimeoutError), "TIMEOUT", ErrorCategory.TIMEOUT),
    ((BrokenPipeError, ConnectionError, EOFError), "CONNECTION_ERROR", ErrorCategory.CONNECTION),
    ((json.JSONDecodeError,), "JSON_PARSE_ERROR", ErrorCategory.VALIDATION),
    ((ValueError, KeyError, TypeError), "INVALID_VALUE", ErrorCategory.VALIDATION),
)

_MESSAGE_HINTS = (
    (("timed out", "timeout", "deadline exceeded"), "TIMEOUT", ErrorCategory.TIMEOUT),
    (("connection", "broken pipe", "econnrefused"), "CONNECTION_ERROR", ErrorCategory.CONNECTION),
)


def classify_exception(exc: BaseException) -> tuple[str, ErrorCategory]:
    """Map any exception to an ``(error_code, category)`` pair."""
    if isinstance(exc, PostwhaleError):
        return exc.code, exc.category
    for types, code, category in _BUILTIN_CLASSES:
        if isinstance(exc, types):
            return code, category
    text = str(exc).lower()
    for hints, code, category in _MESSAGE_HINTS:
        if any(hint in text for hint in hints):
            return code, category
    return "INTERNAL_ERROR", ErrorCategory.FATAL


def format_error(exc: BaseException, include_code: bool = False) -> str:
    """Short message for banners and the error history.

    PostwhaleError messages are built by this package and shown as-is; anything else
    is sanitized first. ``include_code`` prefixes the classification.
    """
    if isinstance(exc, PostwhaleError):
        message = exc.message
    else:
        message = sanitize_error_message(str(exc)) or type(exc).__name__
    if not include_code:
        return message
    code, category = classify_exception(exc)
    return f"{code} ({category.value}): {message}"
