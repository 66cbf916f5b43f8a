"""Bounded history of user-visible error messages."""

from __future__ import annotations

import itertools
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime

MAX_ERRORS = 100


@dataclass(frozen=True)
class ErrorEntry:
    id: str
    message: str
    timestamp: datetime


class ErrorHistory:
    """Keeps the most recent ``max_errors`` messages, oldest first."""

    def __init__(self, max_errors: int = MAX_ERRORS):
        self._entries: deque[ErrorEntry] = deque(maxlen=max_errors)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, message: str) -> ErrorEntry:
        with self._lock:
            entry = ErrorEntry(id=str(next(self._ids)), message=message, timestamp=datetime.now())
            self._entries.append(entry)
            return entry

    def remove(self, entry_id: str) -> bool:
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    self._entries.remove(entry)
                    return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def entries(self) -> list[ErrorEntry]:
        with self._lock:
            return list(self._entries)

    def latest(self) -> ErrorEntry | None:
        with self._lock:
            return self._entries[-1] if self._entries else None
