"""
Per-target request lifecycle: the latest send's state for each logical UI target.

State machine:
- IDLE -> SENDING on begin()
- SENDING -> SUCCEEDED | FAILED | CANCELLED
- SUCCEEDED | FAILED | CANCELLED -> SENDING on the next begin()

Every begin() hands out a ticket carrying a fresh generation number. A completion
is applied only while its ticket's generation is still the entry's current one and
the entry is still SENDING, so a superseded or cancelled call that resolves late
cannot overwrite a newer send.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from loguru import logger

from postwhale.state.error_history import ErrorHistory
from postwhale.utils.exceptions import format_error


class RequestStatus(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class LifecycleEntry:
    request: Any = None
    response: Any = None
    error: str | None = None
    status: RequestStatus = RequestStatus.IDLE
    is_loading: bool = False
    generation: int = 0


@dataclass(frozen=True)
class SendTicket:
    target_id: Hashable
    generation: int


Listener = Callable[[Hashable, LifecycleEntry], None]


class RequestLifecycleStore:
    """Holds one LifecycleEntry per target id; only the latest send is retained."""

    def __init__(self, error_history: ErrorHistory | None = None):
        self.error_history = error_history
        self._entries: dict[Hashable, LifecycleEntry] = {}
        self._generations = itertools.count(1)
        self._listeners: list[Listener] = []

    def get(self, target_id: Hashable) -> LifecycleEntry:
        """Return a copy of the target's entry (IDLE if it never sent)."""
        entry = self._entries.get(target_id)
        return replace(entry) if entry is not None else LifecycleEntry()

    def is_loading(self, target_id: Hashable) -> bool:
        entry = self._entries.get(target_id)
        return bool(entry and entry.is_loading)

    def targets(self) -> list[Hashable]:
        return list(self._entries)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def begin(self, target_id: Hashable, request: Any) -> SendTicket:
        """Start a new send, superseding whatever the target held before."""
        generation = next(self._generations)
        previous = self._entries.get(target_id)
        if previous is not None and previous.is_loading:
            logger.debug("Send for {} supersedes in-flight generation {}", target_id, previous.generation)
        self._entries[target_id] = LifecycleEntry(
            request=request,
            status=RequestStatus.SENDING,
            is_loading=True,
            generation=generation,
        )
        self._notify(target_id)
        return SendTicket(target_id=target_id, generation=generation)

    def succeed(self, ticket: SendTicket, response: Any) -> bool:
        entry = self._current(ticket)
        if entry is None:
            return False
        entry.response = response
        entry.error = None
        entry.status = RequestStatus.SUCCEEDED
        entry.is_loading = False
        self._notify(ticket.target_id)
        return True

    def fail(self, ticket: SendTicket, message: str) -> bool:
        entry = self._current(ticket)
        if entry is None:
            return False
        entry.error = message
        entry.status = RequestStatus.FAILED
        entry.is_loading = False
        self._notify(ticket.target_id)
        return True

    def cancel(self, target_id: Hashable) -> bool:
        """Stop treating the target's send as in flight. Request/response are kept."""
        entry = self._entries.get(target_id)
        if entry is None or entry.status is not RequestStatus.SENDING:
            return False
        entry.status = RequestStatus.CANCELLED
        entry.is_loading = False
        self._notify(target_id)
        return True

    def clear(self, target_id: Hashable) -> None:
        if self._entries.pop(target_id, None) is not None:
            self._notify(target_id)

    async def send(
        self,
        target_id: Hashable,
        request: Any,
        call: Callable[[], Awaitable[Any]],
    ) -> LifecycleEntry:
        """Run ``call`` as the target's current send and record its outcome. Never retries."""
        ticket = self.begin(target_id, request)
        try:
            response = await call()
        except asyncio.CancelledError:
            if self._current(ticket) is not None:
                self.cancel(target_id)
            raise
        except Exception as exc:
            message = format_error(exc)
            if self.fail(ticket, message) and self.error_history is not None:
                self.error_history.add(message)
            logger.warning("Request for {} failed: {}", target_id, message)
        else:
            self.succeed(ticket, response)
        return self.get(target_id)

    def _current(self, ticket: SendTicket) -> LifecycleEntry | None:
        entry = self._entries.get(ticket.target_id)
        if entry is None or entry.generation != ticket.generation or entry.status is not RequestStatus.SENDING:
            logger.debug("Ignoring stale completion for {} (generation {})", ticket.target_id, ticket.generation)
            return None
        return entry

    def _notify(self, target_id: Hashable) -> None:
        snapshot = self.get(target_id)
        for listener in list(self._listeners):
            try:
                listener(target_id, snapshot)
            except Exception as exc:
                logger.error("Lifecycle listener failed for {}: {}", target_id, exc)
