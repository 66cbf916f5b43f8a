"""Call id -> pending future registry for in-flight worker calls."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any

from loguru import logger

from postwhale.bridge.errors import DuplicateCallIdError, RequestTimeoutError


@dataclass
class PendingCall:
    call_id: int
    action: str
    future: asyncio.Future[Any]
    timeout_seconds: float
    deadline: float
    timer: asyncio.TimerHandle | None = None


class CorrelationTable:
    """
    Tracks outstanding calls and settles each exactly once.

    Every settlement path (response, timer expiry, stream failure) pops the entry
    before touching the future, so whichever path arrives first wins and the rest
    observe absence. All methods must be called from the owning event loop.

    Call ids are expected to be issued in increasing order; an id at or below the
    highest one ever registered is rejected so a settled id is never reinserted.
    """

    def __init__(self) -> None:
        self._pending: dict[int, PendingCall] = {}
        self._high_water: int | None = None

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._pending

    def pending_ids(self) -> list[int]:
        return sorted(self._pending)

    def get(self, call_id: int) -> PendingCall | None:
        return self._pending.get(call_id)

    def register(
        self,
        call_id: int,
        future: asyncio.Future[Any],
        timeout_seconds: float,
        *,
        action: str = "",
    ) -> PendingCall:
        """Add a pending call and arm its deadline timer."""
        if call_id in self._pending or (self._high_water is not None and call_id <= self._high_water):
            logger.error("Refusing duplicate call id {} ({})", call_id, action)
            raise DuplicateCallIdError(call_id)
        self._high_water = call_id
        loop = future.get_loop()
        entry = PendingCall(
            call_id=call_id,
            action=action,
            future=future,
            timeout_seconds=timeout_seconds,
            deadline=time.monotonic() + timeout_seconds,
        )
        entry.timer = loop.call_later(timeout_seconds, self.expire, call_id)
        self._pending[call_id] = entry
        return entry

    def resolve(self, call_id: int, outcome: Any) -> bool:
        """
        Settle a pending call. An exception instance rejects, anything else resolves.

        Returns False when the id is unknown or already settled.
        """
        entry = self._pending.pop(call_id, None)
        if entry is None:
            logger.debug("No pending call for id {} (late or unknown response)", call_id)
            return False
        if entry.timer is not None:
            entry.timer.cancel()
        if entry.future.done():
            # Awaiting task went away; nothing left to settle.
            return False
        if isinstance(outcome, BaseException):
            entry.future.set_exception(outcome)
        else:
            entry.future.set_result(outcome)
        return True

    def expire(self, call_id: int) -> bool:
        """Timer callback: settle the call with a timeout if it is still pending."""
        entry = self._pending.get(call_id)
        if entry is None:
            return False
        logger.warning("Worker call {} ({}) timed out after {}s", call_id, entry.action, entry.timeout_seconds)
        return self.resolve(call_id, RequestTimeoutError(entry.action, entry.timeout_seconds, call_id))

    def discard(self, call_id: int) -> bool:
        """Remove an entry without settling it (its awaiter was cancelled)."""
        entry = self._pending.pop(call_id, None)
        if entry is None:
            return False
        if entry.timer is not None:
            entry.timer.cancel()
        return True

    def drain_all(self, error: BaseException) -> int:
        """Reject every pending call with ``error`` and empty the table."""
        drained = 0
        for call_id in list(self._pending):
            if self.resolve(call_id, error):
                drained += 1
        if drained:
            logger.warning("Rejected {} pending worker call(s): {}", drained, error)
        return drained
