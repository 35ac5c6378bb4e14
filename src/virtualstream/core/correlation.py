"""Correlation of outgoing data requests with the peer's answers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from .messages import DataError, DataMessage, DataResponse
from .model import REQUEST_TIMEOUT
from .util import IdGenerator, random_id

log = logging.getLogger(__name__)


@runtime_checkable
class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


@runtime_checkable
class Scheduler(Protocol):
    """Anything with ``call_later`` and ``time``, e.g. an asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        ...

    def time(self) -> float:
        ...


@dataclass(slots=True)
class PendingRequest:
    id: str
    completion: asyncio.Future
    deadline: float
    timer: TimerHandle


class CorrelationTable:
    """Maps request ids to futures that are resolved exactly once.

    Each entry ends in one of two ways: `fulfill` (bytes, or None for a
    reported error) or expiry after `timeout` seconds (None). Whichever runs
    first removes the entry; the other finds nothing and does nothing.
    """

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        *,
        scheduler: Scheduler | None = None,
        id_generator: IdGenerator = random_id,
    ):
        self.timeout = timeout
        self._scheduler = scheduler
        self._new_id = id_generator
        self._pending: dict[str, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def _get_scheduler(self) -> Scheduler:
        if self._scheduler is not None:
            return self._scheduler
        return asyncio.get_running_loop()

    def open(self) -> tuple[str, asyncio.Future]:
        """Register a new pending request; return its id and the future to await."""
        request_id = self._new_id()
        while request_id in self._pending:
            request_id = self._new_id()

        scheduler = self._get_scheduler()
        future = asyncio.get_running_loop().create_future()
        timer = scheduler.call_later(self.timeout, self._expire, request_id)
        self._pending[request_id] = PendingRequest(
            request_id, future, scheduler.time() + self.timeout, timer
        )
        log.debug("Opened request %s (%d pending)", request_id, len(self._pending))
        return request_id, future

    def fulfill(self, request_id: str, value: Optional[bytes]) -> bool:
        """Resolve `request_id` with `value`; None means the peer reported an error.

        Returns False when the id is unknown (already fulfilled or expired).
        """
        entry = self._pending.pop(request_id, None)
        if entry is None:
            log.debug("Dropping answer for unknown request %s", request_id)
            return False
        entry.timer.cancel()
        if value is None:
            log.warning("Request %s failed upstream", request_id)
        self._resolve(entry, value)
        return True

    def dispatch(self, message: DataMessage) -> bool:
        """Route an inbound peer message to its pending request."""
        if isinstance(message, DataResponse):
            return self.fulfill(message.request_id, message.chunk)
        if isinstance(message, DataError):
            return self.fulfill(message.request_id, None)
        log.debug("Ignoring %s from peer", type(message).__name__)
        return False

    def close(self) -> None:
        """Fail every pending request."""
        pending, self._pending = self._pending, {}
        for entry in pending.values():
            entry.timer.cancel()
            self._resolve(entry, None)

    def _expire(self, request_id: str) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return
        log.warning("Request %s timed out after %.1fs", request_id, self.timeout)
        self._resolve(entry, None)

    @staticmethod
    def _resolve(entry: PendingRequest, value: Optional[bytes]) -> None:
        # a waiter that was cancelled leaves a done future behind
        if not entry.completion.done():
            entry.completion.set_result(value)
