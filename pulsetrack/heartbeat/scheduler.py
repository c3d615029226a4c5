"""
Request Scheduler

Cooperative completion tracking for in-flight HTTP requests.

The host calls ``tick()`` once per step. Each tick advances at most one
pending request: unfinished requests go back to the tail of the queue,
finished ones fire their completion callback exactly once.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Callable, Iterator, Protocol

import structlog

logger = structlog.get_logger(__name__)

CompletionCallback = Callable[[], None]


class RequestHandle(Protocol):
    """What the scheduler needs from an in-flight transport request."""

    @property
    def is_done(self) -> bool: ...


class PendingRequest:
    """
    One in-flight request and its completion callback.

    ``status`` is a generator that yields while the request is still running
    and invokes the callback once it is done. Exhausting it is the only way
    the callback runs, so it can never run twice.
    """

    def __init__(self, request: RequestHandle, on_complete: CompletionCallback) -> None:
        self.request = request
        self._on_complete = on_complete
        self.completed = False
        self.status = self._run()

    def _run(self) -> Iterator[None]:
        while not self.request.is_done:
            yield None
        self.completed = True
        self._on_complete()

    def advance(self) -> bool:
        """
        Step the request once.

        Returns:
            True if the request is still pending and must be re-queued
        """
        try:
            next(self.status)
        except StopIteration:
            return False
        return True

    def __repr__(self) -> str:
        return f"<PendingRequest(request={self.request!r}, completed={self.completed})>"


class AsyncRequestScheduler:
    """
    Round-robin queue of pending requests.

    The lock only guards queue manipulation. Callbacks run outside it, so a
    callback may enqueue a follow-up request without deadlocking.
    """

    def __init__(self) -> None:
        self._queue: deque[PendingRequest] = deque()
        self._lock = threading.Lock()

    def enqueue(self, request: RequestHandle, on_complete: CompletionCallback) -> PendingRequest:
        """
        Track a request until it completes.

        Args:
            request: Opaque in-flight request handle
            on_complete: Zero-argument callback fired once the request is done

        Returns:
            The PendingRequest wrapping the pair
        """
        pending = PendingRequest(request, on_complete)
        self._push(pending)
        return pending

    def _push(self, pending: PendingRequest) -> None:
        with self._lock:
            self._queue.append(pending)

    def _pop(self) -> PendingRequest | None:
        with self._lock:
            if not self._queue:
                return None
            return self._queue.popleft()

    def tick(self) -> bool:
        """
        Advance at most one pending request.

        Returns:
            True if a request was dequeued this tick
        """
        pending = self._pop()
        if pending is None:
            return False

        try:
            still_pending = pending.advance()
        except Exception as e:
            # The callback raised; it has still fired, so the entry is dropped.
            logger.error("Request completion callback failed", request=repr(pending.request), error=str(e))
            return True

        if still_pending:
            self._push(pending)
        return True

    def clear(self) -> int:
        """Drop every pending request without firing callbacks."""
        with self._lock:
            dropped = len(self._queue)
            self._queue.clear()
        if dropped:
            logger.info("Dropped pending requests", count=dropped)
        return dropped

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._queue)

    def __len__(self) -> int:
        return self.pending_count
