"""
HTTP Transport

Dispatches requests with httpx on a small worker pool and hands back a
handle the scheduler can poll. Workers only perform the I/O; completion
callbacks run on whichever thread drives the scheduler.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from pulsetrack.errors import TransportError

logger = structlog.get_logger(__name__)


@dataclass
class TransportResponse:
    """Status and body of a finished request."""

    status_code: int
    text: str


class ResponseHandle(Protocol):
    """Pollable in-flight request."""

    aborted: bool

    @property
    def is_done(self) -> bool: ...

    @property
    def progress(self) -> float: ...

    @property
    def response(self) -> TransportResponse | None: ...

    @property
    def error(self) -> str | None: ...

    def abort(self) -> None: ...


class Transport(Protocol):
    def send(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> ResponseHandle: ...

    def close(self) -> None: ...


class HttpRequestHandle:
    """
    An in-flight request.

    ``is_done`` turns true once the worker finishes or the request is
    aborted. After that, ``response`` or ``error`` describes the outcome.
    """

    def __init__(self, future: Future[TransportResponse], method: str, url: str) -> None:
        self._future = future
        self.method = method
        self.url = url
        self.aborted = False

    @property
    def is_done(self) -> bool:
        return self.aborted or self._future.done()

    @property
    def progress(self) -> float:
        return 1.0 if self.is_done else 0.0

    def abort(self) -> None:
        """Abandon the request. Its response, if any, is discarded."""
        self.aborted = True
        self._future.cancel()

    @property
    def response(self) -> TransportResponse | None:
        if self.aborted or not self._future.done() or self._future.cancelled():
            return None
        if self._future.exception() is not None:
            return None
        return self._future.result()

    @property
    def error(self) -> str | None:
        if self.aborted:
            return "Request aborted"
        if not self._future.done():
            return None
        if self._future.cancelled():
            return "Request cancelled"
        exc = self._future.exception()
        return str(exc) if exc is not None else None

    def __repr__(self) -> str:
        return f"<HttpRequestHandle({self.method} {self.url}, done={self.is_done})>"


class HttpTransport:
    """Non-blocking request dispatch over an httpx client."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_workers: int = 4,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pulsetrack-http")

    def _perform(
        self,
        method: str,
        path: str,
        params: dict[str, str],
        json_body: dict[str, Any] | None,
    ) -> TransportResponse:
        try:
            if json_body is not None:
                response = self._client.request(
                    method,
                    path,
                    params=params,
                    json=json_body,
                    headers={"Content-Type": "application/json"},
                )
            else:
                response = self._client.request(method, path, params=params)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e
        return TransportResponse(status_code=response.status_code, text=response.text)

    def send(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> HttpRequestHandle:
        """
        Start a request and return immediately.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            params: Query parameters
            json_body: Body sent as application/json

        Returns:
            Handle to poll for completion
        """
        logger.debug("Dispatching request", method=method, path=path)
        future = self._executor.submit(self._perform, method, path, dict(params or {}), json_body)
        return HttpRequestHandle(future, method, path)

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._client.close()
