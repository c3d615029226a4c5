"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from pulsetrack.api.client import ApiClient
from pulsetrack.api.transport import TransportResponse
from pulsetrack.config import PulseSettings
from pulsetrack.heartbeat.composer import HeartbeatComposer
from pulsetrack.heartbeat.context import PulseContext
from pulsetrack.heartbeat.scheduler import AsyncRequestScheduler
from pulsetrack.heartbeat.store import MemorySettingsStore
from pulsetrack.vcs.branch import CommandOutput


class FakeHandle:
    """Request handle completed by the test."""

    def __init__(self, method: str, path: str, params: dict[str, str], json_body: Any) -> None:
        self.method = method
        self.path = path
        self.params = params
        self.json_body = json_body
        self.aborted = False
        self._response: TransportResponse | None = None
        self._error: str | None = None
        self._done = False

    def complete(self, body: Any, status_code: int = 200) -> None:
        text = body if isinstance(body, str) else json.dumps(body)
        self._response = TransportResponse(status_code=status_code, text=text)
        self._done = True

    def fail(self, error: str) -> None:
        self._error = error
        self._done = True

    @property
    def is_done(self) -> bool:
        return self.aborted or self._done

    @property
    def progress(self) -> float:
        return 1.0 if self.is_done else 0.0

    @property
    def response(self) -> TransportResponse | None:
        return None if self.aborted else self._response

    @property
    def error(self) -> str | None:
        return "Request aborted" if self.aborted else self._error

    def abort(self) -> None:
        self.aborted = True


Responder = Callable[[FakeHandle], None]


@dataclass
class FakeTransport:
    """
    Records every request.

    A responder registered for ``(method, path)`` completes the handle as
    soon as it is sent; otherwise the handle stays in flight.
    """

    responders: dict[tuple[str, str], Responder] = field(default_factory=dict)
    sent: list[FakeHandle] = field(default_factory=list)
    closed: bool = False

    def respond(self, method: str, path: str, responder: Responder) -> None:
        self.responders[(method, path)] = responder

    def respond_json(self, method: str, path: str, body: Any, status_code: int = 200) -> None:
        self.respond(method, path, lambda handle: handle.complete(body, status_code))

    def send(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> FakeHandle:
        handle = FakeHandle(method, path, dict(params or {}), json_body)
        self.sent.append(handle)
        responder = self.responders.get((method, path))
        if responder is not None:
            responder(handle)
        return handle

    def close(self) -> None:
        self.closed = True

    def requests_to(self, path: str) -> list[FakeHandle]:
        return [h for h in self.sent if h.path == path]


def _echo_heartbeat(handle: FakeHandle, heartbeat_id: str = "hb-1") -> None:
    """Accept a heartbeat POST the way the server does."""
    body = handle.json_body or {}
    handle.complete(
        {
            "error": None,
            "data": {
                "id": heartbeat_id,
                "entity": body.get("entity"),
                "type": body.get("type"),
                "time": body.get("time"),
            },
        },
        status_code=201,
    )


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class StaticBranchResolver:
    """Always reports the same branch."""

    def __init__(self, branch: str = "master") -> None:
        self.branch = branch

    def resolve(self) -> str:
        return self.branch


class FakeGitCommand:
    """Stands in for GitCommand without spawning processes."""

    executable = "git"

    def __init__(self, path: str | None = "/usr/bin/git", stdout: str = "main\n", stderr: str = "") -> None:
        self.path = path
        self.output = CommandOutput(stdout=stdout, stderr=stderr)
        self.locate_calls = 0
        self.run_calls = 0

    def locate(self) -> str | None:
        self.locate_calls += 1
        return self.path

    def run(self, executable: str, args: tuple[str, ...] = ()) -> CommandOutput:
        self.run_calls += 1
        return self.output


@pytest.fixture
def settings(tmp_path) -> PulseSettings:
    """Settings isolated from the user's environment."""
    return PulseSettings(settings_path=tmp_path / "settings.json")


@pytest.fixture
def store() -> MemorySettingsStore:
    return MemorySettingsStore()


@pytest.fixture
def context(store: MemorySettingsStore) -> PulseContext:
    return PulseContext(store)


@pytest.fixture
def ready_context(context: PulseContext) -> PulseContext:
    """Enabled, with a validated key."""
    context.enabled = True
    context.api_key = "waka_test_key"
    context.api_key_validated = True
    return context


@pytest.fixture
def scheduler() -> AsyncRequestScheduler:
    return AsyncRequestScheduler()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(ready_context, scheduler, transport) -> ApiClient:
    return ApiClient(
        ready_context,
        scheduler,
        transport,
        application_name=lambda: "Foo",
        poll_interval=0,
        sleep=lambda _: None,
    )


@pytest.fixture
def composer(ready_context, settings, client, clock) -> HeartbeatComposer:
    return HeartbeatComposer(
        ready_context,
        StaticBranchResolver("main"),
        settings,
        active_document=lambda: "Assets/Scenes/Scene.unity",
        client=client,
        clock=clock,
    )


@pytest.fixture
def echo_heartbeat() -> Responder:
    """Responder that accepts heartbeat POSTs."""
    return _echo_heartbeat


@pytest.fixture
def fake_git() -> type[FakeGitCommand]:
    """The FakeGitCommand class, for building commands per test."""
    return FakeGitCommand


@pytest.fixture
def static_branch() -> type[StaticBranchResolver]:
    """The StaticBranchResolver class, for composers built inside a test."""
    return StaticBranchResolver
