"""
Runtime

Assembles the heartbeat engine for one host and owns its lifecycle.
"""

from __future__ import annotations

import time
from typing import Callable

import structlog

from pulsetrack.api.client import ApiClient
from pulsetrack.api.transport import HttpTransport, Transport
from pulsetrack.config import PulseSettings, get_settings
from pulsetrack.heartbeat.composer import HeartbeatComposer
from pulsetrack.heartbeat.context import PulseContext
from pulsetrack.heartbeat.scheduler import AsyncRequestScheduler
from pulsetrack.heartbeat.store import JsonSettingsStore, SettingsStore
from pulsetrack.host.bindings import EventBindings
from pulsetrack.host.hooks import EditorHost
from pulsetrack.vcs.branch import BranchResolver, GitCommand, VersionControlResolver

logger = structlog.get_logger(__name__)


class PulseRuntime:
    """
    The heartbeat engine bound to a host.

    ``start()`` subscribes to the host's hooks. A hot reload reported by the
    host re-initializes the in-memory context and subscribes again;
    ``reload()`` does the same on demand.
    """

    def __init__(
        self,
        host: EditorHost,
        settings: PulseSettings | None = None,
        store: SettingsStore | None = None,
        transport: Transport | None = None,
        branch_resolver: BranchResolver | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.host = host
        self.settings = settings or get_settings()
        self.store = store if store is not None else JsonSettingsStore(self.settings.settings_path)
        self.context = PulseContext(self.store, prefix=self.settings.settings_prefix)
        self.scheduler = AsyncRequestScheduler()
        self.transport = transport or HttpTransport(
            self.settings.api_base,
            timeout=self.settings.request_timeout_seconds,
            max_workers=self.settings.max_workers,
        )
        self.branch_resolver = branch_resolver or VersionControlResolver(
            self.context,
            GitCommand(
                executable=self.settings.vcs_executable,
                platform=host.platform(),
                cwd=host.project_path(),
                timeout=self.settings.vcs_timeout_seconds,
            ),
            default_branch=self.settings.default_branch,
        )
        self.client = ApiClient(
            self.context,
            self.scheduler,
            self.transport,
            application_name=host.application_name,
            poll_interval=self.settings.validation_poll_interval,
        )
        self.composer = HeartbeatComposer(
            self.context,
            self.branch_resolver,
            self.settings,
            active_document=host.active_document_path,
            client=self.client,
            clock=clock or time.time,
        )
        self.bindings = EventBindings(
            host.hooks,
            self.composer,
            self.scheduler,
            on_reload=self._reload_state,
        )

    def start(self) -> None:
        self.bindings.register()
        logger.info(
            "Heartbeat engine started",
            enabled=self.context.enabled,
            key_validated=self.context.api_key_validated,
        )

    def _reload_state(self) -> None:
        self.context.reload()
        self.client.reset()

    def reload(self) -> None:
        """Re-initialize as if the host had reloaded its runtime."""
        self.bindings.on_hot_reload()

    def drain(self, timeout_seconds: float = 30.0, interval: float = 0.0) -> int:
        """
        Tick until no requests are pending or the timeout passes.

        Args:
            timeout_seconds: Give up after this long
            interval: Sleep between ticks

        Returns:
            Number of ticks performed
        """
        deadline = time.monotonic() + timeout_seconds
        ticks = 0
        while self.scheduler.pending_count and time.monotonic() < deadline:
            self.scheduler.tick()
            ticks += 1
            if interval:
                time.sleep(interval)
        return ticks

    def shutdown(self) -> None:
        self.bindings.unregister()
        # Nothing ticks after this point, so queued callbacks would never fire
        dropped = self.scheduler.clear()
        self.transport.close()
        logger.info("Heartbeat engine stopped", dropped=dropped)
