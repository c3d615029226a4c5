"""
Host Loop

APScheduler-based stand-in for an editor's update loop. Fires the
``UPDATE`` hook at a fixed cadence and turns changes to the watched
document into save events.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pulsetrack.host.hooks import EditorEvent, HeadlessHost

logger = structlog.get_logger(__name__)


class HostLoop:
    """
    Drives a HeadlessHost.

    All jobs run on the event loop thread, one at a time, so every hook
    handler sees the same single logical thread an editor would give it.
    """

    def __init__(
        self,
        host: HeadlessHost,
        tick_interval_ms: int = 50,
        watch_interval_seconds: float = 1.0,
    ) -> None:
        self.host = host
        self.tick_interval_ms = tick_interval_ms
        self.watch_interval_seconds = watch_interval_seconds
        self._scheduler: AsyncIOScheduler | None = None
        self._last_mtime: float | None = None
        self.tick_count = 0

    def _create_scheduler(self) -> AsyncIOScheduler:
        jobstores = {
            "default": MemoryJobStore(),
        }
        executors = {
            "default": AsyncIOExecutor(),
        }
        job_defaults = {
            "coalesce": True,  # A late tick replaces the missed ones
            "max_instances": 1,
            "misfire_grace_time": 5,
        }
        return AsyncIOScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone="UTC",
        )

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        """Start ticking. Must be called with a running event loop."""
        if self._scheduler is not None:
            logger.warning("Host loop already running")
            return

        self._last_mtime = self._document_mtime()
        self._scheduler = self._create_scheduler()
        self._scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=self.tick_interval_ms / 1000),
            id="host-update",
            name="host:update",
        )
        self._scheduler.add_job(
            self._watch_document,
            trigger=IntervalTrigger(seconds=self.watch_interval_seconds),
            id="host-document-watch",
            name="host:document-watch",
        )
        self._scheduler.start()
        logger.info("Host loop started", tick_interval_ms=self.tick_interval_ms)

    def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Host loop stopped", ticks=self.tick_count)

    async def run(self, duration_seconds: float | None = None) -> None:
        """
        Run until ``duration_seconds`` elapse, or until cancelled.

        Opens the watched document first so a session starts with a heartbeat.
        """
        self.host.open_document(self.host.document)
        self.start()
        try:
            if duration_seconds is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration_seconds)
        finally:
            self.stop()

    async def _tick(self) -> None:
        self.tick_count += 1
        self.host.hooks.fire(EditorEvent.UPDATE)

    def _document_mtime(self) -> float | None:
        if not self.host.document:
            return None
        try:
            return Path(self.host.document).stat().st_mtime
        except OSError:
            return None

    async def _watch_document(self) -> None:
        mtime = self._document_mtime()
        if mtime is not None and self._last_mtime is not None and mtime > self._last_mtime:
            logger.debug("Watched document changed", document=self.host.document)
            self.host.save_document()
        self._last_mtime = mtime
