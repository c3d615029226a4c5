"""
Heartbeat Composer

Builds heartbeats from the current editor context and decides whether
each one is worth sending.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Callable

import structlog

from pulsetrack.config import PulseSettings
from pulsetrack.heartbeat.context import PulseContext
from pulsetrack.heartbeat.models import Heartbeat

if TYPE_CHECKING:
    from pulsetrack.api.client import ApiClient
    from pulsetrack.heartbeat.scheduler import PendingRequest
    from pulsetrack.vcs.branch import BranchResolver

logger = structlog.get_logger(__name__)


class HeartbeatComposer:
    """
    Composes heartbeats and applies the debounce policy.

    A heartbeat is suppressed when it targets the same entity as the last
    confirmed heartbeat, falls inside the debounce window, and is not a
    write. Writes always go through.
    """

    def __init__(
        self,
        context: PulseContext,
        branch_resolver: BranchResolver,
        settings: PulseSettings,
        active_document: Callable[[], str | None],
        client: ApiClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.context = context
        self.branch_resolver = branch_resolver
        self.settings = settings
        self._active_document = active_document
        self.client = client
        self._clock = clock

    def _preconditions_met(self) -> bool:
        if not self.context.enabled:
            logger.debug("Heartbeat skipped, plugin disabled")
            return False
        if not self.context.api_key_validated:
            logger.debug("Heartbeat skipped, API key not validated")
            return False
        return True

    def build(self, is_write: bool) -> Heartbeat:
        """Build a heartbeat for the current context without any checks."""
        entity = self._active_document() or self.settings.unsaved_entity
        return Heartbeat(
            entity=entity,
            entity_type=self.settings.entity_type,
            timestamp=int(self._clock()),
            project=self.context.active_project_name,
            branch=self.branch_resolver.resolve(),
            language=self.settings.language,
            is_write=is_write,
            source=self.settings.plugin_identity,
        )

    def compose(self, is_write: bool = False) -> Heartbeat | None:
        """
        Compose a heartbeat if one should be sent.

        Args:
            is_write: True when triggered by an explicit save

        Returns:
            The heartbeat, or None if skipped or suppressed
        """
        if not self._preconditions_met():
            return None

        heartbeat = self.build(is_write)
        if self.context.last_heartbeat.is_duplicate(heartbeat, self.settings.debounce_seconds):
            logger.debug(
                "Heartbeat suppressed",
                entity=heartbeat.entity,
                since_last=heartbeat.timestamp - self.context.last_heartbeat.timestamp,
            )
            return None
        return heartbeat

    def send(self, is_write: bool = False) -> PendingRequest | None:
        """Compose and, if eligible, post a heartbeat."""
        heartbeat = self.compose(is_write)
        if heartbeat is None or self.client is None:
            return None
        logger.debug("Sending heartbeat", entity=heartbeat.entity, is_write=is_write)
        return self.client.post_heartbeat(heartbeat)
