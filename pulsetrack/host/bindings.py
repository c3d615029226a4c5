"""
Event Bindings

Subscribes the heartbeat engine to host lifecycle hooks.
"""

from __future__ import annotations

from typing import Any, Callable

import structlog

from pulsetrack.heartbeat.composer import HeartbeatComposer
from pulsetrack.heartbeat.scheduler import AsyncRequestScheduler
from pulsetrack.host.hooks import EditorEvent, HookHandler, HostHooks

logger = structlog.get_logger(__name__)

# Events that report plain activity (not a write)
ACTIVITY_EVENTS = (
    EditorEvent.SCENE_OPENED,
    EditorEvent.SCENE_CLOSING,
    EditorEvent.SCENE_CREATED,
    EditorEvent.PLAY_MODE_CHANGED,
    EditorEvent.PROPERTY_CONTEXT_MENU,
)


class EventBindings:
    """
    Wires host hooks to the composer and the request scheduler.

    ``UPDATE`` ticks the scheduler, saves send write heartbeats, every other
    lifecycle event sends an activity heartbeat. A completed hot reload
    calls ``on_reload`` and the bindings register themselves again.
    """

    def __init__(
        self,
        hooks: HostHooks,
        composer: HeartbeatComposer,
        scheduler: AsyncRequestScheduler,
        on_reload: Callable[[], None] | None = None,
    ) -> None:
        self.hooks = hooks
        self.composer = composer
        self.scheduler = scheduler
        self._on_reload = on_reload
        self._registered: list[tuple[EditorEvent, HookHandler]] = []

    @property
    def is_registered(self) -> bool:
        return bool(self._registered)

    def _bind(self, event: EditorEvent, handler: HookHandler) -> None:
        self.hooks.register(event, handler)
        self._registered.append((event, handler))

    def register(self) -> None:
        if self._registered:
            logger.debug("Event bindings already registered")
            return

        self._bind(EditorEvent.UPDATE, self.on_update)
        self._bind(EditorEvent.SCENE_SAVED, self.on_saved)
        for event in ACTIVITY_EVENTS:
            self._bind(event, self.on_activity)
        self._bind(EditorEvent.HOT_RELOAD_COMPLETED, self.on_hot_reload)
        logger.debug("Event bindings registered", count=len(self._registered))

    def unregister(self) -> None:
        for event, handler in self._registered:
            self.hooks.unregister(event, handler)
        self._registered.clear()

    # Handlers accept and ignore whatever arguments the host passes along

    def on_update(self, *_: Any) -> None:
        self.scheduler.tick()

    def on_saved(self, *_: Any) -> None:
        self.composer.send(is_write=True)

    def on_activity(self, *_: Any) -> None:
        self.composer.send(is_write=False)

    def on_hot_reload(self, *_: Any) -> None:
        logger.info("Host reloaded, re-registering event bindings")
        self.unregister()
        if self._on_reload is not None:
            self._on_reload()
        self.register()
        self.composer.send(is_write=False)
