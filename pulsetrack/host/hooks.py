"""
Host Hooks

Lifecycle events raised by the editing environment, the registry that
dispatches them, and the queries the engine makes against the host.
"""

from __future__ import annotations

import sys
from collections import defaultdict
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Protocol

import structlog

logger = structlog.get_logger(__name__)

HookHandler = Callable[..., Any]


class EditorEvent(str, Enum):
    """Lifecycle events the engine can subscribe to."""

    UPDATE = "update"  # Once per host step
    SCENE_SAVED = "scene_saved"
    SCENE_OPENED = "scene_opened"
    SCENE_CLOSING = "scene_closing"
    SCENE_CREATED = "scene_created"
    PLAY_MODE_CHANGED = "play_mode_changed"
    PROPERTY_CONTEXT_MENU = "property_context_menu"
    HOT_RELOAD_COMPLETED = "hot_reload_completed"


class HostHooks:
    """
    Synchronous handler registry.

    Handlers run in registration order. A failing handler is logged and
    does not stop the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[EditorEvent, list[HookHandler]] = defaultdict(list)

    def register(self, event: EditorEvent, handler: HookHandler) -> None:
        self._handlers[event].append(handler)

    def unregister(self, event: EditorEvent, handler: HookHandler) -> None:
        if event in self._handlers and handler in self._handlers[event]:
            self._handlers[event].remove(handler)

    def fire(self, event: EditorEvent, *args: Any) -> int:
        """
        Call every handler registered for ``event``.

        Returns:
            Number of handlers called
        """
        # Copy, so handlers may (un)register while we dispatch
        handlers = list(self._handlers.get(event, []))
        for handler in handlers:
            try:
                handler(*args)
            except Exception as e:
                logger.error(
                    "Host hook handler failed",
                    hook=event.value,
                    handler=getattr(handler, "__name__", repr(handler)),
                    error=str(e),
                )
        return len(handlers)

    def handler_count(self, event: EditorEvent | None = None) -> int:
        if event is not None:
            return len(self._handlers.get(event, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class EditorHost(Protocol):
    """Queries the engine makes against the editing environment."""

    hooks: HostHooks

    def active_document_path(self) -> str | None: ...

    def application_name(self) -> str: ...

    def platform(self) -> str: ...

    def project_path(self) -> str | None: ...


class HeadlessHost:
    """
    Host without an editor.

    The active document and application name are set directly; events are
    raised with ``hooks.fire``.
    """

    def __init__(
        self,
        application_name: str = "",
        document: str | Path | None = None,
        project_path: str | Path | None = None,
        platform: str | None = None,
    ) -> None:
        self.hooks = HostHooks()
        self._application_name = application_name
        self.document = str(document) if document else None
        self._project_path = str(project_path) if project_path else None
        self._platform = platform or sys.platform

    def active_document_path(self) -> str | None:
        return self.document

    def application_name(self) -> str:
        return self._application_name

    def platform(self) -> str:
        return self._platform

    def project_path(self) -> str | None:
        return self._project_path

    def open_document(self, path: str | Path | None) -> None:
        self.document = str(path) if path else None
        self.hooks.fire(EditorEvent.SCENE_OPENED)

    def save_document(self) -> None:
        self.hooks.fire(EditorEvent.SCENE_SAVED)
