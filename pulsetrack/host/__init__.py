"""Host integration: lifecycle hooks, event bindings and the headless loop."""

from pulsetrack.host.bindings import EventBindings
from pulsetrack.host.hooks import EditorEvent, EditorHost, HeadlessHost, HostHooks

__all__ = ["EditorEvent", "EditorHost", "EventBindings", "HeadlessHost", "HostHooks"]
