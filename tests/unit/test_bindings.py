"""
Tests for host hooks and event bindings.
"""

from structlog.testing import capture_logs

from pulsetrack.host.bindings import ACTIVITY_EVENTS, EventBindings
from pulsetrack.host.hooks import EditorEvent, HeadlessHost, HostHooks

HEARTBEATS = "users/current/heartbeats"


class TestHostHooks:
    """Tests for HostHooks."""

    def test_register_fire_unregister(self) -> None:
        """Test handlers are called until unregistered."""
        hooks = HostHooks()
        calls = []
        handler = lambda *args: calls.append(args)  # noqa: E731

        hooks.register(EditorEvent.SCENE_SAVED, handler)
        assert hooks.fire(EditorEvent.SCENE_SAVED, "Scene.unity") == 1
        assert calls == [("Scene.unity",)]

        hooks.unregister(EditorEvent.SCENE_SAVED, handler)
        assert hooks.fire(EditorEvent.SCENE_SAVED) == 0

    def test_failing_handler_is_isolated(self) -> None:
        """Test a failing handler does not stop the others."""
        hooks = HostHooks()
        calls = []

        def broken() -> None:
            raise RuntimeError("boom")

        hooks.register(EditorEvent.UPDATE, broken)
        hooks.register(EditorEvent.UPDATE, lambda: calls.append(1))

        with capture_logs() as logs:
            hooks.fire(EditorEvent.UPDATE)

        assert calls == [1]
        assert logs[0]["event"] == "Host hook handler failed"
        assert logs[0]["handler"] == "broken"


class TestEventBindings:
    """Tests for EventBindings."""

    def make_bindings(self, composer, scheduler, on_reload=None):
        host = HeadlessHost(application_name="Foo", document="Scene.unity")
        bindings = EventBindings(host.hooks, composer, scheduler, on_reload=on_reload)
        bindings.register()
        return host, bindings

    def test_registers_every_event(self, composer, scheduler) -> None:
        """Test every lifecycle event gets a handler."""
        host, bindings = self.make_bindings(composer, scheduler)

        for event in EditorEvent:
            assert host.hooks.handler_count(event) == 1
        assert bindings.is_registered

        bindings.register()
        assert host.hooks.handler_count(EditorEvent.UPDATE) == 1

    def test_save_sends_write(self, composer, scheduler, transport) -> None:
        """Test a save sends a write heartbeat."""
        host, _ = self.make_bindings(composer, scheduler)
        host.hooks.fire(EditorEvent.SCENE_SAVED)

        assert transport.sent[0].json_body["is_write"] is True

    def test_activity_events_send_plain_heartbeats(self, composer, scheduler, transport, clock) -> None:
        """Test activity events send non-write heartbeats."""
        host, _ = self.make_bindings(composer, scheduler)
        for event in ACTIVITY_EVENTS:
            clock.now += 1
            host.hooks.fire(event)

        bodies = [h.json_body for h in transport.requests_to(HEARTBEATS)]
        assert len(bodies) == len(ACTIVITY_EVENTS)
        assert all(body["is_write"] is False for body in bodies)

    def test_update_ticks_scheduler(self, composer, scheduler, transport, echo_heartbeat, ready_context) -> None:
        """Test the update hook ticks the scheduler."""
        transport.respond("POST", HEARTBEATS, echo_heartbeat)
        host, _ = self.make_bindings(composer, scheduler)

        host.hooks.fire(EditorEvent.SCENE_OPENED)
        assert scheduler.pending_count == 1

        host.hooks.fire(EditorEvent.UPDATE)
        assert scheduler.pending_count == 0
        assert ready_context.last_heartbeat.id == "hb-1"

    def test_unregister(self, composer, scheduler, transport) -> None:
        """Test unregistering removes every handler."""
        host, bindings = self.make_bindings(composer, scheduler)
        bindings.unregister()

        assert host.hooks.handler_count() == 0
        host.hooks.fire(EditorEvent.SCENE_SAVED)
        assert transport.sent == []

    def test_hot_reload_reinitializes_and_reregisters(self, composer, scheduler, transport, ready_context) -> None:
        """Test a hot reload resets state, rebinds and sends one heartbeat."""
        reloads = []
        host, bindings = self.make_bindings(composer, scheduler, on_reload=lambda: reloads.append(1))

        host.hooks.fire(EditorEvent.HOT_RELOAD_COMPLETED)

        assert reloads == [1]
        assert bindings.is_registered
        for event in EditorEvent:
            assert host.hooks.handler_count(event) == 1
        # A heartbeat goes out right after the reload
        assert len(transport.requests_to(HEARTBEATS)) == 1
