"""
API Client

Builds the three outbound requests (validate key, list projects, post
heartbeat) and interprets their ``{error, data}`` envelopes.

Project listing and heartbeats go through the request scheduler and
complete on a later tick. Key validation runs in the foreground with a
progress indicator because it only happens on an explicit user action.
"""

from __future__ import annotations

import time
from typing import Any, Callable

import structlog

from pulsetrack.api.progress import NullProgressIndicator, ProgressIndicator
from pulsetrack.api.transport import ResponseHandle, Transport
from pulsetrack.heartbeat.context import PulseContext
from pulsetrack.heartbeat.models import (
    CurrentUser,
    Heartbeat,
    HeartbeatReceipt,
    Project,
    ResponseEnvelope,
)
from pulsetrack.heartbeat.scheduler import AsyncRequestScheduler, PendingRequest

logger = structlog.get_logger(__name__)

CURRENT_USER_PATH = "users/current"
PROJECTS_PATH = "users/current/projects"
HEARTBEATS_PATH = "users/current/heartbeats"


def read_envelope(handle: ResponseHandle, payload: Any) -> ResponseEnvelope[Any]:
    """Envelope for a finished request, including transport failures."""
    envelope_type = ResponseEnvelope[payload]
    response = handle.response
    if response is None:
        return envelope_type.failure(handle.error or "No response received")
    return envelope_type.parse(response.text, response.status_code)


class ApiClient:
    """Client for the remote heartbeat API."""

    def __init__(
        self,
        context: PulseContext,
        scheduler: AsyncRequestScheduler,
        transport: Transport,
        application_name: Callable[[], str] | None = None,
        poll_interval: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the client.

        Args:
            context: Credential and context store
            scheduler: Scheduler that completes asynchronous requests
            transport: Request dispatcher
            application_name: Host application's project name, used to
                              pick a default project after listing
            poll_interval: Sleep between polls during key validation
            sleep: Sleep function (replaced in tests)
        """
        self.context = context
        self.scheduler = scheduler
        self.transport = transport
        self._application_name = application_name
        self._poll_interval = poll_interval
        self._sleep = sleep
        self._projects_request: ResponseHandle | None = None

    def _auth(self, key: str | None = None) -> dict[str, str]:
        return {"api_key": key if key is not None else self.context.api_key}

    # Key validation

    def validate_key(
        self,
        key: str | None = None,
        indicator: ProgressIndicator | None = None,
    ) -> bool:
        """
        Validate an API key against the current-user endpoint.

        Blocks until the server answers or the user cancels.

        Args:
            key: Key to validate and store. Defaults to the stored key.
            indicator: Progress display; its cancel aborts the request

        Returns:
            True if the key is valid
        """
        if key is not None:
            self.context.api_key = key
        key = self.context.api_key

        if key == "":
            self.context.api_key_validated = False
            self.context.current_user = None
            return False

        indicator = indicator or NullProgressIndicator()
        handle = self.transport.send("GET", CURRENT_USER_PATH, params=self._auth(key))

        if not self._wait_in_foreground(handle, indicator):
            logger.info("API key validation cancelled")
            return False

        envelope = read_envelope(handle, CurrentUser)
        if not envelope.ok:
            logger.error("Could not validate the API key", error=envelope.error)
            self.context.api_key_validated = False
            self.context.current_user = None
            return False

        self.context.current_user = envelope.data
        self.context.api_key_validated = True
        logger.info("Validated API key", username=envelope.data.username)
        return True

    def _wait_in_foreground(self, handle: ResponseHandle, indicator: ProgressIndicator) -> bool:
        """Poll ``handle`` until done. False if the user cancelled."""
        try:
            while not handle.is_done:
                if indicator.update("API Key Validation", "Validating your API key...", handle.progress):
                    handle.abort()
                    return False
                self._sleep(self._poll_interval)
        except KeyboardInterrupt:
            # Ctrl-C is the cancel button for console indicators
            handle.abort()
            return False
        finally:
            indicator.clear()
        return True

    # Projects

    def list_projects(self) -> PendingRequest | None:
        """
        Fetch the user's projects asynchronously.

        Returns:
            The pending request, or None if skipped (key not validated or
            a fetch already in flight)
        """
        if not self.context.api_key_validated:
            return None
        if self.context.retrieving_projects:
            logger.debug("Project list already being retrieved")
            return None

        self.context.retrieving_projects = True
        handle = self.transport.send("GET", PROJECTS_PATH, params=self._auth())
        self._projects_request = handle
        return self.scheduler.enqueue(handle, lambda: self._on_projects(handle))

    def _on_projects(self, handle: ResponseHandle) -> None:
        if handle is not self._projects_request:
            # Started before a reload; a newer fetch owns the flag and cache
            logger.debug("Discarding stale project list response")
            return
        self._projects_request = None
        self.context.retrieving_projects = False

        if handle.aborted:
            logger.info("Project list request cancelled")
            return

        envelope = read_envelope(handle, list[Project])
        if not envelope.ok:
            logger.error("Failed to get projects", error=envelope.error)
            return

        self.context.projects = list(envelope.data)
        logger.info("Retrieved project list", count=len(self.context.projects))
        self._select_default_project()

    def _select_default_project(self) -> None:
        if self._application_name is None or self.context.active_project is not None:
            return
        project = self.context.find_project(self._application_name())
        if project is not None:
            self.context.active_project = project
            logger.info("Selected project matching application", project=project.name)

    def reset(self) -> None:
        """Forget in-flight session requests after the context is reloaded."""
        self._projects_request = None

    def cancel_project_listing(self) -> bool:
        """Abort the in-flight project list request, if any."""
        if self._projects_request is None:
            return False
        self._projects_request.abort()
        return True

    def project_choices(self) -> list[str]:
        """Dropdown options, fetching the list first if nothing is cached."""
        if not self.context.projects and not self.context.retrieving_projects:
            self.list_projects()
        return self.context.project_choices()

    # Heartbeats

    def post_heartbeat(self, heartbeat: Heartbeat) -> PendingRequest:
        """Send a heartbeat. Completion updates the debounce snapshot."""
        handle = self.transport.send(
            "POST",
            HEARTBEATS_PATH,
            params=self._auth(),
            json_body=heartbeat.to_wire(),
        )
        return self.scheduler.enqueue(handle, lambda: self._on_heartbeat(handle, heartbeat))

    def _on_heartbeat(self, handle: ResponseHandle, heartbeat: Heartbeat) -> None:
        envelope = read_envelope(handle, HeartbeatReceipt)
        if not envelope.ok:
            logger.warning(
                "Heartbeat was not accepted; please report this if it keeps happening",
                entity=heartbeat.entity,
                error=envelope.error,
            )
            return

        self.context.update_last_heartbeat(envelope.data.to_snapshot())
        logger.debug("Heartbeat accepted", entity=envelope.data.entity, id=envelope.data.id)
