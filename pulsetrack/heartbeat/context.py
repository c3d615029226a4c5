"""
Heartbeat Context

Process-wide state for the heartbeat engine: credentials, the active
project, the cached project list and the debounce snapshot.

Durable preferences live in a SettingsStore. Everything else is in-memory
and is wiped by ``reload()``, which models the host tearing down and
rebuilding its runtime.
"""

from __future__ import annotations

import json

import structlog
from pydantic import ValidationError

from pulsetrack.heartbeat.models import CurrentUser, LastHeartbeatSnapshot, Project
from pulsetrack.heartbeat.store import SettingsStore

logger = structlog.get_logger(__name__)

NO_PROJECT_CHOICE = "Choose a project"


class PulseContext:
    """
    Credential and context store.

    Constructed once per process and passed to every component that needs it.
    """

    ENABLED = "Enabled"
    API_KEY = "ApiKey"
    VALID_API_KEY = "ValidApiKey"
    ACTIVE_PROJECT = "ActiveProject"
    USE_VERSION_CONTROL = "UseVersionControl"

    def __init__(self, store: SettingsStore, prefix: str = "PulseTrack_") -> None:
        self._store = store
        self._prefix = prefix
        self._init_session_state()

    def _init_session_state(self) -> None:
        self.current_user: CurrentUser | None = None
        self.projects: list[Project] = []
        self.retrieving_projects = False
        self.last_heartbeat = LastHeartbeatSnapshot()
        self._vcs_disabled_for_session = False

    def reload(self) -> None:
        """Drop all in-memory state, keeping durable preferences."""
        logger.info("Re-initializing heartbeat context after reload")
        self._init_session_state()

    def _key(self, name: str) -> str:
        return f"{self._prefix}{name}"

    # Durable preferences

    @property
    def enabled(self) -> bool:
        return self._store.get_bool(self._key(self.ENABLED), False)

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._store.set_bool(self._key(self.ENABLED), value)

    @property
    def api_key(self) -> str:
        return self._store.get_string(self._key(self.API_KEY), "")

    @api_key.setter
    def api_key(self, value: str) -> None:
        if value != self.api_key:
            # A new key has to be validated again
            self.api_key_validated = False
        self._store.set_string(self._key(self.API_KEY), value)

    @property
    def api_key_validated(self) -> bool:
        return self._store.get_bool(self._key(self.VALID_API_KEY), False)

    @api_key_validated.setter
    def api_key_validated(self, value: bool) -> None:
        self._store.set_bool(self._key(self.VALID_API_KEY), value)

    @property
    def vcs_enabled(self) -> bool:
        """Version-control integration, unless disabled earlier this session."""
        if self._vcs_disabled_for_session:
            return False
        return self._store.get_bool(self._key(self.USE_VERSION_CONTROL), True)

    @vcs_enabled.setter
    def vcs_enabled(self, value: bool) -> None:
        self._store.set_bool(self._key(self.USE_VERSION_CONTROL), value)
        if value:
            self._vcs_disabled_for_session = False

    def disable_vcs_for_session(self) -> None:
        self._vcs_disabled_for_session = True

    # Projects

    @property
    def active_project(self) -> Project | None:
        raw = self._store.get_string(self._key(self.ACTIVE_PROJECT), "")
        if not raw:
            return None
        try:
            return Project.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning("Discarding unreadable active project", error=str(e))
            return None

    @active_project.setter
    def active_project(self, project: Project | None) -> None:
        raw = project.model_dump_json(include={"id", "name"}) if project else ""
        self._store.set_string(self._key(self.ACTIVE_PROJECT), raw)

    @property
    def active_project_name(self) -> str:
        project = self.active_project
        return project.name if project else ""

    def project_choices(self) -> list[str]:
        """Dropdown options: index 0 is "no project", then each cached project."""
        return [NO_PROJECT_CHOICE, *(p.name for p in self.projects)]

    def active_project_index(self) -> int:
        """Index of the active project in ``project_choices()``, 0 if none."""
        active = self.active_project
        if active is None:
            return 0
        for index, project in enumerate(self.projects, start=1):
            if project.id == active.id:
                return index
        return 0

    def select_project(self, index: int) -> Project | None:
        """
        Select a project by its ``project_choices()`` index.

        Index 0 (or anything out of range) clears the selection.
        """
        if 1 <= index <= len(self.projects):
            project = self.projects[index - 1]
        else:
            project = None
        self.active_project = project
        logger.info("Active project changed", project=project.name if project else None)
        return project

    def find_project(self, name: str) -> Project | None:
        for project in self.projects:
            if project.name == name:
                return project
        return None

    def update_last_heartbeat(self, snapshot: LastHeartbeatSnapshot) -> None:
        self.last_heartbeat = snapshot
