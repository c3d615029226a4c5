"""
Tests for the PulseTrack CLI.

Network commands run against the fake transport from conftest.
"""

import json
from pathlib import Path
from typing import Optional

import pytest
import structlog
from typer.testing import CliRunner

from pulsetrack import __version__
from pulsetrack.api.client import CURRENT_USER_PATH, HEARTBEATS_PATH, PROJECTS_PATH
from pulsetrack.cli.main import app
from pulsetrack.config import reset_settings
from pulsetrack.heartbeat.store import JsonSettingsStore
from pulsetrack.host.hooks import HeadlessHost
from pulsetrack.runtime import PulseRuntime

runner = CliRunner()

PROJECTS = [{"id": "p1", "name": "Bar"}, {"id": "p2", "name": "Foo"}]


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the CLI at a throwaway settings file."""
    path = tmp_path / "settings.json"
    monkeypatch.setenv("PULSETRACK_SETTINGS_PATH", str(path))
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield path
    reset_settings()
    structlog.reset_defaults()


class TestCli:
    """Tests for CLI commands."""

    def test_version(self) -> None:
        """Test --version prints the version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_enable_disable(self, isolated_settings) -> None:
        """Test enable and disable persist the flag."""
        assert runner.invoke(app, ["enable"]).exit_code == 0
        assert JsonSettingsStore(isolated_settings).get_bool("PulseTrack_Enabled") is True

        assert runner.invoke(app, ["disable"]).exit_code == 0
        assert JsonSettingsStore(isolated_settings).get_bool("PulseTrack_Enabled") is False

    def test_set_key_resets_validation(self, isolated_settings) -> None:
        """Test storing a new key clears validation."""
        store = JsonSettingsStore(isolated_settings)
        store.set_bool("PulseTrack_ValidApiKey", True)

        result = runner.invoke(app, ["set-key", "abc123"])

        assert result.exit_code == 0
        reopened = JsonSettingsStore(isolated_settings)
        assert reopened.get_string("PulseTrack_ApiKey") == "abc123"
        assert reopened.get_bool("PulseTrack_ValidApiKey") is False

    def test_validate_empty_key(self) -> None:
        """Test an empty key is reported invalid."""
        result = runner.invoke(app, ["validate", ""])
        assert result.exit_code == 1
        assert "Invalid" in result.output

    def test_projects_requires_validation(self) -> None:
        """Test listing projects needs a validated key."""
        result = runner.invoke(app, ["projects"])
        assert result.exit_code == 1
        assert "Validate your API key first" in result.output

    def test_beat_skipped_when_disabled(self, tmp_path) -> None:
        """Test a heartbeat is skipped while disabled."""
        result = runner.invoke(app, ["beat", str(tmp_path / "Scene.unity")])
        assert result.exit_code == 1
        assert "skipped" in result.output

    def test_status(self, isolated_settings) -> None:
        """Test status shows the stored configuration."""
        runner.invoke(app, ["enable"])
        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Enabled" in result.output
        assert "yes" in result.output
        assert "not set" in result.output


@pytest.fixture
def offline_runtime(monkeypatch, transport, static_branch):
    """Route every CLI command through a runtime backed by the fake transport."""

    def build(document: Optional[Path] = None, application: Optional[str] = None) -> PulseRuntime:
        host = HeadlessHost(
            application_name=application or "Foo",
            document=document.resolve() if document else None,
            project_path=Path.cwd(),
        )
        return PulseRuntime(host, transport=transport, branch_resolver=static_branch("main"))

    monkeypatch.setattr("pulsetrack.cli.main._runtime", build)
    return transport


def _mark_validated(path: Path, key: str = "waka_test_key") -> JsonSettingsStore:
    store = JsonSettingsStore(path)
    store.set_string("PulseTrack_ApiKey", key)
    store.set_bool("PulseTrack_ValidApiKey", True)
    return store


class TestNetworkCommands:
    """Tests for commands that talk to the remote API."""

    def test_validate_success(self, isolated_settings, offline_runtime) -> None:
        """Test a valid key is stored, marked valid and greets the user."""
        offline_runtime.respond_json(
            "GET",
            CURRENT_USER_PATH,
            {"error": None, "data": {"id": "u1", "username": "dev", "display_name": "Dev One"}},
        )

        result = runner.invoke(app, ["validate", "good-key"])

        assert result.exit_code == 0
        assert "Valid" in result.output
        assert "Dev One" in result.output
        assert offline_runtime.sent[0].params == {"api_key": "good-key"}
        store = JsonSettingsStore(isolated_settings)
        assert store.get_string("PulseTrack_ApiKey") == "good-key"
        assert store.get_bool("PulseTrack_ValidApiKey") is True

    def test_validate_rejected(self, isolated_settings, offline_runtime) -> None:
        """Test a key the server rejects exits non-zero and stays invalid."""
        offline_runtime.respond_json("GET", CURRENT_USER_PATH, {"error": "Unauthorized", "data": None}, 401)

        result = runner.invoke(app, ["validate", "bad-key"])

        assert result.exit_code == 1
        assert JsonSettingsStore(isolated_settings).get_bool("PulseTrack_ValidApiKey") is False

    def test_projects_auto_selects_application(self, isolated_settings, offline_runtime) -> None:
        """Test listing picks the project named after the application."""
        _mark_validated(isolated_settings)
        offline_runtime.respond_json("GET", PROJECTS_PATH, {"error": None, "data": PROJECTS})

        result = runner.invoke(app, ["projects"])

        assert result.exit_code == 0
        assert "Bar" in result.output
        assert "Foo" in result.output
        stored = JsonSettingsStore(isolated_settings).get_string("PulseTrack_ActiveProject")
        assert json.loads(stored) == {"id": "p2", "name": "Foo"}

    def test_projects_select(self, isolated_settings, offline_runtime) -> None:
        """Test --select persists the named project as active."""
        _mark_validated(isolated_settings)
        offline_runtime.respond_json("GET", PROJECTS_PATH, {"error": None, "data": PROJECTS})

        result = runner.invoke(app, ["projects", "--select", "Bar"])

        assert result.exit_code == 0
        stored = JsonSettingsStore(isolated_settings).get_string("PulseTrack_ActiveProject")
        assert json.loads(stored) == {"id": "p1", "name": "Bar"}

    def test_projects_select_unknown(self, isolated_settings, offline_runtime) -> None:
        """Test selecting a project that does not exist fails."""
        _mark_validated(isolated_settings)
        offline_runtime.respond_json("GET", PROJECTS_PATH, {"error": None, "data": PROJECTS})

        result = runner.invoke(app, ["projects", "--select", "Nope"])

        assert result.exit_code == 1
        assert "No project named" in result.output

    def test_projects_timeout_cancels(self, isolated_settings, offline_runtime) -> None:
        """Test an unanswered project fetch is cancelled after the timeout."""
        _mark_validated(isolated_settings)

        result = runner.invoke(app, ["projects", "--timeout", "0"])

        assert result.exit_code == 1
        assert "Timed out" in result.output
        assert offline_runtime.requests_to(PROJECTS_PATH)[0].aborted is True
        assert JsonSettingsStore(isolated_settings).get_string("PulseTrack_ActiveProject") == ""

    def test_beat_write_success(self, isolated_settings, offline_runtime, echo_heartbeat, tmp_path) -> None:
        """Test a write heartbeat is posted and confirmed."""
        _mark_validated(isolated_settings)
        runner.invoke(app, ["enable"])
        offline_runtime.respond("POST", HEARTBEATS_PATH, echo_heartbeat)
        document = tmp_path / "Scene.unity"

        result = runner.invoke(app, ["beat", str(document), "--write"])

        assert result.exit_code == 0
        assert "Heartbeat sent" in result.output
        body = offline_runtime.requests_to(HEARTBEATS_PATH)[0].json_body
        assert body["entity"] == str(document.resolve())
        assert body["is_write"] is True
        assert body["branch"] == "main"

    def test_beat_rejected(self, isolated_settings, offline_runtime, tmp_path) -> None:
        """Test a heartbeat the server refuses exits non-zero."""
        _mark_validated(isolated_settings)
        runner.invoke(app, ["enable"])
        offline_runtime.respond_json("POST", HEARTBEATS_PATH, {"error": "Bad request", "data": None}, 400)

        result = runner.invoke(app, ["beat", str(tmp_path / "Scene.unity")])

        assert result.exit_code == 1
        assert "not accepted" in result.output
