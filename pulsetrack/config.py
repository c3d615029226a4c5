"""PulseTrack Configuration."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from pulsetrack import __version__


class PulseSettings(BaseSettings):
    """Settings for the heartbeat engine."""

    model_config = SettingsConfigDict(env_prefix="PULSETRACK_")

    # Remote API
    api_base: str = "https://wakatime.com/api/v1/"
    request_timeout_seconds: float = 30.0
    max_workers: int = 4

    # Heartbeat shape
    debounce_seconds: int = 120
    entity_type: str = "app"
    language: str = "Unity"
    unsaved_entity: str = "Unsaved Scene"
    default_branch: str = "master"
    plugin_name: str = "pulsetrack"

    # Persisted preferences
    settings_path: Path = Path.home() / ".pulsetrack" / "settings.json"
    settings_prefix: str = "PulseTrack_"

    # Host loop
    tick_interval_ms: int = 50
    validation_poll_interval: float = 0.05

    # Version control
    vcs_executable: str = "git"
    vcs_timeout_seconds: float | None = None

    @property
    def plugin_identity(self) -> str:
        """Value sent as the heartbeat ``plugin`` field."""
        return f"{self.plugin_name}/{__version__}"


_settings: PulseSettings | None = None


def get_settings() -> PulseSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = PulseSettings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings (mainly for testing)."""
    global _settings
    _settings = None
