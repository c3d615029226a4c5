"""
Heartbeat Models

Data models for heartbeats, the debounce snapshot, and the API envelopes.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

T = TypeVar("T")


class Heartbeat(BaseModel):
    """
    A single "user was active on X at time T" event.

    Immutable once built. Serializes to the wire shape
    ``{entity, type, time, project, branch, language, is_write, plugin}``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    entity: str
    entity_type: str = Field(default="app", alias="type")
    timestamp: int = Field(..., alias="time")
    project: str = ""
    branch: str = "master"
    language: str = "Unity"
    is_write: bool = False
    source: str = Field(..., alias="plugin")

    def to_wire(self) -> dict[str, Any]:
        """Request body for the heartbeat POST."""
        return self.model_dump(by_alias=True)


class LastHeartbeatSnapshot(BaseModel):
    """
    The last heartbeat the server confirmed.

    Starts at the zero value (epoch 0, empty entity) and is overwritten on
    every successful delivery. Only the debounce check reads it.
    """

    id: str = ""
    entity: str = ""
    entity_type: str = ""
    timestamp: float = 0.0

    def is_duplicate(self, heartbeat: Heartbeat, window_seconds: float) -> bool:
        """Whether ``heartbeat`` falls inside the debounce window of this snapshot."""
        if heartbeat.is_write:
            return False
        if heartbeat.entity != self.entity:
            return False
        return heartbeat.timestamp - self.timestamp < window_seconds


class Project(BaseModel):
    """A remote project the user can log time against."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str


class CurrentUser(BaseModel):
    """Profile returned by the current-user endpoint."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    username: str | None = None
    display_name: str | None = None
    full_name: str | None = None
    photo: str | None = None
    last_plugin: str | None = None
    last_heartbeat: str | None = None


class HeartbeatReceipt(BaseModel):
    """Server echo of an accepted heartbeat."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = ""
    entity: str = ""
    entity_type: str = Field(default="", alias="type")
    time: float = 0.0

    def to_snapshot(self) -> LastHeartbeatSnapshot:
        return LastHeartbeatSnapshot(
            id=self.id,
            entity=self.entity,
            entity_type=self.entity_type,
            timestamp=self.time,
        )


class ResponseEnvelope(BaseModel, Generic[T]):
    """
    The ``{error, data}`` wrapper every API response uses.

    A non-null ``error`` means failure regardless of the HTTP status.
    """

    error: str | None = None
    data: T | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: str) -> "ResponseEnvelope[T]":
        return cls(error=error, data=None)

    @classmethod
    def parse(cls, body: str | None, status_code: int | None = None) -> "ResponseEnvelope[T]":
        """
        Parse a response body into an envelope.

        Bodies that are empty or not valid for the payload type become
        error envelopes so callers only ever check ``error``.
        """
        if not body:
            return cls.failure(f"Empty response (status {status_code})")
        try:
            envelope = cls.model_validate_json(body)
        except ValidationError as e:
            return cls.failure(f"Malformed response (status {status_code}): {e.error_count()} error(s)")
        if envelope.error is None and envelope.data is None:
            return cls.failure(f"Response carried no data (status {status_code})")
        return envelope
