"""
Heartbeat Engine

Decides when activity is worth reporting and completes delivery without
blocking the host.

Provides:
- Heartbeat and envelope models
- Debounce-aware heartbeat composition
- Cooperative request scheduling
- Credential and context state over a durable settings store
"""

from pulsetrack.heartbeat.models import (
    CurrentUser,
    Heartbeat,
    HeartbeatReceipt,
    LastHeartbeatSnapshot,
    Project,
    ResponseEnvelope,
)
from pulsetrack.heartbeat.scheduler import (
    AsyncRequestScheduler,
    PendingRequest,
)
from pulsetrack.heartbeat.store import (
    JsonSettingsStore,
    MemorySettingsStore,
    SettingsStore,
)
from pulsetrack.heartbeat.context import PulseContext
from pulsetrack.heartbeat.composer import HeartbeatComposer

__all__ = [
    # Models
    "CurrentUser",
    "Heartbeat",
    "HeartbeatReceipt",
    "LastHeartbeatSnapshot",
    "Project",
    "ResponseEnvelope",
    # Scheduler
    "AsyncRequestScheduler",
    "PendingRequest",
    # Store
    "JsonSettingsStore",
    "MemorySettingsStore",
    "SettingsStore",
    # Context
    "PulseContext",
    # Composer
    "HeartbeatComposer",
]
